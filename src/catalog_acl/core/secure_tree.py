"""
Secure Tree

Hierarchical index of authorized roles, built once from a rule store:

    *                       root, `*.*.mode` rules
    ├── topp                workspace (or global layer group), `topp.*.mode` / `topp.mode`
    │   ├── states          layer or layer group, `topp.states.mode`
    │   └── roads
    └── nurc

A node's authorized roles for a mode are its own explicit set, or the
nearest ancestor's. The root resolves to the empty set when no rule sets it.
Trees are never patched: a rule change means building a new tree.
"""

import logging
from typing import TYPE_CHECKING, AbstractSet, Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

from .auth.principal import Principal
from .rule_store import is_dead_rule
from .rules import ANY, EVERYBODY, AccessMode, DataAccessRule

if TYPE_CHECKING:
    from .catalog import Catalog
    from .rule_store import DataAccessRuleStore

logger = logging.getLogger(__name__)


class SecureTreeNode:
    """One path segment with its explicit per-mode role sets"""

    def __init__(self, name: str = ANY, parent: Optional["SecureTreeNode"] = None):
        self.name = name
        self.parent = parent
        self.children: Dict[str, "SecureTreeNode"] = {}
        self._authorized_roles: Dict[AccessMode, FrozenSet[str]] = {}

    # =========================================================================
    # Structure
    # =========================================================================

    def get_child(self, name: str) -> Optional["SecureTreeNode"]:
        return self.children.get(name)

    def add_child(self, name: str) -> "SecureTreeNode":
        """Get or create a child node"""
        child = self.children.get(name)
        if child is None:
            child = SecureTreeNode(name, self)
            self.children[name] = child
        return child

    def get_deepest_node(self, path: Sequence[str]) -> "SecureTreeNode":
        """Walk `path` as far as nodes exist and return the last one reached"""
        node = self
        for segment in path:
            child = node.get_child(segment)
            if child is None:
                break
            node = child
        return node

    @property
    def depth(self) -> int:
        return 0 if self.parent is None else self.parent.depth + 1

    @property
    def path(self) -> List[str]:
        if self.parent is None:
            return []
        return self.parent.path + [self.name]

    # =========================================================================
    # Authorization
    # =========================================================================

    def set_authorized_roles(self, mode: AccessMode, roles: Iterable[str]) -> None:
        self._authorized_roles[mode] = frozenset(roles)

    def get_explicit_roles(self, mode: AccessMode) -> Optional[FrozenSet[str]]:
        """Roles set on this exact node, None when inherited"""
        return self._authorized_roles.get(mode)

    def get_authorized_roles(self, mode: AccessMode) -> FrozenSet[str]:
        """Own explicit set, else the nearest ancestor's, else empty"""
        node = self
        while node is not None:
            roles = node._authorized_roles.get(mode)
            if roles is not None:
                return roles
            node = node.parent
        return frozenset()

    def can_access(
        self,
        principal: Optional[Principal],
        mode: AccessMode,
        roles: Optional[AbstractSet[str]] = None
    ) -> bool:
        """
        Check a principal against this node.

        Args:
            principal: Principal, None or anonymous for unauthenticated requests
            mode: Access mode
            roles: Effective role names; defaults to the principal's own roles
        """
        authorized = self.get_authorized_roles(mode)
        if EVERYBODY in authorized:
            return True
        if principal is None or principal.is_anonymous:
            return False
        if roles is None:
            roles = principal.roles
        return not authorized.isdisjoint(roles)

    def can_access_any_child(
        self,
        principal: Optional[Principal],
        mode: AccessMode,
        roles: Optional[AbstractSet[str]] = None
    ) -> bool:
        """True if some node below this one grants the mode"""
        for child in self.children.values():
            if child.can_access(principal, mode, roles) or child.can_access_any_child(principal, mode, roles):
                return True
        return False

    # =========================================================================
    # Inspection
    # =========================================================================

    def walk(self):
        """Depth first iteration, self included"""
        yield self
        for child in self.children.values():
            yield from child.walk()

    def to_dict(self) -> Dict[str, Any]:
        """Explicit role sets per node, for display"""
        return {
            "name": self.name,
            "roles": {mode.alias: sorted(roles) for mode, roles in self._authorized_roles.items()},
            "children": [child.to_dict() for child in self.children.values()],
        }

    def __repr__(self) -> str:
        return f"SecureTreeNode({'/'.join(self.path) or ANY}, children={len(self.children)})"


def apply_rule(root: SecureTreeNode, rule: DataAccessRule) -> SecureTreeNode:
    """
    Set a rule's roles on the node its key designates, creating nodes on demand.

    A `*` layer targets the workspace node itself: it is never a child.
    """
    if rule.root == ANY:
        node = root
    elif rule.is_global_group_rule or rule.layer == ANY:
        node = root.add_child(rule.root)
    else:
        node = root.add_child(rule.root).add_child(rule.layer)

    node.set_authorized_roles(rule.access_mode, rule.roles)
    return node


def build_secure_tree(
    rules: "DataAccessRuleStore | Iterable[DataAccessRule]",
    catalog: Optional["Catalog"] = None
) -> SecureTreeNode:
    """
    Build a new tree from a rule store or a rule sequence.

    Rules pointing at objects missing from `catalog` are still applied; they
    are only reported at debug level.
    """
    rule_list: List[DataAccessRule] = list(rules.get_rules() if hasattr(rules, "get_rules") else rules)

    root = SecureTreeNode()
    for rule in rule_list:
        apply_rule(root, rule)

    if catalog is not None:
        for rule in rule_list:
            if is_dead_rule(rule, catalog):
                logger.debug(f"Rule {rule} references a resource missing from the catalog")

    logger.info(f"Built secure tree from {len(rule_list)} rules")
    return root
