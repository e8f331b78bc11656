"""
Resource Access Manager

Answers "may this principal read / write this catalog object":
- resolves the principal's effective roles (principal roles + role calculator)
- maps the object to a secure tree path (workspace, layer or group)
- reads the authorized roles from the current secure tree

The tree is rebuilt off to the side whenever the rule store revision changes
and published with a single reference assignment, so concurrent readers see
either the old tree or the new one, never a partial build.
"""

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, AbstractSet, Any, Dict, FrozenSet, List, Optional, Tuple

from ..errors import UnresolvedResource, UnresolvedWorkspace
from .auth.principal import Principal
from .auth.roles import ADMIN_ROLE
from .catalog import Catalog, CatalogObject, LayerGroupInfo, LayerInfo, StyleInfo, WorkspaceInfo
from .rule_store import CatalogMode, DataAccessRuleStore
from .rules import AccessMode
from .secure_tree import SecureTreeNode, build_secure_tree

if TYPE_CHECKING:
    from .auth.calculator import RoleCalculator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessLimits:
    """Result of an access check"""
    mode: CatalogMode
    readable: bool
    writable: bool
    reason: str = ""

    @classmethod
    def denied(cls, mode: CatalogMode, reason: str) -> "AccessLimits":
        return cls(mode=mode, readable=False, writable=False, reason=reason)

    def allows(self, access_mode: AccessMode) -> bool:
        return self.writable if access_mode == AccessMode.WRITE else self.readable


class ResourceAccessManager:
    """
    Access decisions backed by a secure tree built from a rule store.

    Central point for:
    - per object checks (`get_access_limits`, `can_access`)
    - reusable filters for bulk enumeration (`get_security_filter`)
    """

    def __init__(
        self,
        rule_store: DataAccessRuleStore,
        catalog: Optional[Catalog] = None,
        role_calculator: Optional["RoleCalculator"] = None,
        admin_role: str = ADMIN_ROLE
    ):
        self.rule_store = rule_store
        self.catalog = catalog
        self.role_calculator = role_calculator
        self.admin_role = admin_role

        self._rebuild_lock = threading.Lock()
        self._tree: Optional[SecureTreeNode] = None
        self._tree_revision = -1
        self.rebuild()

    # =========================================================================
    # Secure tree lifecycle
    # =========================================================================

    def rebuild(self) -> bool:
        """
        Build a new tree from the current rules and publish it.

        Returns:
            False if the build failed; the previous tree keeps serving
        """
        with self._rebuild_lock:
            revision = self.rule_store.revision
            try:
                tree = build_secure_tree(self.rule_store, self.catalog)
            except Exception as e:
                logger.error(f"Secure tree rebuild failed, keeping previous tree: {e}")
                return False
            self._tree = tree
            self._tree_revision = revision
            return True

    @property
    def tree(self) -> SecureTreeNode:
        """Current secure tree, rebuilt first if the rules changed"""
        if self._tree_revision != self.rule_store.revision:
            self.rebuild()
        return self._tree

    @property
    def catalog_mode(self) -> CatalogMode:
        return self.rule_store.catalog_mode

    # =========================================================================
    # Principal resolution
    # =========================================================================

    def get_effective_roles(self, principal: Optional[Principal]) -> FrozenSet[str]:
        """Role names of the principal, expanded through the role calculator"""
        if principal is None or principal.is_anonymous:
            return frozenset()

        roles = set(principal.roles)
        if self.role_calculator is not None:
            roles.update(role.name for role in self.role_calculator.calculate_roles(principal))
        return frozenset(roles)

    def is_admin(self, roles: AbstractSet[str]) -> bool:
        return self.admin_role in roles

    # =========================================================================
    # Resource resolution
    # =========================================================================

    def _workspace_exists(self, workspace: Optional[str]) -> bool:
        if not workspace:
            return False
        if self.catalog is None:
            return True
        return self.catalog.get_workspace_by_name(workspace) is not None

    def resolve_path(self, resource: CatalogObject) -> Tuple[str, ...]:
        """
        Secure tree path of a catalog object.

        Raises:
            UnresolvedWorkspace: the owning workspace is missing
            UnresolvedResource: the object has no usable identity
        """
        if isinstance(resource, WorkspaceInfo):
            if not resource.name:
                raise UnresolvedResource(resource)
            return (resource.name,)

        if isinstance(resource, (LayerInfo, LayerGroupInfo, StyleInfo)):
            if not resource.name:
                raise UnresolvedResource(resource)
            if resource.workspace is None:
                if isinstance(resource, LayerInfo):
                    raise UnresolvedWorkspace(None)
                if isinstance(resource, StyleInfo):
                    return ()
                return (resource.name,)
            if not self._workspace_exists(resource.workspace):
                raise UnresolvedWorkspace(resource.workspace)
            if isinstance(resource, StyleInfo):
                return (resource.workspace,)
            return (resource.workspace, resource.name)

        raise UnresolvedResource(resource)

    # =========================================================================
    # Decisions
    # =========================================================================

    def get_access_limits(
        self,
        principal: Optional[Principal],
        resource: CatalogObject,
        roles: Optional[AbstractSet[str]] = None
    ) -> AccessLimits:
        """
        Access limits of a principal on one catalog object.

        Never raises: unresolvable objects and unexpected errors deny access.

        Args:
            principal: Principal, None for anonymous
            resource: Workspace, layer, layer group or style
            roles: Precomputed effective roles (skips role resolution)
        """
        mode = self.catalog_mode
        try:
            if roles is None:
                roles = self.get_effective_roles(principal)

            if self.is_admin(roles):
                return AccessLimits(mode=mode, readable=True, writable=True, reason="administrator")

            path = self.resolve_path(resource)
            limits = self._limits_for_path(principal, resource, path, roles, mode)
        except (UnresolvedWorkspace, UnresolvedResource) as e:
            logger.warning(f"Access denied to {principal}: {e}")
            return AccessLimits.denied(mode, str(e))
        except Exception as e:
            logger.warning(f"Access check failed for {principal} on {resource!r}, denying: {e}")
            return AccessLimits.denied(mode, "access check failed")

        logger.debug(
            f"Access {principal} on {'/'.join(path) or '*'}: "
            f"read={limits.readable} write={limits.writable}"
        )
        return limits

    def _limits_for_path(
        self,
        principal: Optional[Principal],
        resource: CatalogObject,
        path: Tuple[str, ...],
        roles: AbstractSet[str],
        mode: CatalogMode
    ) -> AccessLimits:
        tree = self.tree

        if isinstance(resource, StyleInfo) and not path:
            # Global styles are readable by everybody, writable where the root allows
            return AccessLimits(
                mode=mode,
                readable=True,
                writable=tree.can_access(principal, AccessMode.WRITE, roles),
                reason="global style",
            )

        node = tree.get_deepest_node(path)
        readable = node.can_access(principal, AccessMode.READ, roles)
        writable = node.can_access(principal, AccessMode.WRITE, roles)

        if isinstance(resource, WorkspaceInfo) and not readable:
            # A workspace is visible when any layer below it is readable
            if node.path == list(path):
                readable = node.can_access_any_child(principal, AccessMode.READ, roles)

        return AccessLimits(mode=mode, readable=readable, writable=writable)

    def can_access(
        self,
        principal: Optional[Principal],
        resource: CatalogObject,
        access_mode: AccessMode = AccessMode.READ
    ) -> bool:
        """Yes/no check for one object and mode"""
        return self.get_access_limits(principal, resource).allows(access_mode)

    def get_security_filter(
        self,
        principal: Optional[Principal],
        resource_class: Optional[type] = None,
        access_mode: AccessMode = AccessMode.READ
    ) -> "SecurityFilter":
        """Predicate closed over the principal's effective roles"""
        return SecurityFilter(self, principal, resource_class, access_mode)

    def get_stats(self) -> Dict[str, Any]:
        """Access manager statistics"""
        tree = self.tree
        return {
            "catalog_mode": self.catalog_mode.value,
            "rules": len(self.rule_store),
            "rule_revision": self._tree_revision,
            "tree_nodes": sum(1 for _ in tree.walk()),
        }


class SecurityFilter:
    """
    Reusable access predicate for bulk enumeration.

    Effective roles are resolved once, when the filter is created.
    """

    def __init__(
        self,
        manager: ResourceAccessManager,
        principal: Optional[Principal],
        resource_class: Optional[type] = None,
        access_mode: AccessMode = AccessMode.READ
    ):
        self.manager = manager
        self.principal = principal
        self.resource_class = resource_class
        self.access_mode = access_mode
        self.roles = manager.get_effective_roles(principal)

    def limits(self, resource: CatalogObject) -> AccessLimits:
        return self.manager.get_access_limits(self.principal, resource, roles=self.roles)

    def __call__(self, resource: CatalogObject) -> bool:
        if self.resource_class is not None and not isinstance(resource, self.resource_class):
            return False
        return self.limits(resource).allows(self.access_mode)

    def filter(self, resources: List[CatalogObject]) -> List[CatalogObject]:
        return [resource for resource in resources if self(resource)]
