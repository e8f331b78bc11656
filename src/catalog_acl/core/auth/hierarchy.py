"""
Role Hierarchy Helper

Pure queries over a flat `role -> parent role` mapping. Roots map to None;
a parent that never appears as a key is a root as well.

Traversals (ancestors, descendants) detect cycles and raise CyclicHierarchy.
Single step lookups (parent, children) do not traverse and never raise.
"""

import logging
from typing import Dict, List, Mapping, Optional, Set

from ...errors import CyclicHierarchy

logger = logging.getLogger(__name__)


class RoleHierarchyHelper:
    """Read-only helper over a parent mapping snapshot"""

    def __init__(self, parent_mappings: Mapping[str, Optional[str]]):
        self._parents: Dict[str, Optional[str]] = dict(parent_mappings)
        for parent in list(self._parents.values()):
            if parent is not None and parent not in self._parents:
                self._parents[parent] = None

    @property
    def parent_mappings(self) -> Dict[str, Optional[str]]:
        return dict(self._parents)

    def contains_role(self, role: str) -> bool:
        return role in self._parents

    def get_parent(self, role: str) -> Optional[str]:
        """Direct parent, None for roots and unknown roles"""
        return self._parents.get(role)

    def get_children(self, role: str) -> Set[str]:
        """Direct children (reverse lookup)"""
        return {child for child, parent in self._parents.items() if parent == role}

    def is_root(self, role: str) -> bool:
        return self.get_parent(role) is None

    def is_leaf(self, role: str) -> bool:
        return not self.get_children(role)

    def get_ancestors(self, role: str) -> List[str]:
        """
        Parent chain from the direct parent up to the root.

        Raises:
            CyclicHierarchy: the chain loops
        """
        ancestors: List[str] = []
        visited = [role]
        parent = self.get_parent(role)
        while parent is not None:
            if parent in visited:
                raise CyclicHierarchy(role, visited + [parent])
            visited.append(parent)
            ancestors.append(parent)
            parent = self.get_parent(parent)
        return ancestors

    def get_descendants(self, role: str) -> Set[str]:
        """
        All roles below `role`.

        Raises:
            CyclicHierarchy: a role is reached twice
        """
        descendants: Set[str] = set()
        self._collect_descendants(role, [role], descendants)
        return descendants

    def _collect_descendants(self, role: str, path: List[str], result: Set[str]) -> None:
        for child in self.get_children(role):
            if child in path or child in result:
                raise CyclicHierarchy(path[0], path + [child])
            result.add(child)
            self._collect_descendants(child, path + [child], result)

    def get_root_roles(self) -> Set[str]:
        return {role for role, parent in self._parents.items() if parent is None}

    def get_leaf_roles(self) -> Set[str]:
        parents = {parent for parent in self._parents.values() if parent is not None}
        return {role for role in self._parents if role not in parents}

    def is_valid_parent(self, role: str, parent: Optional[str]) -> bool:
        """
        Check whether `parent` may become the parent of `role`.

        None (make the role a root) is always valid. The role itself and its
        descendants are not.
        """
        if parent is None:
            return True
        if parent == role:
            return False
        try:
            return parent not in self.get_descendants(role)
        except CyclicHierarchy:
            logger.warning(f"Role hierarchy below {role} is cyclic, rejecting parent {parent}")
            return False
