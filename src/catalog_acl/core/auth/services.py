"""
In-Memory Role and User/Group Services

Hold the role definitions, the role hierarchy and the user/group
associations the role calculator reads. Parent changes are validated
against the hierarchy before the mapping is touched.
"""

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Set

from ...errors import InvalidParentAssignment, UnknownRole
from .hierarchy import RoleHierarchyHelper
from .roles import Group, Role, User

logger = logging.getLogger(__name__)


class RoleService:
    """
    Role definitions, parent mappings and role associations.

    `admin_role_name` / `group_admin_role_name` name the local roles that map
    to the system administrator roles.
    """

    def __init__(
        self,
        admin_role_name: Optional[str] = None,
        group_admin_role_name: Optional[str] = None
    ):
        self.admin_role_name = admin_role_name
        self.group_admin_role_name = group_admin_role_name
        self._roles: Dict[str, Role] = {}
        self._parents: Dict[str, Optional[str]] = {}
        self._user_roles: Dict[str, Set[str]] = {}
        self._group_roles: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()

    # =========================================================================
    # Roles
    # =========================================================================

    def create_role(self, name: str, properties: Optional[Mapping[str, str]] = None) -> Role:
        """Create a role object without storing it"""
        return Role(name=name, properties=dict(properties or {}))

    def add_role(self, role: Role) -> None:
        with self._lock:
            self._roles[role.name] = role
            self._parents.setdefault(role.name, None)

    def update_role(self, role: Role) -> None:
        with self._lock:
            if role.name not in self._roles:
                raise UnknownRole(role.name)
            self._roles[role.name] = role

    def remove_role(self, name: str) -> bool:
        """Remove a role, its associations and detach its children"""
        with self._lock:
            if name not in self._roles:
                return False
            del self._roles[name]
            self._parents.pop(name, None)
            for child, parent in self._parents.items():
                if parent == name:
                    self._parents[child] = None
            for roles in list(self._user_roles.values()) + list(self._group_roles.values()):
                roles.discard(name)
            logger.info(f"Removed role {name}")
            return True

    def get_role_by_name(self, name: str) -> Optional[Role]:
        return self._roles.get(name)

    def get_roles(self) -> List[Role]:
        return sorted(self._roles.values())

    # =========================================================================
    # Hierarchy
    # =========================================================================

    def get_hierarchy(self) -> RoleHierarchyHelper:
        """Helper over a snapshot of the current parent mappings"""
        with self._lock:
            return RoleHierarchyHelper(self._parents)

    def get_parent_mappings(self) -> Dict[str, Optional[str]]:
        with self._lock:
            return dict(self._parents)

    def get_parent_role(self, role: str) -> Optional[Role]:
        parent = self._parents.get(role)
        return self._roles.get(parent) if parent else None

    def set_parent_role(self, role: str, parent: Optional[str]) -> None:
        """
        Change the parent of a role.

        Raises:
            UnknownRole: role or parent not defined
            InvalidParentAssignment: parent is the role itself or one of its descendants
        """
        with self._lock:
            if role not in self._roles:
                raise UnknownRole(role)
            if parent is not None and parent not in self._roles:
                raise UnknownRole(parent)
            if parent == role:
                raise InvalidParentAssignment(role, parent, "a role cannot be its own parent")
            if not self.get_hierarchy().is_valid_parent(role, parent):
                raise InvalidParentAssignment(role, parent, "parent is a descendant of the role")
            self._parents[role] = parent
            logger.debug(f"Role {role} parent set to {parent}")

    # =========================================================================
    # Associations
    # =========================================================================

    def associate_role_to_user(self, role: str, username: str) -> None:
        with self._lock:
            if role not in self._roles:
                raise UnknownRole(role)
            self._user_roles.setdefault(username, set()).add(role)

    def disassociate_role_from_user(self, role: str, username: str) -> None:
        with self._lock:
            self._user_roles.get(username, set()).discard(role)

    def associate_role_to_group(self, role: str, group: str) -> None:
        with self._lock:
            if role not in self._roles:
                raise UnknownRole(role)
            self._group_roles.setdefault(group, set()).add(role)

    def disassociate_role_from_group(self, role: str, group: str) -> None:
        with self._lock:
            self._group_roles.get(group, set()).discard(role)

    def get_roles_for_user(self, username: str) -> List[Role]:
        return [self._roles[name] for name in sorted(self._user_roles.get(username, ())) if name in self._roles]

    def get_roles_for_group(self, group: str) -> List[Role]:
        return [self._roles[name] for name in sorted(self._group_roles.get(group, ())) if name in self._roles]

    def get_user_names_for_role(self, role: str) -> Set[str]:
        return {user for user, roles in self._user_roles.items() if role in roles}

    def get_group_names_for_role(self, role: str) -> Set[str]:
        return {group for group, roles in self._group_roles.items() if role in roles}

    # =========================================================================
    # Serialization
    # =========================================================================

    @classmethod
    def from_dict(
        cls,
        roles: Mapping[str, Any],
        admin_role_name: Optional[str] = None,
        group_admin_role_name: Optional[str] = None
    ) -> "RoleService":
        """
        Build from `{name: {parent: ..., properties: {...}}}`.

        Parents are applied after every role exists, each one validated.
        """
        service = cls(admin_role_name=admin_role_name, group_admin_role_name=group_admin_role_name)
        for name, role_data in roles.items():
            role_data = role_data or {}
            properties = {k: str(v) for k, v in (role_data.get("properties") or {}).items()}
            service.add_role(service.create_role(name, properties))
        for name, role_data in roles.items():
            parent = (role_data or {}).get("parent")
            if parent is not None:
                if parent not in service._roles:
                    service.add_role(service.create_role(parent))
                service.set_parent_role(name, parent)
        return service


class UserGroupService:
    """Users, groups and group memberships"""

    def __init__(self):
        self._users: Dict[str, User] = {}
        self._groups: Dict[str, Group] = {}
        self._memberships: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()

    def add_user(self, user: User) -> None:
        with self._lock:
            self._users[user.username] = user

    def get_user(self, username: str) -> Optional[User]:
        return self._users.get(username)

    def add_group(self, group: Group) -> None:
        with self._lock:
            self._groups[group.name] = group

    def get_group(self, name: str) -> Optional[Group]:
        return self._groups.get(name)

    def remove_group(self, name: str) -> bool:
        with self._lock:
            if self._groups.pop(name, None) is None:
                return False
            for groups in self._memberships.values():
                groups.discard(name)
            return True

    def set_group_enabled(self, name: str, enabled: bool) -> None:
        """Enable or disable a group; members lose its roles on next calculation"""
        with self._lock:
            group = self._groups.get(name)
            if group is None:
                raise KeyError(f"Unknown group: {name}")
            self._groups[name] = group.model_copy(update={"enabled": enabled})
            logger.info(f"Group {name} {'enabled' if enabled else 'disabled'}")

    def add_member(self, username: str, group: str) -> None:
        with self._lock:
            self._memberships.setdefault(username, set()).add(group)

    def remove_member(self, username: str, group: str) -> None:
        with self._lock:
            self._memberships.get(username, set()).discard(group)

    def get_groups_for_user(self, username: str) -> List[Group]:
        """Groups the user belongs to, disabled ones included"""
        return [self._groups[name] for name in sorted(self._memberships.get(username, ())) if name in self._groups]

    @classmethod
    def from_dict(
        cls,
        users: Mapping[str, Any],
        groups: Mapping[str, Any]
    ) -> "UserGroupService":
        service = cls()
        for name, group_data in groups.items():
            service.add_group(Group(name=name, enabled=(group_data or {}).get("enabled", True)))
        for username, user_data in users.items():
            user_data = user_data or {}
            service.add_user(User(
                username=username,
                enabled=user_data.get("enabled", True),
                properties={k: str(v) for k, v in (user_data.get("properties") or {}).items()},
            ))
            for group in user_data.get("groups", []):
                service.add_member(username, group)
        return service


def associate_from_dict(
    role_service: RoleService,
    users: Mapping[str, Any],
    groups: Mapping[str, Any]
) -> None:
    """Apply the `roles` lists of user and group entries to a role service"""
    for name, group_data in groups.items():
        for role in (group_data or {}).get("roles", []):
            role_service.associate_role_to_group(role, name)
    for username, user_data in users.items():
        for role in (user_data or {}).get("roles", []):
            role_service.associate_role_to_user(role, username)
