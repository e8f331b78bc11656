"""
Role Calculator

Expands the roles directly associated with a user into the effective set:

1. roles associated with the user
2. roles associated with every enabled group of the user
3. the ancestors of all of the above (role hierarchy)
4. the system administrator roles when a configured admin role is held

Directly reachable roles are personalized with the user's properties;
roles reached only through inheritance keep their generic properties.
"""

import logging
from typing import Dict, List, Optional, Union

from .principal import Principal
from .roles import ADMIN_ROLE, GROUP_ADMIN_ROLE, Role, personalize_role
from .services import RoleService, UserGroupService

logger = logging.getLogger(__name__)


class RoleCalculator:
    """Computes effective roles from role and user/group snapshots"""

    def __init__(
        self,
        role_service: RoleService,
        user_group_service: Optional[UserGroupService] = None,
        admin_role: str = ADMIN_ROLE,
        group_admin_role: str = GROUP_ADMIN_ROLE
    ):
        self.role_service = role_service
        self.user_group_service = user_group_service
        self.admin_role = admin_role
        self.group_admin_role = group_admin_role

    def calculate_roles(self, principal: Union[Principal, str]) -> List[Role]:
        """
        Calculate the effective roles of a user.

        Args:
            principal: Principal or user name

        Returns:
            Roles sorted by name, no duplicates
        """
        username = principal.username if isinstance(principal, Principal) else principal
        if not username or (isinstance(principal, Principal) and principal.is_anonymous):
            return []

        user = self.user_group_service.get_user(username) if self.user_group_service else None
        if user is not None and not user.enabled:
            logger.debug(f"User {username} is disabled, no roles")
            return []
        user_properties = user.properties if user else {}

        direct: Dict[str, Role] = {}
        for role in self.role_service.get_roles_for_user(username):
            direct[role.name] = role

        if self.user_group_service:
            for group in self.user_group_service.get_groups_for_user(username):
                if not group.enabled:
                    logger.debug(f"Skipping disabled group {group.name} for {username}")
                    continue
                for role in self.role_service.get_roles_for_group(group.name):
                    direct.setdefault(role.name, role)

        effective: Dict[str, Role] = {
            name: personalize_role(role, username, user_properties)
            for name, role in direct.items()
        }

        hierarchy = self.role_service.get_hierarchy()
        for name in list(direct):
            for ancestor in hierarchy.get_ancestors(name):
                if ancestor in effective:
                    continue
                ancestor_role = self.role_service.get_role_by_name(ancestor)
                effective[ancestor] = ancestor_role if ancestor_role else Role(name=ancestor)

        self._add_mapped_system_roles(effective)

        roles = sorted(effective.values())
        logger.debug(f"Effective roles for {username}: {[r.name for r in roles]}")
        return roles

    def _add_mapped_system_roles(self, effective: Dict[str, Role]) -> None:
        admin = self.role_service.admin_role_name
        if admin and admin in effective and self.admin_role not in effective:
            effective[self.admin_role] = Role(name=self.admin_role)

        group_admin = self.role_service.group_admin_role_name
        if group_admin and group_admin in effective and self.group_admin_role not in effective:
            effective[self.group_admin_role] = Role(name=self.group_admin_role)
