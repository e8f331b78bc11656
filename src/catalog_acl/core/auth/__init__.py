"""
Catalog ACL Authentication Model

Who is asking, and with which roles:
- Principal: the actor whose access is checked
- Role / User / Group: snapshot models of the role and user/group stores
- RoleHierarchyHelper: ancestor / descendant queries over parent mappings
- RoleCalculator: effective roles of a user (groups, hierarchy, admin mapping)
"""

from .principal import Principal, PrincipalType
from .roles import (
    ADMIN_ROLE,
    ANONYMOUS_ROLE,
    AUTHENTICATED_ROLE,
    GROUP_ADMIN_ROLE,
    Group,
    Role,
    User,
    personalize_role,
)
from .hierarchy import RoleHierarchyHelper
from .services import RoleService, UserGroupService
from .calculator import RoleCalculator

__all__ = [
    "Principal",
    "PrincipalType",
    "ADMIN_ROLE",
    "ANONYMOUS_ROLE",
    "AUTHENTICATED_ROLE",
    "GROUP_ADMIN_ROLE",
    "Group",
    "Role",
    "User",
    "personalize_role",
    "RoleHierarchyHelper",
    "RoleService",
    "UserGroupService",
    "RoleCalculator",
]
