"""
Role, User and Group Models

Snapshots handed to the role calculator. Roles may carry default property
values; personalizing a role for a user yields a new role instance tagged
with the user name, the shared template is never mutated.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

# System roles
ADMIN_ROLE = "ROLE_ADMINISTRATOR"
GROUP_ADMIN_ROLE = "ROLE_GROUP_ADMIN"
AUTHENTICATED_ROLE = "ROLE_AUTHENTICATED"
ANONYMOUS_ROLE = "ROLE_ANONYMOUS"


class Role(BaseModel):
    """
    A named role with optional default properties.

    Two roles are equal when name and user tag match: a personalized role is
    not equal to the generic one. Authorization compares names only.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    properties: Dict[str, str] = Field(default_factory=dict)
    user_name: Optional[str] = None

    @property
    def is_personalized(self) -> bool:
        return self.user_name is not None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Role):
            return NotImplemented
        return self.name == other.name and self.user_name == other.user_name

    def __hash__(self) -> int:
        return hash((self.name, self.user_name))

    def __lt__(self, other: "Role") -> bool:
        return (self.name, self.user_name or "") < (other.name, other.user_name or "")

    def __str__(self) -> str:
        return self.name


class User(BaseModel):
    """User account snapshot"""
    username: str
    enabled: bool = True
    properties: Dict[str, str] = Field(default_factory=dict)


class Group(BaseModel):
    """User group snapshot"""
    name: str
    enabled: bool = True


def personalize_role(role: Role, user_name: str, user_properties: Mapping[str, str]) -> Role:
    """
    Overlay a user's properties on a role template.

    Every role property the user also defines takes the user's value. When
    no property overlaps the template is returned unchanged.
    """
    overlapping = [key for key in role.properties if key in user_properties]
    if not overlapping:
        return role

    properties = {
        key: (user_properties[key] if key in user_properties else value)
        for key, value in role.properties.items()
    }
    return role.model_copy(update={"properties": properties, "user_name": user_name})


def role_names(roles: Iterable[Role]) -> FrozenSet[str]:
    """Names of a role collection, for authorization comparisons"""
    return frozenset(role.name for role in roles)
