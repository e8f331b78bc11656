"""
Principal Identity Model

The actor whose catalog access is checked:
- Principal: user name, principal type and the roles granted at authentication
- PrincipalType: distinguishes anonymous requests from authenticated ones
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional


class PrincipalType(str, Enum):
    """Type of principal"""
    HUMAN = "human"          # Human user
    SERVICE = "service"      # Service account
    SYSTEM = "system"        # System/internal principal
    ANONYMOUS = "anonymous"  # Unauthenticated


@dataclass(frozen=True)
class Principal:
    """
    Authenticated (or anonymous) actor.

    `roles` holds the role names granted by the authentication layer; the
    role calculator may add more when the access manager resolves the
    effective set.
    """
    username: Optional[str]
    principal_type: PrincipalType = PrincipalType.HUMAN
    roles: FrozenSet[str] = frozenset()
    display_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self):
        if not isinstance(self.roles, frozenset):
            object.__setattr__(self, "roles", frozenset(self.roles))

    @property
    def is_anonymous(self) -> bool:
        return self.principal_type == PrincipalType.ANONYMOUS or not self.username

    @classmethod
    def user(cls, username: str, roles: Iterable[str] = (), **kwargs) -> "Principal":
        """Authenticated human user"""
        return cls(username=username, principal_type=PrincipalType.HUMAN, roles=frozenset(roles), **kwargs)

    @classmethod
    def system_principal(cls) -> "Principal":
        """Create the system principal (for internal operations)"""
        from .roles import ADMIN_ROLE

        return cls(
            username="system",
            principal_type=PrincipalType.SYSTEM,
            roles=frozenset({ADMIN_ROLE}),
            display_name="System",
        )

    @classmethod
    def anonymous_principal(cls) -> "Principal":
        """Create an anonymous principal (unauthenticated)"""
        return cls(
            username=None,
            principal_type=PrincipalType.ANONYMOUS,
            display_name="Anonymous",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary"""
        return {
            "username": self.username,
            "principal_type": self.principal_type.value,
            "roles": sorted(self.roles),
            "display_name": self.display_name,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Principal":
        """Deserialize from dictionary"""
        return cls(
            username=data.get("username"),
            principal_type=PrincipalType(data.get("principal_type", "human")),
            roles=frozenset(data.get("roles", [])),
            display_name=data.get("display_name"),
            metadata=data.get("metadata", {}),
        )

    def __str__(self) -> str:
        return self.username or "anonymous"
