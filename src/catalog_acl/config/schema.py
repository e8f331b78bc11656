"""
Catalog ACL Configuration Schema

Defines the configuration structure of the access-control engine.
Everything can be specified in catalog_acl.yaml.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.auth.roles import ADMIN_ROLE, GROUP_ADMIN_ROLE


@dataclass
class SecuritySettings:
    """Engine wide settings"""
    catalog_mode: str = "HIDE"                  # HIDE, CHALLENGE or MIXED
    layer_group_visibility: str = "HIDE_EMPTY"  # HIDE_EMPTY or HIDE_NEVER
    admin_role: str = ADMIN_ROLE
    group_admin_role: str = GROUP_ADMIN_ROLE


@dataclass
class RoleServiceConfig:
    """Local role names mapped to the system administrator roles"""
    admin_role_name: Optional[str] = None
    group_admin_role_name: Optional[str] = None


@dataclass
class SecurityConfig:
    """
    Complete configuration.

    Rules come from `rules_file` (properties syntax, relative to
    `working_dir`) followed by the inline `rules` mapping.
    """
    security: SecuritySettings = field(default_factory=SecuritySettings)
    rules_file: Optional[str] = None
    rules: Dict[str, Any] = field(default_factory=dict)
    roles: Dict[str, Any] = field(default_factory=dict)
    role_service: RoleServiceConfig = field(default_factory=RoleServiceConfig)
    groups: Dict[str, Any] = field(default_factory=dict)
    users: Dict[str, Any] = field(default_factory=dict)
    catalog: Dict[str, Any] = field(default_factory=dict)

    # Runtime
    working_dir: Path = field(default_factory=Path.cwd)

    @property
    def rules_path(self) -> Optional[Path]:
        if not self.rules_file:
            return None
        path = Path(self.rules_file)
        return path if path.is_absolute() else self.working_dir / path

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SecurityConfig":
        """Create config from dictionary (parsed YAML)"""
        security_data = data.get("security") or {}
        security = SecuritySettings(
            catalog_mode=str(security_data.get("catalog_mode", "HIDE")),
            layer_group_visibility=str(security_data.get("layer_group_visibility", "HIDE_EMPTY")),
            admin_role=security_data.get("admin_role", ADMIN_ROLE),
            group_admin_role=security_data.get("group_admin_role", GROUP_ADMIN_ROLE),
        )

        role_service_data = data.get("role_service") or {}
        role_service = RoleServiceConfig(
            admin_role_name=role_service_data.get("admin_role_name"),
            group_admin_role_name=role_service_data.get("group_admin_role_name"),
        )

        working_dir = data.get("working_dir")

        return cls(
            security=security,
            rules_file=data.get("rules_file"),
            rules=dict(data.get("rules") or {}),
            roles=dict(data.get("roles") or {}),
            role_service=role_service,
            groups=dict(data.get("groups") or {}),
            users=dict(data.get("users") or {}),
            catalog=dict(data.get("catalog") or {}),
            working_dir=Path(working_dir) if working_dir else Path.cwd(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return {
            "security": {
                "catalog_mode": self.security.catalog_mode,
                "layer_group_visibility": self.security.layer_group_visibility,
                "admin_role": self.security.admin_role,
                "group_admin_role": self.security.group_admin_role,
            },
            "rules_file": self.rules_file,
            "rules": dict(self.rules),
            "roles": dict(self.roles),
            "role_service": {
                "admin_role_name": self.role_service.admin_role_name,
                "group_admin_role_name": self.role_service.group_admin_role_name,
            },
            "groups": dict(self.groups),
            "users": dict(self.users),
            "catalog": dict(self.catalog),
            "working_dir": str(self.working_dir),
        }
