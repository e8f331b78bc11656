"""
Catalog ACL Configuration Module

Provides YAML configuration for the access-control engine.
"""

from .schema import RoleServiceConfig, SecurityConfig, SecuritySettings
from .loader import interpolate_env_vars, load_config, load_config_from_file

__all__ = [
    "SecurityConfig",
    "SecuritySettings",
    "RoleServiceConfig",
    "interpolate_env_vars",
    "load_config",
    "load_config_from_file",
]
