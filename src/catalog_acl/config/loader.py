"""
Catalog ACL Configuration Loader

Loads configuration from YAML files with environment variable interpolation.

Environment Variable Interpolation:
- ${VAR_NAME} - Required variable, raises error if not set
- ${VAR_NAME:-default} - Optional variable with default value

Example:
```yaml
security:
  catalog_mode: "${CATALOG_MODE:-HIDE}"
rules_file: "${RULES_FILE}"
```
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .schema import SecurityConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "catalog_acl.yaml"
CONFIG_ENV_VAR = "CATALOG_ACL_CONFIG"

# ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r'\$\{([^}:]+)(?::-([^}]*))?\}')


def interpolate_env_vars(value: Any) -> Any:
    """
    Recursively interpolate environment variables in configuration values.

    Args:
        value: Configuration value (string, dict, list, or primitive)

    Returns:
        Value with environment variables interpolated

    Raises:
        KeyError: A required variable is not set
    """
    if isinstance(value, str):
        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2)

            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise KeyError(
                f"Environment variable '{var_name}' is required but not set. "
                f"Set it or provide a default: ${{{var_name}:-default}}"
            )

        return ENV_VAR_PATTERN.sub(replace_env_var, value)

    if isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]

    return value


def load_config_from_file(
    config_path: Union[str, Path],
    interpolate: bool = True
) -> SecurityConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to catalog_acl.yaml
        interpolate: Whether to interpolate environment variables (default: True)

    Raises:
        FileNotFoundError: If config file doesn't exist
        KeyError: If required environment variable is not set
        yaml.YAMLError: If YAML is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raw_config = {}

    if interpolate:
        try:
            raw_config = interpolate_env_vars(raw_config)
        except KeyError as e:
            logger.error(f"Configuration error: {e}")
            raise

    # Relative paths (rules_file) resolve against the config file's directory
    if "working_dir" not in raw_config:
        raw_config["working_dir"] = str(config_path.parent.absolute())

    return SecurityConfig.from_dict(raw_config)


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    working_dir: Optional[Union[str, Path]] = None,
) -> SecurityConfig:
    """
    Load configuration with sensible defaults.

    Search order:
    1. Explicit config_path if provided
    2. File named by $CATALOG_ACL_CONFIG
    3. catalog_acl.yaml, then config/catalog_acl.yaml, in working_dir
    4. The same in the current directory
    5. Default configuration (no rules: everything denied)
    """
    if config_path:
        return load_config_from_file(config_path)

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return load_config_from_file(env_path)

    search_paths = []
    if working_dir:
        working_dir = Path(working_dir)
        search_paths.append(working_dir / CONFIG_FILE_NAME)
        search_paths.append(working_dir / "config" / CONFIG_FILE_NAME)

    cwd = Path.cwd()
    search_paths.append(cwd / CONFIG_FILE_NAME)
    search_paths.append(cwd / "config" / CONFIG_FILE_NAME)

    for path in search_paths:
        if path.exists():
            logger.info(f"Found configuration at {path}")
            return load_config_from_file(path)

    logger.info(f"No {CONFIG_FILE_NAME} found, using default configuration")
    return SecurityConfig(working_dir=Path(working_dir) if working_dir else cwd)
