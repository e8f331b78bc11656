"""
Bootstrap for the Catalog Security Engine

Builds the complete security setup from configuration:
1. rule store (rules file, then inline rules)
2. catalog description
3. role service, user/group service and role calculator
4. access manager and secure catalog on top of them

Configuration errors (malformed rules in strict mode, cyclic or invalid
parents, unknown roles) surface here, at startup.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Tuple

from ..errors import ConfigurationError
from .access_manager import ResourceAccessManager
from .auth.calculator import RoleCalculator
from .auth.services import RoleService, UserGroupService, associate_from_dict
from .catalog import InMemoryCatalog
from .rule_store import CatalogMode, DataAccessRuleStore
from .secure_catalog import LayerGroupVisibilityPolicy, SecureCatalog

if TYPE_CHECKING:
    from ..config.schema import SecurityConfig

logger = logging.getLogger(__name__)


@dataclass
class SecuritySetup:
    """Everything `build_security` wires together"""
    rule_store: DataAccessRuleStore
    catalog: InMemoryCatalog
    role_service: RoleService
    user_group_service: UserGroupService
    role_calculator: RoleCalculator
    access_manager: ResourceAccessManager
    secure_catalog: SecureCatalog
    rejected_rules: List[Tuple[str, str]] = field(default_factory=list)


def load_rule_store(config: "SecurityConfig", strict: bool = False) -> Tuple[DataAccessRuleStore, List[Tuple[str, str]]]:
    """
    Build the rule store from the configured rules file and inline rules.

    Returns:
        (store, rejected entries)
    """
    try:
        store = DataAccessRuleStore(catalog_mode=CatalogMode.parse(config.security.catalog_mode))
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    rejected: List[Tuple[str, str]] = []
    rules_path = config.rules_path
    if rules_path is not None:
        rejected.extend(store.load_file(rules_path, strict=strict))
    if config.rules:
        rejected.extend(store.load_properties(config.rules, strict=strict))
    return store, rejected


def build_security(config: "SecurityConfig", strict: bool = False) -> SecuritySetup:
    """
    Wire rule store, role services, catalog and access manager from config.

    Args:
        config: Loaded configuration
        strict: Reject the whole configuration on the first malformed rule
    """
    rule_store, rejected = load_rule_store(config, strict=strict)

    try:
        layer_group_policy = LayerGroupVisibilityPolicy.parse(config.security.layer_group_visibility)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    catalog = InMemoryCatalog.from_dict(config.catalog)

    role_service = RoleService.from_dict(
        config.roles,
        admin_role_name=config.role_service.admin_role_name,
        group_admin_role_name=config.role_service.group_admin_role_name,
    )
    user_group_service = UserGroupService.from_dict(config.users, config.groups)
    associate_from_dict(role_service, config.users, config.groups)
    role_calculator = RoleCalculator(
        role_service,
        user_group_service,
        admin_role=config.security.admin_role,
        group_admin_role=config.security.group_admin_role,
    )

    access_manager = ResourceAccessManager(
        rule_store,
        catalog=catalog,
        role_calculator=role_calculator,
        admin_role=config.security.admin_role,
    )
    secure_catalog = SecureCatalog(catalog, access_manager, layer_group_policy)

    logger.info(
        f"Security ready: {len(rule_store)} rules, {len(role_service.get_roles())} roles, "
        f"catalog mode {rule_store.catalog_mode.value}"
    )

    return SecuritySetup(
        rule_store=rule_store,
        catalog=catalog,
        role_service=role_service,
        user_group_service=user_group_service,
        role_calculator=role_calculator,
        access_manager=access_manager,
        secure_catalog=secure_catalog,
        rejected_rules=rejected,
    )
