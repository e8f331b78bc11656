"""
Catalog ACL Core

Rules, secure tree, access manager and the filtering catalog.
"""

from .rules import AccessMode, DataAccessRule, parse_rule
from .rule_store import CatalogAwareRuleStore, CatalogMode, DataAccessRuleStore
from .catalog import Catalog, InMemoryCatalog, LayerGroupInfo, LayerInfo, StyleInfo, WorkspaceInfo
from .secure_tree import SecureTreeNode, build_secure_tree
from .access_manager import AccessLimits, ResourceAccessManager, SecurityFilter
from .secure_catalog import (
    FilteredList,
    LayerGroupVisibilityPolicy,
    RequestContext,
    SecureCatalog,
    SecuredLayerGroup,
    SecuredResource,
    WrapperPolicy,
)

__all__ = [
    # Rules
    "AccessMode",
    "DataAccessRule",
    "parse_rule",
    "CatalogAwareRuleStore",
    "CatalogMode",
    "DataAccessRuleStore",
    # Catalog
    "Catalog",
    "InMemoryCatalog",
    "LayerGroupInfo",
    "LayerInfo",
    "StyleInfo",
    "WorkspaceInfo",
    # Secure tree
    "SecureTreeNode",
    "build_secure_tree",
    # Access Manager
    "AccessLimits",
    "ResourceAccessManager",
    "SecurityFilter",
    # Secure catalog
    "FilteredList",
    "LayerGroupVisibilityPolicy",
    "RequestContext",
    "SecureCatalog",
    "SecuredLayerGroup",
    "SecuredResource",
    "WrapperPolicy",
]
