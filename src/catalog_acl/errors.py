"""
Catalog Security Errors

Configuration-time failures raise these exceptions. Runtime access checks never
propagate them: the access manager converts resolution failures into a deny.
"""

from typing import Optional, Sequence


class CatalogSecurityError(Exception):
    """Base class for all catalog security errors"""


class MalformedRuleKey(CatalogSecurityError, ValueError):
    """A rule key could not be parsed"""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Malformed rule key '{key}': {reason}")


class DuplicateRuleKey(CatalogSecurityError):
    """A rule with the same (root, layer, mode) key already exists"""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Duplicate rule key '{key}'")


class CyclicHierarchy(CatalogSecurityError):
    """A role hierarchy traversal revisited a role"""

    def __init__(self, role: str, path: Sequence[str] = ()):
        self.role = role
        self.path = list(path)
        chain = " -> ".join(self.path) if self.path else role
        super().__init__(f"Cycle detected in role hierarchy for '{role}': {chain}")


class InvalidParentAssignment(CatalogSecurityError, ValueError):
    """A role parent change would create a cycle"""

    def __init__(self, role: str, parent: Optional[str], reason: str = ""):
        self.role = role
        self.parent = parent
        super().__init__(
            f"Cannot make '{parent}' the parent of '{role}'" + (f": {reason}" if reason else "")
        )


class UnknownRole(CatalogSecurityError, KeyError):
    """Role is not defined in the role service"""

    def __init__(self, role: str):
        self.role = role
        super().__init__(role)

    def __str__(self) -> str:
        return f"Unknown role '{self.role}'"


class UnresolvedWorkspace(CatalogSecurityError):
    """Resource points to a workspace the catalog does not know"""

    def __init__(self, workspace: Optional[str]):
        self.workspace = workspace
        super().__init__(f"Workspace '{workspace}' cannot be resolved")


class UnresolvedResource(CatalogSecurityError):
    """Object cannot be mapped to a secure tree path"""

    def __init__(self, resource: object):
        self.resource = resource
        super().__init__(f"Cannot resolve secured resource: {resource!r}")


class ConfigurationError(CatalogSecurityError):
    """Invalid value in a configuration source"""
