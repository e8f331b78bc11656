"""
Data Access Rules

A rule grants an access mode on a catalog path to a set of roles:

    workspace.layer.mode=ROLE_A,ROLE_B     plain rule
    workspace.*.mode=ROLE_A                every layer of a workspace
    *.*.mode=*                             whole catalog, everybody
    group.mode=ROLE_A                      global layer group (no workspace)

Dots that are part of a name are escaped with a backslash (`a\\.b`).
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from ..errors import MalformedRuleKey

# Wildcard for both key segments and role sets
ANY = "*"

# Role name meaning "everybody, anonymous included"
EVERYBODY = ANY

# Reserved key holding the catalog mode instead of a rule
MODE_KEY = "mode"

_UNESCAPED_DOT = re.compile(r"(?<!\\)\.")


class AccessMode(str, Enum):
    """Access mode, serialized by its one letter alias"""
    READ = "r"
    WRITE = "w"

    @property
    def alias(self) -> str:
        return self.value

    @classmethod
    def from_alias(cls, alias: str) -> "AccessMode":
        for mode in cls:
            if mode.value == alias:
                return mode
        raise ValueError(f"Unknown access mode: {alias}")


def escape_segment(segment: str) -> str:
    """Escape literal dots in a key segment"""
    return segment.replace(".", "\\.")


def unescape_segment(segment: str) -> str:
    """Turn escaped dots back into literal dots"""
    return segment.replace("\\.", ".")


def split_rule_key(key: str) -> List[str]:
    """
    Split a rule key on unescaped dots.

    Segments are trimmed and unescaped after splitting, so `w. a\\.b . r`
    becomes `["w", "a.b", "r"]`.
    """
    return [unescape_segment(part.strip()) for part in _UNESCAPED_DOT.split(key)]


def parse_roles(value: Optional[str]) -> FrozenSet[str]:
    """
    Parse a comma separated role list.

    An empty value or one containing `*` denotes EVERYBODY.
    """
    if value is None:
        return frozenset({EVERYBODY})
    roles = {role.strip() for role in value.split(",")}
    roles.discard("")
    if not roles or EVERYBODY in roles:
        return frozenset({EVERYBODY})
    return frozenset(roles)


@dataclass(frozen=True)
class DataAccessRule:
    """
    One parsed access statement.

    Immutable: editing a rule means replacing it in the store.
    """
    root: str
    layer: Optional[str]
    access_mode: AccessMode
    roles: FrozenSet[str] = frozenset({EVERYBODY})

    def __post_init__(self):
        # Accept a role string or any iterable of names, normalized like parsed values
        roles = self.roles if isinstance(self.roles, str) else ",".join(self.roles)
        object.__setattr__(self, "roles", parse_roles(roles))
        if isinstance(self.access_mode, str) and not isinstance(self.access_mode, AccessMode):
            object.__setattr__(self, "access_mode", AccessMode.from_alias(self.access_mode))

    @property
    def is_global_group_rule(self) -> bool:
        """Two segment rule targeting a layer group outside any workspace"""
        return self.layer is None

    @property
    def grants_everybody(self) -> bool:
        return EVERYBODY in self.roles

    @property
    def rule_key(self) -> tuple:
        """Identity of the rule inside a store"""
        return (self.root, self.layer, self.access_mode)

    @property
    def key(self) -> str:
        """Textual key with dots in names escaped"""
        if self.is_global_group_rule:
            return f"{escape_segment(self.root)}.{self.access_mode.alias}"
        return f"{escape_segment(self.root)}.{escape_segment(self.layer)}.{self.access_mode.alias}"

    @property
    def value(self) -> str:
        """Comma separated role list, sorted for stable output"""
        if self.grants_everybody:
            return EVERYBODY
        return ",".join(sorted(self.roles))

    def with_roles(self, roles: Iterable[str]) -> "DataAccessRule":
        """Copy of this rule with a different role set"""
        return DataAccessRule(self.root, self.layer, self.access_mode, frozenset(roles))

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


def parse_rule(key: str, value: Optional[str]) -> DataAccessRule:
    """
    Parse one `key=value` rule entry.

    Raises:
        MalformedRuleKey: wrong segment count, empty segment, unknown mode
            letter or a workspace wildcard combined with a concrete layer
    """
    if key is None or not key.strip():
        raise MalformedRuleKey(key or "", "empty key")

    segments = split_rule_key(key)
    if len(segments) not in (2, 3):
        raise MalformedRuleKey(
            key, f"expected 3 segments (workspace.layer.mode) or 2 (group.mode), got {len(segments)}"
        )
    if any(not segment for segment in segments):
        raise MalformedRuleKey(key, "empty segment")

    mode_alias = segments[-1]
    try:
        mode = AccessMode.from_alias(mode_alias)
    except ValueError:
        raise MalformedRuleKey(key, f"unknown access mode '{mode_alias}', expected r or w")

    root = segments[0]
    layer = segments[1] if len(segments) == 3 else None

    if layer is None and root == ANY:
        raise MalformedRuleKey(key, "global group rules cannot use a wildcard, use *.*.mode")
    if root == ANY and layer is not None and layer != ANY:
        raise MalformedRuleKey(key, "a wildcard workspace requires a wildcard layer")

    return DataAccessRule(root=root, layer=layer, access_mode=mode, roles=parse_roles(value))
