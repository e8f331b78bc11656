"""
Test Data Access Rules

Verifies rule key parsing, escaping and the textual round trip.
"""

import pytest

from catalog_acl.core.rules import (
    EVERYBODY,
    AccessMode,
    DataAccessRule,
    escape_segment,
    parse_roles,
    parse_rule,
    split_rule_key,
)
from catalog_acl.errors import CatalogSecurityError, MalformedRuleKey


class TestParseRule:
    """Test suite for rule key parsing"""

    def test_three_segment_rule(self):
        """workspace.layer.mode parses into its parts"""
        rule = parse_rule("topp.states.w", "ROLE_A, ROLE_B")

        assert rule.root == "topp"
        assert rule.layer == "states"
        assert rule.access_mode == AccessMode.WRITE
        assert rule.roles == frozenset({"ROLE_A", "ROLE_B"})
        assert not rule.is_global_group_rule

    def test_escaped_dots_and_whitespace(self):
        """Escaped dots stay in names, surrounding blanks are trimmed"""
        rule = parse_rule("w. a\\.b . r", "*")

        assert rule.root == "w"
        assert rule.layer == "a.b"
        assert rule.access_mode == AccessMode.READ

    def test_global_group_rule(self):
        """Two segments target a global layer group"""
        rule = parse_rule("group.r", "ROLE_X")

        assert rule.root == "group"
        assert rule.layer is None
        assert rule.is_global_group_rule
        assert rule.key == "group.r"

    def test_wildcards(self):
        rule = parse_rule("*.*.r", "*")

        assert rule.root == "*"
        assert rule.layer == "*"
        assert rule.grants_everybody

    @pytest.mark.parametrize("key", [
        "",
        "topp",
        "a.b.c.r",
        "topp..r",
        "topp.states.x",
        "topp.states.rw",
        "*.r",
        "*.states.r",
    ])
    def test_malformed_keys_rejected(self, key):
        """Bad keys raise MalformedRuleKey carrying the key"""
        with pytest.raises(MalformedRuleKey) as exc_info:
            parse_rule(key, "ROLE_A")

        assert exc_info.value.key == key
        assert exc_info.value.reason

    def test_malformed_key_is_value_error(self):
        with pytest.raises(ValueError):
            parse_rule("topp.states.x", "*")
        with pytest.raises(CatalogSecurityError):
            parse_rule("topp.states.x", "*")


class TestRoles:
    """Test suite for role list values"""

    def test_star_means_everybody(self):
        assert parse_roles("*") == frozenset({EVERYBODY})
        assert parse_roles("ROLE_A,*") == frozenset({EVERYBODY})

    def test_empty_value_means_everybody(self):
        assert parse_roles("") == frozenset({EVERYBODY})
        assert parse_roles(" , ") == frozenset({EVERYBODY})

    def test_blank_entries_dropped(self):
        assert parse_roles("ROLE_A,, ROLE_B ,") == frozenset({"ROLE_A", "ROLE_B"})

    def test_rule_accepts_iterables(self):
        rule = DataAccessRule("topp", "states", "r", {"ROLE_B", "ROLE_A"})

        assert rule.access_mode == AccessMode.READ
        assert rule.roles == frozenset({"ROLE_A", "ROLE_B"})
        assert rule.value == "ROLE_A,ROLE_B"


class TestTextualForm:
    """Test suite for key/value serialization"""

    def test_key_escapes_dots(self):
        rule = DataAccessRule("w", "a.b", AccessMode.READ, "ROLE_A")

        assert rule.key == "w.a\\.b.r"
        assert str(rule) == "w.a\\.b.r=ROLE_A"

    def test_round_trip_with_escaped_names(self):
        """Serialized rules parse back to an equal rule"""
        rules = [
            parse_rule("w. a\\.b . r", "ROLE_B,ROLE_A"),
            parse_rule("my\\.ws.*.w", "*"),
            parse_rule("base\\.map.r", "ROLE_X"),
        ]
        for rule in rules:
            assert parse_rule(rule.key, rule.value) == rule

    def test_split_and_escape(self):
        assert split_rule_key("a\\.b.c.r") == ["a.b", "c", "r"]
        assert escape_segment("a.b") == "a\\.b"

    def test_with_roles_copies(self):
        rule = parse_rule("topp.states.r", "ROLE_A")
        edited = rule.with_roles(["ROLE_B"])

        assert edited.rule_key == rule.rule_key
        assert edited.roles == frozenset({"ROLE_B"})
        assert rule.roles == frozenset({"ROLE_A"})
