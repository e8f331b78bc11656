"""
Test Data Access Rule Store

Verifies uniqueness, role lookups, properties loading/saving and dead rules.
"""

import pytest

from catalog_acl.core.catalog import InMemoryCatalog, LayerGroupInfo, LayerInfo
from catalog_acl.core.rule_store import (
    CatalogAwareRuleStore,
    CatalogMode,
    DataAccessRuleStore,
    parse_properties,
)
from catalog_acl.core.rules import AccessMode, DataAccessRule, parse_rule
from catalog_acl.errors import DuplicateRuleKey, MalformedRuleKey


class TestRuleOperations:
    """Test suite for add/remove"""

    def setup_method(self):
        self.store = DataAccessRuleStore()

    def test_add_duplicate_key_keeps_original(self):
        """A second rule with the same key is refused"""
        original = parse_rule("topp.states.r", "ROLE_A")
        duplicate = parse_rule("topp.states.r", "ROLE_B")

        assert self.store.add_rule(original) is True
        assert self.store.add_rule(duplicate) is False

        assert len(self.store) == 1
        assert self.store.get_rules()[0].roles == frozenset({"ROLE_A"})

    def test_remove_never_added_rule(self):
        self.store.add_rule(parse_rule("topp.states.r", "ROLE_A"))

        assert self.store.remove_rule(parse_rule("topp.roads.r", "ROLE_A")) is False
        assert self.store.remove_rule(parse_rule("topp.states.r", "ROLE_B")) is False
        assert len(self.store) == 1

    def test_remove_rule(self):
        rule = parse_rule("topp.states.r", "ROLE_A")
        self.store.add_rule(rule)

        assert self.store.remove_rule(rule) is True
        assert len(self.store) == 0

    def test_replace_rule_keeps_position(self):
        first = parse_rule("a.*.r", "ROLE_A")
        second = parse_rule("b.*.r", "ROLE_B")
        self.store.add_rule(first)
        self.store.add_rule(second)

        assert self.store.replace_rule(first, first.with_roles(["ROLE_C"]))
        assert self.store.get_rules()[0].roles == frozenset({"ROLE_C"})
        assert self.store.get_rule("a", "*", AccessMode.READ).roles == frozenset({"ROLE_C"})

    def test_revision_increments(self):
        revision = self.store.revision
        self.store.add_rule(parse_rule("topp.states.r", "ROLE_A"))
        assert self.store.revision > revision

        revision = self.store.revision
        self.store.add_rule(parse_rule("topp.states.r", "ROLE_A"))
        assert self.store.revision == revision

    def test_get_rules_returns_copy(self):
        self.store.add_rule(parse_rule("topp.states.r", "ROLE_A"))
        self.store.get_rules().clear()
        assert len(self.store) == 1


class TestRolesLookup:
    """Test suite for get_rules_associated_with_role"""

    def test_exact_role_subset(self):
        store = DataAccessRuleStore.from_properties({
            "*.*.r": "*",
            "topp.*.w": "ROLE_TW",
            "topp.states.w": "ROLE_TSW,ROLE_TW",
            "nurc.*.r": "ROLE_N",
        })

        rules = store.get_rules_associated_with_role("ROLE_TW")

        assert {rule.key for rule in rules} == {"topp.*.w", "topp.states.w"}
        assert rules == [rule for rule in store.get_rules() if "ROLE_TW" in rule.roles]

    def test_everybody_never_matches_a_name(self):
        store = DataAccessRuleStore.from_properties({"*.*.r": "*"})

        assert store.get_rules_associated_with_role("ROLE_ANY") == []
        assert store.get_rules_associated_with_role("*") == []


class TestProperties:
    """Test suite for the textual source"""

    def test_parse_properties(self):
        text = "# comment\n! other comment\n\nmode=CHALLENGE\ntopp.*.r = ROLE_A\nw.a\\.b.r:ROLE_B\n"

        assert parse_properties(text) == {
            "mode": "CHALLENGE",
            "topp.*.r": "ROLE_A",
            "w.a\\.b.r": "ROLE_B",
        }

    def test_mode_entry_sets_catalog_mode(self):
        store = DataAccessRuleStore()
        store.load_text("mode=mixed\n*.*.r=*\n")

        assert store.catalog_mode == CatalogMode.MIXED
        assert len(store) == 1

    def test_lenient_load_skips_bad_lines(self):
        store = DataAccessRuleStore()
        rejected = store.load_properties({
            "topp.states.r": "ROLE_A",
            "topp.states.x": "ROLE_A",
            "*.states.r": "ROLE_A",
        })

        assert len(store) == 1
        assert [key for key, _ in rejected] == ["topp.states.x", "*.states.r"]

    def test_strict_load_raises(self):
        """A bad entry after good ones rejects the whole batch"""
        store = DataAccessRuleStore()
        revision = store.revision
        with pytest.raises(MalformedRuleKey):
            store.load_properties({"mode": "MIXED", "topp.a.r": "ROLE_A", "topp.states.x": "ROLE_A"}, strict=True)

        assert len(store) == 0
        assert store.catalog_mode == CatalogMode.HIDE
        assert store.revision == revision

    def test_strict_load_rejects_duplicates(self):
        """Keys differing only in whitespace collide, nothing gets added"""
        store = DataAccessRuleStore()
        with pytest.raises(DuplicateRuleKey):
            store.load_properties({"topp.states.r": "ROLE_A", "topp . states . r": "ROLE_B"}, strict=True)
        assert len(store) == 0

    def test_strict_load_rejects_key_already_stored(self):
        store = DataAccessRuleStore.from_properties({"topp.states.r": "ROLE_A"})
        with pytest.raises(DuplicateRuleKey):
            store.load_properties({"nurc.*.r": "ROLE_B", "topp.states.r": "ROLE_C"}, strict=True)

        assert [rule.key for rule in store.get_rules()] == ["topp.states.r"]

    def test_lenient_load_skips_duplicate_in_batch(self):
        store = DataAccessRuleStore()
        rejected = store.load_properties({"topp.states.r": "ROLE_A", "topp . states . r": "ROLE_B"})

        assert len(store) == 1
        assert store.get_rules()[0].roles == frozenset({"ROLE_A"})
        assert rejected == [("topp . states . r", "duplicate rule key")]

    def test_list_values_are_joined(self):
        store = DataAccessRuleStore.from_properties({"topp.*.r": ["ROLE_A", "ROLE_B"]})
        assert store.get_rules()[0].roles == frozenset({"ROLE_A", "ROLE_B"})

    def test_save_and_reload(self, tmp_path):
        """Saved file lists mode first then sorted keys, and loads back equal"""
        store = DataAccessRuleStore(catalog_mode=CatalogMode.CHALLENGE)
        store.add_rule(parse_rule("topp.states.w", "ROLE_B,ROLE_A"))
        store.add_rule(parse_rule("*.*.r", "*"))
        store.add_rule(parse_rule("w.a\\.b.r", "ROLE_C"))

        path = store.save_properties(tmp_path / "layers.properties")
        lines = path.read_text().splitlines()

        assert lines[0] == "mode=CHALLENGE"
        assert lines[1:] == sorted(lines[1:])
        assert "topp.states.w=ROLE_A,ROLE_B" in lines

        reloaded = DataAccessRuleStore.from_file(path)
        assert reloaded.catalog_mode == CatalogMode.CHALLENGE
        assert set(reloaded.get_rules()) == set(store.get_rules())

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DataAccessRuleStore.from_file(tmp_path / "missing.properties")

    def test_unknown_mode_entry_is_rejected(self):
        store = DataAccessRuleStore()
        rejected = store.load_properties({"mode": "SHOUT"})

        assert store.catalog_mode == CatalogMode.HIDE
        assert rejected[0][0] == "mode"


class TestDeadRules:
    """Test suite for rules pointing at missing catalog objects"""

    def setup_method(self):
        self.catalog = InMemoryCatalog()
        self.catalog.add_layer(LayerInfo("states", "topp"))
        self.catalog.add_layer_group(LayerGroupInfo("basemap"))
        self.store = CatalogAwareRuleStore(self.catalog)

    def test_dead_rules_detected_but_kept(self):
        live = [
            parse_rule("*.*.r", "*"),
            parse_rule("topp.*.r", "ROLE_A"),
            parse_rule("topp.states.r", "ROLE_A"),
            parse_rule("basemap.r", "ROLE_A"),
        ]
        dead = [
            parse_rule("nurc.*.r", "ROLE_A"),
            parse_rule("topp.roads.r", "ROLE_A"),
            parse_rule("missing.r", "ROLE_A"),
        ]
        for rule in live + dead:
            self.store.add_rule(rule)

        assert self.store.get_dead_rules() == dead
        assert len(self.store) == len(live) + len(dead)
        assert isinstance(dead[0], DataAccessRule)
