"""
Test Configuration

Verifies YAML loading, environment interpolation and security wiring.
"""

import pytest

from catalog_acl.config import SecurityConfig, interpolate_env_vars, load_config, load_config_from_file
from catalog_acl.core.auth.principal import Principal
from catalog_acl.core.auth.roles import ADMIN_ROLE
from catalog_acl.core.bootstrap import build_security
from catalog_acl.core.catalog import InMemoryCatalog
from catalog_acl.core.rule_store import CatalogMode
from catalog_acl.core.rules import AccessMode
from catalog_acl.core.secure_catalog import LayerGroupVisibilityPolicy
from catalog_acl.errors import ConfigurationError, MalformedRuleKey


class TestInterpolation:
    """Test suite for ${VAR} substitution"""

    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("RULES_DIR", "/etc/acl")
        assert interpolate_env_vars("${RULES_DIR}/layers.properties") == "/etc/acl/layers.properties"

    def test_default_value(self, monkeypatch):
        monkeypatch.delenv("CATALOG_MODE", raising=False)
        assert interpolate_env_vars({"mode": ["${CATALOG_MODE:-HIDE}"]}) == {"mode": ["HIDE"]}

    def test_missing_required_variable(self, monkeypatch):
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        with pytest.raises(KeyError):
            interpolate_env_vars("${NOT_SET_ANYWHERE}")

    def test_non_strings_untouched(self):
        assert interpolate_env_vars(42) == 42


class TestLoading:
    """Test suite for config discovery"""

    def test_load_from_file(self, config_dir):
        config = load_config_from_file(config_dir / "catalog_acl.yaml")

        assert config.security.catalog_mode == "CHALLENGE"
        assert config.working_dir == config_dir.absolute()
        assert config.rules_path == config_dir.absolute() / "layers.properties"
        assert config.role_service.admin_role_name == "ADMIN"

    def test_env_overrides_default(self, config_dir, monkeypatch):
        monkeypatch.setenv("CATALOG_MODE", "MIXED")
        config = load_config_from_file(config_dir / "catalog_acl.yaml")
        assert config.security.catalog_mode == "MIXED"

    def test_search_working_dir(self, config_dir):
        config = load_config(working_dir=config_dir)
        assert config.rules == {"topp.*.w": "ROLE_TW"}

    def test_env_var_names_file(self, config_dir, monkeypatch):
        monkeypatch.setenv("CATALOG_ACL_CONFIG", str(config_dir / "catalog_acl.yaml"))
        config = load_config()
        assert config.rules_file == "layers.properties"

    def test_defaults_when_nothing_found(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CATALOG_ACL_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)

        config = load_config()

        assert config.rules_file is None
        assert config.security.catalog_mode == "HIDE"
        assert config.working_dir.resolve() == tmp_path.resolve()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_from_file(tmp_path / "nope.yaml")

    def test_round_trip_dict(self):
        config = SecurityConfig.from_dict({"security": {"catalog_mode": "MIXED"}, "rules": {"*.*.r": "*"}})
        again = SecurityConfig.from_dict(config.to_dict())

        assert again.security.catalog_mode == "MIXED"
        assert again.rules == {"*.*.r": "*"}


class TestBuildSecurity:
    """Test suite for wiring from config"""

    def setup_method(self):
        self.bob = Principal.user("bob")

    def test_wiring(self, config_dir):
        setup = build_security(load_config_from_file(config_dir / "catalog_acl.yaml"))
        states = setup.catalog.get_layer_by_name("topp:states")
        coverage = setup.catalog.get_layer_by_name("nurc:coverage")

        assert len(setup.rule_store) == 3
        assert setup.rule_store.catalog_mode == CatalogMode.CHALLENGE
        assert setup.secure_catalog.layer_group_policy == LayerGroupVisibilityPolicy.HIDE_NEVER
        assert setup.access_manager.can_access(self.bob, states, AccessMode.WRITE)
        assert not setup.access_manager.can_access(self.bob, coverage, AccessMode.WRITE)
        assert setup.access_manager.can_access(None, coverage, AccessMode.READ)

    def test_admin_mapping(self, config_dir):
        setup = build_security(load_config_from_file(config_dir / "catalog_acl.yaml"))
        coverage = setup.catalog.get_layer_by_name("nurc:coverage")

        assert ADMIN_ROLE in setup.access_manager.get_effective_roles(Principal.user("root"))
        assert setup.access_manager.can_access(Principal.user("root"), coverage, AccessMode.WRITE)

    def test_custom_admin_role_keeps_bypass(self, config_dir):
        config = load_config_from_file(config_dir / "catalog_acl.yaml")
        config.security.admin_role = "ROLE_SUPERUSER"
        setup = build_security(config)
        root = Principal.user("root")
        coverage = setup.catalog.get_layer_by_name("nurc:coverage")

        assert "ROLE_SUPERUSER" in setup.access_manager.get_effective_roles(root)
        assert ADMIN_ROLE not in setup.access_manager.get_effective_roles(root)
        assert setup.access_manager.can_access(root, coverage, AccessMode.WRITE)

    def test_group_members_resolved(self, config_dir):
        setup = build_security(load_config_from_file(config_dir / "catalog_acl.yaml"))
        group = setup.catalog.get_layer_group_by_name("tasmania", "topp")

        assert [layer.name for layer in group.layers] == ["states", "roads"]

    def test_rejected_rules_reported(self):
        config = SecurityConfig.from_dict({"rules": {"*.*.r": "*", "topp.states.x": "ROLE_A"}})

        setup = build_security(config)

        assert len(setup.rule_store) == 1
        assert setup.rejected_rules[0][0] == "topp.states.x"

    def test_strict_rejects_bad_rule(self):
        config = SecurityConfig.from_dict({"rules": {"topp.states.x": "ROLE_A"}})
        with pytest.raises(MalformedRuleKey):
            build_security(config, strict=True)

    def test_bad_catalog_mode(self):
        config = SecurityConfig.from_dict({"security": {"catalog_mode": "LOUD"}})
        with pytest.raises(ConfigurationError):
            build_security(config)


class TestCatalogDescription:
    """Test suite for InMemoryCatalog.from_dict"""

    def test_unknown_member_drops_its_style(self):
        catalog = InMemoryCatalog.from_dict({
            "layers": [{"name": "topp:states"}, {"name": "topp:roads"}],
            "styles": ["polygon", "line"],
            "layer_groups": [{
                "name": "tasmania",
                "workspace": "topp",
                "layers": ["topp:states", "topp:missing", "topp:roads"],
                "styles": ["polygon", "point", "line"],
            }],
        })
        group = catalog.get_layer_group_by_name("tasmania", "topp")

        assert [layer.name for layer in group.layers] == ["states", "roads"]
        assert [style.name for style in group.styles] == ["polygon", "line"]

    def test_missing_styles_padded(self):
        catalog = InMemoryCatalog.from_dict({
            "layers": [{"name": "topp:states"}, {"name": "topp:roads"}],
            "layer_groups": [{"name": "tasmania", "workspace": "topp", "layers": ["topp:states", "topp:roads"]}],
        })

        assert catalog.get_layer_group_by_name("tasmania", "topp").styles == [None, None]
