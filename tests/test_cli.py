"""
Test Command Line

Runs the catalog-acl commands against a configuration directory.
"""

from catalog_acl.__main__ import main
from catalog_acl.core.auth.calculator import RoleCalculator
from catalog_acl.errors import CyclicHierarchy


class TestCommands:
    """Test suite for validate / check / roles / tree"""

    def test_check_allowed(self, config_dir, capsys):
        code = main(["--config", str(config_dir / "catalog_acl.yaml"), "check", "bob", "topp:states", "--mode", "w"])

        out = capsys.readouterr().out
        assert code == 0
        assert "write: yes" in out
        assert "CHALLENGE" in out

    def test_check_denied(self, config_dir, capsys):
        code = main(["--config", str(config_dir / "catalog_acl.yaml"), "check", "anonymous", "nurc:coverage", "-m", "w"])

        assert code == 1
        assert "write: no" in capsys.readouterr().out

    def test_check_unknown_resource(self, config_dir, capsys):
        code = main(["--config", str(config_dir / "catalog_acl.yaml"), "check", "bob", "topp:nothing"])

        assert code == 2
        assert "Unknown resource" in capsys.readouterr().out

    def test_roles(self, config_dir, capsys):
        code = main(["--config", str(config_dir / "catalog_acl.yaml"), "roles", "bob"])

        out = capsys.readouterr().out
        assert code == 0
        assert "ROLE_TW" in out
        assert "ROLE_AUTHENTICATED" in out

    def test_validate_clean(self, config_dir, capsys):
        code = main(["--config", str(config_dir / "catalog_acl.yaml"), "validate"])

        assert code == 0
        assert "3 rules, 0 rejected, 0 dead" in capsys.readouterr().out

    def test_validate_reports_bad_and_dead_rules(self, config_dir, capsys):
        with open(config_dir / "layers.properties", "a") as f:
            f.write("topp.states.x=ROLE_A\nghost.*.r=ROLE_A\n")

        code = main(["--config", str(config_dir / "catalog_acl.yaml"), "validate"])

        out = capsys.readouterr().out
        assert code == 1
        assert "ERROR   topp.states.x" in out
        assert "WARNING ghost.*.r=ROLE_A" in out

    def test_tree(self, config_dir, capsys):
        code = main(["--config", str(config_dir / "catalog_acl.yaml"), "tree"])

        out = capsys.readouterr().out
        assert code == 0
        assert out.splitlines()[0].startswith("*")
        assert "  topp  [w=ROLE_TW]" in out

    def test_missing_config(self, tmp_path, capsys):
        code = main(["--config", str(tmp_path / "missing.yaml"), "tree"])

        assert code == 2
        assert "Error" in capsys.readouterr().err

    def test_command_error_reported(self, config_dir, capsys, monkeypatch):
        def cyclic(self, principal):
            raise CyclicHierarchy("ROLE_A", ["ROLE_A", "ROLE_B", "ROLE_A"])

        monkeypatch.setattr(RoleCalculator, "calculate_roles", cyclic)

        code = main(["--config", str(config_dir / "catalog_acl.yaml"), "roles", "bob"])

        assert code == 2
        assert "Error" in capsys.readouterr().err
