"""
Shared fixtures: a complete configuration directory.
"""

import pytest

CONFIG_YAML = """
security:
  catalog_mode: "${CATALOG_MODE:-CHALLENGE}"
  layer_group_visibility: HIDE_NEVER
rules_file: layers.properties
rules:
  "topp.*.w": ROLE_TW
roles:
  ROLE_AUTHENTICATED: {}
  ROLE_TW:
    parent: ROLE_AUTHENTICATED
  ADMIN: {}
role_service:
  admin_role_name: ADMIN
groups:
  editors:
    enabled: true
    roles: [ROLE_TW]
users:
  bob:
    groups: [editors]
  root:
    roles: [ADMIN]
catalog:
  workspaces: [topp, nurc]
  layers:
    - name: "topp:states"
    - name: roads
      workspace: topp
    - name: "nurc:coverage"
  layer_groups:
    - name: tasmania
      workspace: topp
      layers: ["topp:states", "topp:roads"]
  styles: [point]
"""

RULES_PROPERTIES = """# catalog wide read
*.*.r=*
nurc.*.w=ROLE_N
"""


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Directory holding catalog_acl.yaml and layers.properties"""
    monkeypatch.delenv("CATALOG_ACL_CONFIG", raising=False)
    monkeypatch.delenv("CATALOG_MODE", raising=False)
    (tmp_path / "catalog_acl.yaml").write_text(CONFIG_YAML)
    (tmp_path / "layers.properties").write_text(RULES_PROPERTIES)
    return tmp_path
