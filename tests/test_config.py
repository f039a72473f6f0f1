import pytest

from pipecraft.core.errors import ConfigError
from pipecraft.core.models import DEFAULT_OUTPUT
from pipecraft.config.loader import find_config, load_config, parse_schema

RC_YAML = """\
branchFlow: [develop, staging, main]
runsOn: self-hosted
domains:
  api:
    deployable: true
    remoteTestable: true
    paths: src/api/**
  web:
    test: false
  docs:
"""

RC_JSON = '{"branch_flow": ["develop", "main"], "domains": {"api": {"deploy": true}}}'


def test_missing_config(tmp_path):
    assert find_config(str(tmp_path)) is None
    with pytest.raises(ConfigError) as excinfo:
        load_config(start=str(tmp_path))
    assert excinfo.value.exit_code == 5


def test_explicit_path_must_exist(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "nope.yml"))


def test_yaml_config(tmp_path):
    (tmp_path / ".pipecraftrc").write_text(RC_YAML, encoding="utf-8")
    schema = load_config(start=str(tmp_path))

    assert schema.branch_flow == ["develop", "staging", "main"]
    assert schema.initial_branch == "develop"
    assert schema.final_branch == "main"
    assert schema.runner == "self-hosted"
    assert schema.output == DEFAULT_OUTPUT
    assert schema.domain_names == ["api", "docs", "web"]

    api = schema.domains["api"]
    assert (api.test, api.deploy, api.remote_test) == (True, True, True)
    assert api.paths == ["src/api/**"]
    assert schema.domains["web"].test is False
    assert schema.test_domains == ["api", "docs"]


def test_json_config_is_discovered(tmp_path):
    (tmp_path / ".pipecraftrc.json").write_text(RC_JSON, encoding="utf-8")
    assert find_config(str(tmp_path)).name == ".pipecraftrc.json"

    schema = load_config(start=str(tmp_path))
    assert schema.deploy_domains == ["api"]


def test_unparsable_config(tmp_path):
    path = tmp_path / ".pipecraftrc.yml"
    path.write_text("branchFlow: [develop\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path))


@pytest.mark.parametrize("raw", [
    ["develop", "main"],
    {"branchFlow": ["main"]},
    {"branchFlow": ["main", "main"]},
    {"branchFlow": "main"},
    {"branchFlow": ["develop", "main"], "initialBranch": "feature"},
    {"branchFlow": ["develop", "main"], "finalBranch": "release"},
    {"branchFlow": ["develop", "main"], "domains": ["api"]},
    {"branchFlow": ["develop", "main"], "domains": {"bad name": {}}},
    {"branchFlow": ["develop", "main"], "domains": {"api": {"deploy": "yes"}}},
    {"branchFlow": ["develop", "main"], "domains": {"api": {"paths": [1]}}},
    {"branchFlow": ["develop", "main"], "runner": ""},
])
def test_invalid_schemas(raw):
    with pytest.raises(ConfigError):
        parse_schema(raw)
