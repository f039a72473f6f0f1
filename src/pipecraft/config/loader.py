#!/usr/bin/env python3
"""
PIPECRAFT CONFIG LOADER - .pipecraftrc Discovery
------------------------------------------------
Finds the schema file in the working directory, reads it with
ruamel.yaml's safe loader (JSON files included, JSON being a YAML
subset) and validates it into a PipelineSchema.

Author: Pipecraft Team
Date: 2026-01-16
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from pipecraft.core.errors import ConfigError
from pipecraft.core.models import DEFAULT_OUTPUT, DomainConfig, PipelineSchema

logger = logging.getLogger("pipecraft.config")

CONFIG_FILES = [".pipecraftrc", ".pipecraftrc.yml", ".pipecraftrc.yaml", ".pipecraftrc.json"]

# Domain names end up in job keys and `${{ }}` expressions
DOMAIN_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")

# Accepted spellings for each DomainConfig switch
DOMAIN_FLAGS = {
    "test": ("test", "testable"),
    "deploy": ("deploy", "deployable"),
    "remote_test": ("remoteTest", "remoteTestable", "remote_test"),
}


def find_config(start: str = ".") -> Optional[Path]:
    """Returns the first config file present in `start`, in CONFIG_FILES order."""
    base = Path(start)
    for name in CONFIG_FILES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Optional[str] = None, start: str = ".") -> PipelineSchema:
    """Loads and validates the schema from `path`, or from the discovered file."""
    config_path = Path(path) if path else find_config(start)
    if config_path is None:
        raise ConfigError(f"No configuration found (looked for {', '.join(CONFIG_FILES)})")
    if not config_path.is_file():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        raw = YAML(typ="safe", pure=True).load(config_path.read_text(encoding="utf-8-sig"))
    except YAMLError as e:
        raise ConfigError(f"Cannot parse {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e

    logger.info(f"Loaded configuration from {config_path}")
    return parse_schema(raw)


def _pick(data: Dict[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        if name in data:
            return data[name]
    return default


def _string_list(value: Any, field: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) and v for v in value):
        raise ConfigError(f"'{field}' must be a list of non-empty strings")
    return list(value)


def _parse_domain(name: str, data: Any) -> DomainConfig:
    if not DOMAIN_NAME.match(name):
        raise ConfigError(f"Invalid domain name '{name}': use letters, digits, '-' and '_'")
    if data is None:
        return DomainConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Domain '{name}' must be a mapping")

    flags = {}
    for attr, names in DOMAIN_FLAGS.items():
        value = _pick(data, *names)
        if value is None:
            continue
        if not isinstance(value, bool):
            raise ConfigError(f"Domain '{name}': '{names[0]}' must be true or false")
        flags[attr] = value

    paths = data.get("paths", [])
    if isinstance(paths, str):
        paths = [paths]
    return DomainConfig(paths=_string_list(paths, f"domains.{name}.paths"), **flags)


def parse_schema(raw: Any) -> PipelineSchema:
    """Validates plain config data (camelCase or snake_case keys) into a PipelineSchema."""
    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping")

    flow = _string_list(_pick(raw, "branchFlow", "branch_flow"), "branchFlow")
    if len(flow) < 2:
        raise ConfigError("'branchFlow' needs at least two branches")
    if len(set(flow)) != len(flow):
        raise ConfigError("'branchFlow' contains duplicate branches")

    initial = _pick(raw, "initialBranch", "initial_branch", default=flow[0])
    final = _pick(raw, "finalBranch", "final_branch", default=flow[-1])
    for label, branch in (("initialBranch", initial), ("finalBranch", final)):
        if branch not in flow:
            raise ConfigError(f"'{label}' ({branch}) is not part of branchFlow")

    domains_raw = raw.get("domains") or {}
    if not isinstance(domains_raw, dict):
        raise ConfigError("'domains' must be a mapping of domain name to settings")
    domains = {str(name): _parse_domain(str(name), data) for name, data in domains_raw.items()}

    runner = _pick(raw, "runner", "runsOn", default="ubuntu-latest")
    output = _pick(raw, "output", "outputPath", default=DEFAULT_OUTPUT)
    for label, value in (("runner", runner), ("output", output)):
        if not isinstance(value, str) or not value:
            raise ConfigError(f"'{label}' must be a non-empty string")

    return PipelineSchema(
        branch_flow=flow,
        domains=domains,
        initial_branch=initial,
        final_branch=final,
        runner=runner,
        output=output,
    )
