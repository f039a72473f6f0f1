#!/usr/bin/env python3
"""
PIPECRAFT VALIDATOR - The Judge
-------------------------------
The final safety gate before anything reaches disk. Re-reads the
generated text as plain data and checks the structural promises the
generator makes: valid YAML with unique keys, the top-level workflow
keys, every owned job present and exactly one custom jobs section.

Author: Pipecraft Team
Date: 2026-01-16
"""

import logging
from typing import Any, Dict, List, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from pipecraft.merge.sections import END_PATTERN, START_PATTERN

logger = logging.getLogger("pipecraft.validator")


class WorkflowValidator:
    """
    Enforces workflow integrity on generated text.
    Provides the 'Self-Abort' signal: the composer refuses to write a
    workflow that fails `validate`.
    """

    def __init__(self):
        # Keys every generated workflow carries at the top level
        self.required_fields = ["name", "on", "jobs"]

    def _load(self, text: str) -> Any:
        return YAML(typ="safe", pure=True).load(text)

    def validate(self, text: str, owned_jobs: List[str]) -> Tuple[bool, str]:
        """The primary integrity check. Returns (passed, message)."""
        try:
            doc = self._load(text)
        except YAMLError as e:
            return False, f"Validation Failed: generated workflow is not valid YAML: {e}"

        if not isinstance(doc, dict):
            return False, "Validation Failed: workflow root is not a mapping."

        # --- TEST 1: Top-level structure ---
        for field in self.required_fields:
            if field not in doc:
                return False, f"Validation Failed: Missing required top-level field '{field}'."

        jobs = doc.get("jobs")
        if not isinstance(jobs, dict):
            return False, "Validation Failed: 'jobs' must be a mapping."

        # --- TEST 2: Owned jobs ---
        for job in owned_jobs:
            if not isinstance(jobs.get(job), dict):
                return False, f"Structural Error: Managed job '{job}' is missing or not a mapping."

        # --- TEST 3: Custom section sentinels ---
        starts = len(START_PATTERN.findall(text))
        ends = len(END_PATTERN.findall(text))
        if starts != 1 or ends != 1:
            return False, (f"Structural Error: expected one custom jobs section, "
                           f"found {starts} start and {ends} end markers.")

        return True, "Workflow passes structural integrity check."

    def validate_action(self, text: str) -> Tuple[bool, str]:
        """Checks a composite action.yml: a name, and `runs` using composite steps."""
        try:
            doc = self._load(text)
        except YAMLError as e:
            return False, f"Validation Failed: action is not valid YAML: {e}"

        if not isinstance(doc, dict) or not doc.get("name"):
            return False, "Validation Failed: action has no name."
        runs = doc.get("runs")
        if not isinstance(runs, dict) or runs.get("using") != "composite":
            return False, "Structural Error: action must declare 'runs.using: composite'."
        if not isinstance(runs.get("steps"), list) or not runs["steps"]:
            return False, "Structural Error: composite action has no steps."
        return True, "Action passes structural integrity check."

    def lint(self, text: str) -> List[str]:
        """Non-fatal findings, mostly `needs` entries pointing at jobs that do not exist."""
        try:
            doc = self._load(text)
        except YAMLError:
            return []
        jobs = doc.get("jobs") if isinstance(doc, dict) else None
        if not isinstance(jobs, dict):
            return []

        warnings = []
        for name, job in jobs.items():
            for dep in self._needs(job):
                if dep not in jobs:
                    logger.warning(f"Job '{name}' needs unknown job '{dep}'")
                    warnings.append(f"Job '{name}' needs unknown job '{dep}'")
        return warnings

    def _needs(self, job: Dict[str, Any]) -> List[str]:
        if not isinstance(job, dict):
            return []
        needs = job.get("needs")
        if isinstance(needs, str):
            return [needs]
        if isinstance(needs, list):
            return [n for n in needs if isinstance(n, str)]
        return []
