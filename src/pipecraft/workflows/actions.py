#!/usr/bin/env python3
"""
PIPECRAFT ACTION BUILDER - Composite Actions
--------------------------------------------
The pipeline workflow calls five local composite actions. Each one is a
document of its own under .github/actions/<name>/action.yml, brought in
line through the same path operations as the workflow: the name and
description are scaffolded once, inputs, outputs and runs are rewritten
on every run.

Author: Pipecraft Team
Date: 2026-01-16
"""

from typing import Callable, Dict, List, Optional

from pipecraft.core.models import Operation, PipelineSchema, Verb
from pipecraft.merge.document import DocumentAdapter
from pipecraft.merge.nodes import indent_comments
from pipecraft.workflows import templates as tpl

ACTION_DIR = ".github/actions"

# Keys the user may edit after the first run
USER_KEYS = ("name", "description", "author", "branding")


def domain_paths(schema: PipelineSchema, domain: str) -> List[str]:
    """Globs that mark a domain as changed; `<domain>/**` when none are configured."""
    return schema.domains[domain].paths or [f"{domain}/**"]


class ActionBuilder:
    """One operation list per action, keyed by the action's directory name."""

    def __init__(self, schema: PipelineSchema, adapter: Optional[DocumentAdapter] = None):
        self.schema = schema
        self.adapter = adapter or DocumentAdapter()

        # Action name -> template source, in the order the workflow uses them
        self.templates: Dict[str, Callable[[], str]] = {
            "detect-changes": self._detect_changes,
            "calculate-version": lambda: tpl.CALCULATE_VERSION_ACTION,
            "create-tag": lambda: tpl.CREATE_TAG_ACTION,
            "promote-branch": lambda: tpl.PROMOTE_BRANCH_ACTION,
            "create-release": lambda: tpl.CREATE_RELEASE_ACTION,
        }

    def names(self) -> List[str]:
        return list(self.templates)

    def path_for(self, name: str) -> str:
        return f"{ACTION_DIR}/{name}/action.yml"

    def operations(self) -> Dict[str, List[Operation]]:
        return {name: self._operations(source()) for name, source in self.templates.items()}

    def _operations(self, text: str) -> List[Operation]:
        fragment = self.adapter.from_indented_block(text)
        ops = []
        for n, key in enumerate(fragment):
            value = fragment[key]
            # Values come out of a whole file; payloads are shifted again on insert
            indent_comments(value, -2)
            ops.append(Operation(
                key,
                Verb.PRESERVE if key in USER_KEYS else Verb.OVERWRITE,
                value,
                comment_before=tpl.ACTION_BANNER if n == 0 else None,
                space_before=key not in USER_KEYS,
            ))
        return ops

    def _detect_changes(self) -> str:
        domains = self.schema.domain_names
        if not domains:
            return tpl.DETECT_CHANGES_ACTION % {
                "outputs": " {}",
                "filters": tpl.DETECT_CHANGES_FILTER % {
                    "domain": "all", "paths": tpl.DETECT_CHANGES_PATH % {"path": "**"}},
                "merge": '        echo "No domains configured"',
            }

        outputs = "\n".join(tpl.DETECT_CHANGES_OUTPUT % {"domain": d} for d in domains)
        filters = "\n".join(
            tpl.DETECT_CHANGES_FILTER % {
                "domain": d,
                "paths": "\n".join(tpl.DETECT_CHANGES_PATH % {"path": p.replace("'", "''")}
                                   for p in domain_paths(self.schema, d)),
            }
            for d in domains
        )
        merge = "\n".join(tpl.DETECT_CHANGES_MERGE % {"domain": d} for d in domains)
        return tpl.DETECT_CHANGES_ACTION % {"outputs": "\n" + outputs, "filters": filters, "merge": merge}
