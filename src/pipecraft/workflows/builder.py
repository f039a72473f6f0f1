#!/usr/bin/env python3
"""
PIPECRAFT WORKFLOW BUILDER - Operation Factory
----------------------------------------------
Turns a PipelineSchema into the ordered list of path operations for the
pipeline workflow. Each job kind has its own builder; the registry order
is the order jobs appear in the generated file.

Author: Pipecraft Team
Date: 2026-01-16
"""

from typing import Callable, List, Optional

from pipecraft.core.models import Operation, PipelineSchema, Verb
from pipecraft.merge.document import DocumentAdapter
from pipecraft.workflows import templates as tpl


def owned_jobs(schema: PipelineSchema) -> List[str]:
    """The Owned-Job Registry: every job key this schema generates, in file order."""
    return (
        ["changes"]
        + [f"test-{d}" for d in schema.test_domains]
        + ["version"]
        + [f"deploy-{d}" for d in schema.deploy_domains]
        + [f"remote-test-{d}" for d in schema.remote_test_domains]
        + ["tag", "promote", "release"]
    )


def domain_jobs(domain: str) -> List[str]:
    return [f"test-{domain}", f"deploy-{domain}", f"remote-test-{domain}"]


def promotable_condition(branch_flow: List[str]) -> str:
    """Every branch except the last may promote."""
    return " || ".join(f"github.ref_name == '{b}'" for b in branch_flow[:-1])


def next_branch_expression(branch_flow: List[str]) -> str:
    if len(branch_flow) == 1:
        return "''"
    if len(branch_flow) == 2:
        return f"'{branch_flow[1]}'"
    # Each branch promotes to its successor: develop -> staging, staging -> main
    pairs = [f"github.ref_name == '{src}' && '{dst}'"
             for src, dst in zip(branch_flow[:-2], branch_flow[1:-1])]
    return " || ".join(pairs + [f"'{branch_flow[-1]}'"])


class WorkflowBuilder:
    """
    Strategy table of job builders. Each entry returns the operations for
    one region of the workflow; `operations()` concatenates them in order.
    """

    def __init__(self, schema: PipelineSchema, adapter: Optional[DocumentAdapter] = None):
        self.schema = schema
        self.adapter = adapter or DocumentAdapter()

        # Registry of active builders, in output order
        self.active_builders: List[Callable[[], List[Operation]]] = [
            self._build_header,
            self._build_changes,
            self._build_test_jobs,
            self._build_version,
            self._build_deploy_jobs,
            self._build_remote_test_jobs,
            self._build_tag_promote_release,
        ]

    def operations(self) -> List[Operation]:
        ops: List[Operation] = []
        for builder in self.active_builders:
            ops.extend(builder())
        return ops

    def owned_jobs(self) -> List[str]:
        return owned_jobs(self.schema)

    def _fragment(self, template: str, **values) -> Callable:
        values.setdefault("runner", self.schema.runner)
        return lambda: self.adapter.from_indented_block(template % values)

    # --- Header ---

    def _build_header(self) -> List[Operation]:
        flow = self.schema.branch_flow
        inputs = {
            name: {"description": text, "required": False, "type": "string"}
            for name, text in tpl.WORKFLOW_INPUTS.items()
        }
        ops = [
            Operation("name", Verb.PRESERVE,
                      lambda: self.adapter.scalar_from("Pipeline", "double"),
                      comment_before=tpl.HEADER_BANNER),
            Operation("run-name", Verb.PRESERVE,
                      lambda: self.adapter.scalar_from(tpl.RUN_NAME % {"branches": ",".join(flow)},
                                                       "double"),
                      space_before=True),
            Operation("on", Verb.SET, {}, space_before=True),
        ]
        for trigger in ("workflow_dispatch", "workflow_call"):
            for name, definition in inputs.items():
                ops.append(Operation(f"on.{trigger}.inputs.{name}", Verb.SET, dict(definition)))
        ops.extend([
            Operation("on.push.branches", Verb.SET, list(flow)),
            Operation("on.pull_request.types", Verb.SET, ["opened", "synchronize", "reopened"]),
            Operation("on.pull_request.branches", Verb.SET, [self.schema.initial_branch]),
        ])
        return ops

    # --- Owned jobs ---

    def _build_changes(self) -> List[Operation]:
        template = tpl.CHANGES_JOB
        if self.schema.domain_names:
            outputs = "\n".join(tpl.CHANGES_OUTPUT % {"domain": d} for d in self.schema.domain_names)
            template += "outputs:\n" + outputs.replace("%", "%%") + "\n"
        return [Operation("jobs", Verb.SET, {}, space_before=True), Operation(
            "jobs.changes", Verb.OVERWRITE,
            self._fragment(template, base_ref=self.schema.final_branch),
            comment_before=tpl.CHANGES_BANNER,
            space_before=True,
        )]

    def _build_test_jobs(self) -> List[Operation]:
        return [
            Operation(f"jobs.test-{d}", Verb.PRESERVE, self._fragment(tpl.TEST_JOB, domain=d),
                      comment_before=tpl.TESTING_BANNER if i == 0 else None,
                      space_before=True)
            for i, d in enumerate(self.schema.test_domains)
        ]

    def _build_version(self) -> List[Operation]:
        tests = [f"test-{d}" for d in self.schema.test_domains]
        conditions = ["always()", "github.event_name != 'pull_request'"]
        if tests:
            conditions.append("(" + " || ".join(f"needs.{j}.result == 'success'" for j in tests) + ")")
            conditions.append(" && ".join(f"needs.{j}.result != 'failure'" for j in tests))
        return [Operation(
            "jobs.version", Verb.OVERWRITE,
            self._fragment(tpl.VERSION_JOB,
                           needs=", ".join(["changes"] + tests),
                           condition=" && ".join(conditions),
                           base_ref=self.schema.final_branch),
            comment_before=tpl.VERSION_BANNER,
            space_before=True,
        )]

    def _build_deploy_jobs(self) -> List[Operation]:
        return [
            Operation(f"jobs.deploy-{d}", Verb.PRESERVE, self._fragment(tpl.DEPLOY_JOB, domain=d),
                      comment_before=tpl.DEPLOY_BANNER if i == 0 else None,
                      space_before=True)
            for i, d in enumerate(self.schema.deploy_domains)
        ]

    def _build_remote_test_jobs(self) -> List[Operation]:
        return [
            Operation(f"jobs.remote-test-{d}", Verb.PRESERVE,
                      self._fragment(tpl.REMOTE_TEST_JOB, domain=d),
                      comment_before=tpl.REMOTE_TEST_BANNER if i == 0 else None,
                      space_before=True)
            for i, d in enumerate(self.schema.remote_test_domains)
        ]

    def _build_tag_promote_release(self) -> List[Operation]:
        flow = self.schema.branch_flow
        deployments = ([f"deploy-{d}" for d in self.schema.deploy_domains]
                       + [f"remote-test-{d}" for d in self.schema.remote_test_domains])
        conditions = [
            "always()",
            "github.event_name != 'pull_request'",
            f"github.ref_name == '{self.schema.initial_branch}'",
            "needs.version.result == 'success'",
            "needs.version.outputs.version != ''",
        ]
        if deployments:
            conditions.append("(" + " && ".join(f"needs.{j}.result != 'failure'" for j in deployments) + ")")
            conditions.append("(" + " || ".join(f"needs.{j}.result == 'success'" for j in deployments) + ")")

        return [
            Operation("jobs.tag", Verb.OVERWRITE,
                      self._fragment(tpl.TAG_JOB, condition=" && ".join(conditions),
                                     needs=", ".join(["version"] + deployments)),
                      comment_before=tpl.TAG_BANNER, space_before=True),
            Operation("jobs.promote", Verb.OVERWRITE,
                      self._fragment(tpl.PROMOTE_JOB,
                                     promotable=promotable_condition(flow),
                                     next_branch=next_branch_expression(flow)),
                      space_before=True),
            Operation("jobs.release", Verb.OVERWRITE,
                      self._fragment(tpl.RELEASE_JOB, final_branch=self.schema.final_branch),
                      space_before=True),
        ]
