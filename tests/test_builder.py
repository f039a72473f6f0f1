import pytest
from ruamel.yaml.scalarstring import DoubleQuotedScalarString

from pipecraft.core.models import DomainConfig, PipelineSchema, Verb
from pipecraft.merge.applicator import to_plain
from pipecraft.workflows.builder import (
    WorkflowBuilder, domain_jobs, next_branch_expression, owned_jobs, promotable_condition,
)


@pytest.fixture
def schema():
    return PipelineSchema(
        branch_flow=["develop", "staging", "main"],
        domains={
            "web": DomainConfig(),
            "api": DomainConfig(deploy=True, remote_test=True),
            "docs": DomainConfig(test=False),
        },
    )


def payload(builder, path):
    op = next(op for op in builder.operations() if op.path == path)
    return to_plain(op.build())


def test_owned_job_registry(schema):
    assert owned_jobs(schema) == [
        "changes", "test-api", "test-web", "version",
        "deploy-api", "remote-test-api", "tag", "promote", "release",
    ]
    assert domain_jobs("api") == ["test-api", "deploy-api", "remote-test-api"]


def test_operation_order_and_verbs(schema):
    ops = WorkflowBuilder(schema).operations()
    assert [op.path for op in ops[:3]] == ["name", "run-name", "on"]

    jobs = [op for op in ops if op.path.startswith("jobs.")]
    assert [op.path for op in jobs] == [
        "jobs.changes", "jobs.test-api", "jobs.test-web", "jobs.version",
        "jobs.deploy-api", "jobs.remote-test-api", "jobs.tag", "jobs.promote", "jobs.release",
    ]
    verbs = {op.path: op.verb for op in jobs}
    assert verbs["jobs.changes"] is Verb.OVERWRITE
    assert verbs["jobs.test-api"] is Verb.PRESERVE
    assert verbs["jobs.deploy-api"] is Verb.PRESERVE
    assert verbs["jobs.tag"] is Verb.OVERWRITE

    # Section banners only on the first job of each kind
    banners = {op.path: op.comment_before for op in jobs}
    assert "TESTING JOBS" in banners["jobs.test-api"]
    assert banners["jobs.test-web"] is None


def test_header_operations(schema):
    builder = WorkflowBuilder(schema)
    ops = {op.path: op for op in builder.operations()}

    name = ops["name"].build()
    assert isinstance(name, DoubleQuotedScalarString) and name == "Pipeline"
    assert "PIPECRAFT MANAGED WORKFLOW" in ops["name"].comment_before
    assert ops["run-name"].verb is Verb.PRESERVE
    assert "develop,staging,main" in ops["run-name"].build()

    assert ops["on.push.branches"].build() == ["develop", "staging", "main"]
    assert ops["on.pull_request.branches"].build() == ["develop"]
    assert ops["on.workflow_call.inputs.commitSha"].build() == {
        "description": "The exact commit SHA to checkout and test",
        "required": False,
        "type": "string",
    }


def test_changes_outputs_cover_every_domain(schema):
    outputs = payload(WorkflowBuilder(schema), "jobs.changes")["outputs"]
    assert list(outputs) == ["api", "docs", "web"]
    assert outputs["api"] == "${{ steps.detect.outputs.api }}"


def test_version_job(schema):
    version = payload(WorkflowBuilder(schema), "jobs.version")
    assert version["needs"] == ["changes", "test-api", "test-web"]
    assert version["if"].startswith("${{ always() && github.event_name != 'pull_request'")
    assert "needs.test-web.result != 'failure'" in version["if"]
    assert version["outputs"] == {"version": "${{ steps.version.outputs.version }}"}


def test_domain_jobs(schema):
    builder = WorkflowBuilder(schema)
    test_api = payload(builder, "jobs.test-api")
    assert test_api["if"] == "${{ needs.changes.outputs.api == 'true' }}"
    assert test_api["runs-on"] == "ubuntu-latest"

    remote = payload(builder, "jobs.remote-test-api")
    assert remote["needs"] == ["deploy-api", "changes"]


def test_tag_promote_release(schema):
    builder = WorkflowBuilder(schema)
    tag = payload(builder, "jobs.tag")
    assert tag["needs"] == ["version", "deploy-api", "remote-test-api"]
    assert "github.ref_name == 'develop'" in tag["if"]

    promote = payload(builder, "jobs.promote")
    assert promote["steps"][-1]["with"]["nextBranch"] == (
        "${{ github.ref_name == 'develop' && 'staging' || 'main' }}"
    )

    release = payload(builder, "jobs.release")
    assert "github.ref_name == 'main'" in release["if"]


def test_custom_runner():
    schema = PipelineSchema(["develop", "main"], {"api": DomainConfig()}, runner="self-hosted")
    assert payload(WorkflowBuilder(schema), "jobs.test-api")["runs-on"] == "self-hosted"


@pytest.mark.parametrize("flow, expected", [
    (["develop", "main"], "'main'"),
    (["develop", "staging", "main"], "github.ref_name == 'develop' && 'staging' || 'main'"),
    (["a", "b", "c", "d"], "github.ref_name == 'a' && 'b' || github.ref_name == 'b' && 'c' || 'd'"),
])
def test_next_branch_expression(flow, expected):
    assert next_branch_expression(flow) == expected


def test_promotable_condition():
    assert promotable_condition(["develop", "staging", "main"]) == (
        "github.ref_name == 'develop' || github.ref_name == 'staging'"
    )
