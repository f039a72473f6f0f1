#!/usr/bin/env python3
"""
PIPECRAFT TEST SUITE - Operation Applicator
-------------------------------------------
Verb table, comment ownership, ordering reconstruction and removals.

Author: Pipecraft Team
Date: 2026-01-16
"""

import pytest

from pipecraft.core.errors import InvalidPathError, MissingRequiredPath
from pipecraft.core.models import Operation, Verb
from pipecraft.merge.applicator import OperationApplicator, is_system_comment, merge_nodes, to_plain
from pipecraft.merge.document import DocumentAdapter
from pipecraft.merge.nodes import Pair

BUILD = """\
jobs:
  build:
    runs-on: old
    steps: [a, b]
    env:
      A: '1'
      B: '2'
"""

adapter = DocumentAdapter()


def apply(text, *operations, removals=None):
    doc = adapter.parse(text)
    actions = OperationApplicator(adapter).apply(doc.root, list(operations), removals)
    return doc, actions


def build_job(doc):
    return to_plain(doc.root["jobs"]["build"])


# --- Verb table ---

@pytest.mark.parametrize("verb, expected", [
    (Verb.SET, "old"),
    (Verb.OVERWRITE, "new"),
    (Verb.MERGE, "new"),
    (Verb.PRESERVE, "old"),
])
def test_verbs_on_present_scalar(verb, expected):
    doc, _ = apply(BUILD, Operation("jobs.build.runs-on", verb, "new"))
    assert build_job(doc)["runs-on"] == expected


@pytest.mark.parametrize("verb, expected", [
    (Verb.SET, ["a", "b"]),
    (Verb.OVERWRITE, ["b", "c"]),
    (Verb.MERGE, ["a", "b", "c"]),
    (Verb.PRESERVE, ["a", "b"]),
])
def test_verbs_on_present_sequence(verb, expected):
    doc, _ = apply(BUILD, Operation("jobs.build.steps", verb, ["b", "c"]))
    assert build_job(doc)["steps"] == expected


@pytest.mark.parametrize("verb", list(Verb))
def test_every_verb_inserts_when_absent(verb):
    doc, actions = apply(BUILD, Operation("jobs.build.timeout-minutes", verb, 5))
    assert build_job(doc)["timeout-minutes"] == 5
    assert actions == ["Inserted 'jobs.build.timeout-minutes'"]


def test_merge_mappings_payload_wins_on_leaves():
    doc, _ = apply(BUILD, Operation("jobs.build.env", Verb.MERGE, {"B": "x", "C": "3"}))
    assert build_job(doc)["env"] == {"A": "1", "B": "x", "C": "3"}


def test_merge_nodes_replaces_mismatched_shapes():
    existing = adapter.mapping_from(["a"])
    incoming = adapter.mapping_from({"k": "v"})
    assert merge_nodes(existing, incoming) is incoming


def test_overwrite_keeps_pair_metadata():
    text = "jobs:\n  # my notes\n  build:  # inline\n    runs-on: x\n"
    doc, _ = apply(text, Operation("jobs.build", Verb.OVERWRITE, {"runs-on": "y"}))
    pair = Pair(doc.root["jobs"], "build", 2)
    assert pair.comment == "my notes"
    assert pair.inline_comment == "# inline"
    assert adapter.serialize(doc) == "jobs:\n  # my notes\n  build:  # inline\n    runs-on: y\n"


def test_payload_builders_are_lazy():
    calls = []

    def builder():
        calls.append(1)
        return {"runs-on": "y"}

    apply(BUILD, Operation("jobs.build", Verb.PRESERVE, builder))
    assert calls == []


# --- Comments & spacing ---

def test_comment_attached_on_insert():
    doc, _ = apply(BUILD, Operation("jobs.lint", Verb.SET, {"runs-on": "x"},
                                    comment_before="LINT (Managed by Pipecraft)", space_before=True))
    pair = Pair(doc.root["jobs"], "lint", 2)
    assert pair.comment == "LINT (Managed by Pipecraft)"
    assert pair.space_before is True


def test_inserted_payload_lands_in_house_style():
    doc, _ = apply("jobs:\n  build:\n    runs-on: x\n",
                   Operation("jobs.lint", Verb.SET, {"runs-on": "y", "steps": [{"run": "make lint"}]},
                             comment_before="LINT", space_before=True))
    assert adapter.serialize(doc) == (
        "jobs:\n"
        "  build:\n"
        "    runs-on: x\n"
        "\n"
        "  # LINT\n"
        "  lint:\n"
        "    runs-on: y\n"
        "    steps:\n"
        "      - run: make lint\n"
    )


def test_user_comment_is_kept():
    text = "jobs:\n  # my own notes\n  build:\n    runs-on: x\n"
    doc, _ = apply(text, Operation("jobs.build", Verb.OVERWRITE, {"runs-on": "y"},
                                   comment_before="BUILD (Managed by Pipecraft)"))
    assert Pair(doc.root["jobs"], "build", 2).comment == "my own notes"


def test_system_comment_is_refreshed():
    text = "jobs:\n  # =====\n  # OLD BANNER\n  build:\n    runs-on: x\n"
    doc, _ = apply(text, Operation("jobs.build", Verb.OVERWRITE, {"runs-on": "y"},
                                   comment_before="NEW (Managed by Pipecraft)"))
    assert Pair(doc.root["jobs"], "build", 2).comment == "NEW (Managed by Pipecraft)"


def test_preserve_never_touches_comments():
    text = "jobs:\n  # old pipecraft banner\n  build:\n    runs-on: x\n"
    doc, _ = apply(text, Operation("jobs.build", Verb.PRESERVE, {"runs-on": "y"},
                                   comment_before="NEW (Managed by Pipecraft)", space_before=True))
    pair = Pair(doc.root["jobs"], "build", 2)
    assert pair.comment == "old pipecraft banner"
    assert pair.space_before is False
    assert adapter.serialize(doc) == text


def test_nested_comment_change_is_emitted():
    text = "jobs:\n  # pipecraft v1\n  build:\n    runs-on: x\n"
    doc, _ = apply(text, Operation("jobs.build", Verb.SET, {}, comment_before="Pipecraft v2"))
    assert adapter.serialize(doc) == "jobs:\n  # Pipecraft v2\n  build:\n    runs-on: x\n"


@pytest.mark.parametrize("text, expected", [
    ("Managed by Pipecraft", True),
    ("PIPECRAFT", True),
    ("=====\nSECTION", True),
    ("my notes", False),
    ("a == b", False),
    (None, False),
    ("", False),
])
def test_is_system_comment(text, expected):
    assert is_system_comment(text) is expected


# --- Ordering & removal ---

def test_new_keys_land_next_to_operation_neighbours():
    text = (
        "jobs:\n"
        "  changes:\n    runs-on: x\n"
        "  lint-all:\n    runs-on: x\n"
        "  version:\n    runs-on: x\n"
    )
    doc, _ = apply(
        text,
        Operation("jobs.changes", Verb.OVERWRITE, {"runs-on": "y"}),
        Operation("jobs.test-api", Verb.PRESERVE, {"runs-on": "y"}),
        Operation("jobs.version", Verb.OVERWRITE, {"runs-on": "y"}),
        Operation("jobs.tag", Verb.OVERWRITE, {"runs-on": "y"}),
    )
    assert list(doc.root["jobs"]) == ["changes", "test-api", "lint-all", "version", "tag"]


def test_foreign_keys_keep_their_position():
    text = "name: CI\ncustom: 1\non: {}\njobs: {}\n"
    doc, _ = apply(
        text,
        Operation("name", Verb.PRESERVE, "x"),
        Operation("run-name", Verb.PRESERVE, "y"),
        Operation("on", Verb.SET, {}),
        Operation("jobs", Verb.SET, {}),
    )
    assert list(doc.root) == ["name", "run-name", "custom", "on", "jobs"]


def test_deprecated_jobs_are_removed():
    text = (
        "jobs:\n"
        "  createpr:\n    runs-on: x\n"
        "  build:\n    runs-on: x\n"
        "  branch:\n    runs-on: x\n"
        "  apps:\n    runs-on: x\n"
    )
    doc, actions = apply(text, Operation("jobs.build", Verb.PRESERVE, {}))
    assert list(doc.root["jobs"]) == ["build"]
    assert "Removed 'jobs.apps'" in actions


def test_caller_removals():
    text = "jobs:\n  test-api:\n    runs-on: x\n  test-web:\n    runs-on: x\n"
    doc, actions = apply(text, Operation("jobs.test-api", Verb.PRESERVE, {}),
                         removals={"jobs": {"test-web", "deploy-web"}})
    assert list(doc.root["jobs"]) == ["test-api"]
    assert actions == ["Removed 'jobs.test-web'"]


# --- Optional operations & failures ---

def test_optional_operations_only_touch_existing_keys():
    doc, actions = apply(
        BUILD,
        Operation("jobs.build.timeout-minutes", Verb.SET, 5, required=False),
        Operation("jobs.missing.runs-on", Verb.SET, "x", required=False),
        Operation("jobs.build.runs-on", Verb.OVERWRITE, "new", required=False),
    )
    assert "timeout-minutes" not in build_job(doc)
    assert "missing" not in doc.root["jobs"]
    assert build_job(doc)["runs-on"] == "new"
    assert actions == ["Overwrote 'jobs.build.runs-on'"]


def test_required_operation_through_scalar_fails():
    with pytest.raises(MissingRequiredPath) as excinfo:
        apply("jobs: [a, b]\n", Operation("jobs.build", Verb.SET, {}))
    assert isinstance(excinfo.value.__cause__, InvalidPathError)
    assert excinfo.value.path == "jobs.build"


def test_optional_operation_through_scalar_propagates():
    with pytest.raises(InvalidPathError):
        apply("jobs: [a, b]\n", Operation("jobs.build", Verb.SET, {}, required=False))


def test_builder_returning_nothing_is_fatal():
    with pytest.raises(MissingRequiredPath):
        apply(BUILD, Operation("jobs.lint", Verb.SET, lambda: None))
