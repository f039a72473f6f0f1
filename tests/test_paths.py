import pytest

from pipecraft.core.errors import InvalidPathError
from pipecraft.merge.document import DocumentAdapter
from pipecraft.merge.nodes import Mapping, Sequence
from pipecraft.merge.paths import find_mapping, resolve, split_path

SOURCE = "on:\n  workflow_dispatch:\n  push:\n    branches: [main]\nname: x\n"


@pytest.fixture
def root():
    return DocumentAdapter().parse(SOURCE).root


def test_resolve_existing(root):
    location = resolve(root, "on.push.branches")
    assert location.existed is True
    assert location.key == "branches"
    assert isinstance(location.node, Sequence)
    assert location.pair.key == "branches"
    assert location.pair.column == 4


def test_resolve_is_idempotent(root):
    first = resolve(root, "on.push")
    second = resolve(root, "on.push")
    assert first.node is second.node


def test_missing_intermediate_without_create(root):
    location = resolve(root, "jobs.build.steps")
    assert location.parent is None
    assert location.node is None
    assert "jobs" not in root


def test_missing_intermediates_are_appended(root):
    location = resolve(root, "jobs.build.steps", create_if_missing=True)
    assert location.existed is False
    assert isinstance(location.parent, Mapping)
    assert list(root) == ["on", "name", "jobs"]
    assert find_mapping(root, "jobs.build") is location.parent


def test_null_intermediate_counts_as_empty_mapping(root):
    location = resolve(root, "on.workflow_dispatch.inputs.version", create_if_missing=True)
    assert location.existed is False
    assert isinstance(root["on"]["workflow_dispatch"], Mapping)

    # Without create the null value is left alone
    other = DocumentAdapter().parse(SOURCE).root
    assert resolve(other, "on.workflow_dispatch.inputs").parent is None
    assert other["on"]["workflow_dispatch"] is None


def test_scalar_intermediate_is_rejected(root):
    with pytest.raises(InvalidPathError) as excinfo:
        resolve(root, "name.first", create_if_missing=True)
    assert excinfo.value.segment == "name"


@pytest.mark.parametrize("path", ["", "on..push", ".on", "on."])
def test_empty_segments_are_rejected(path):
    with pytest.raises(InvalidPathError):
        split_path(path)


def test_find_mapping(root):
    assert find_mapping(root, "") is root
    assert find_mapping(root, "on.push") is root["on"]["push"]
    assert find_mapping(root, "on.push.branches") is None
    assert find_mapping(root, "missing.key") is None
