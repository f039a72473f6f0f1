import pytest

from pipecraft.core.errors import AnchorNotFound
from pipecraft.merge.sections import DEFAULT_CUSTOM_SECTION, SectionExtractor

WORKFLOW = """\
jobs:
  version:
    runs-on: x
    outputs:
      version: ${{ steps.v.outputs.version }}

  tag:
    runs-on: x
"""

CUSTOM = "  lint:\n    runs-on: x"


@pytest.fixture
def sections():
    return SectionExtractor()


def test_splice_places_section_after_version_outputs(sections):
    text = sections.splice(WORKFLOW, CUSTOM)
    assert text == (
        "jobs:\n"
        "  version:\n"
        "    runs-on: x\n"
        "    outputs:\n"
        "      version: ${{ steps.v.outputs.version }}\n"
        "\n"
        "  # <--START CUSTOM JOBS-->\n"
        "\n"
        "  lint:\n"
        "    runs-on: x\n"
        "\n"
        "  # <--END CUSTOM JOBS-->\n"
        "\n"
        "\n"
        "  tag:\n"
        "    runs-on: x\n"
    )


def test_extract_and_strip_undo_splice(sections):
    text = sections.splice(WORKFLOW, CUSTOM)
    assert sections.extract(text) == CUSTOM
    assert sections.strip(text) == WORKFLOW


def test_strip_at_end_of_document(sections):
    tail_only = "jobs:\n  version:\n    outputs:\n      version: v\n"
    assert sections.strip(sections.splice(tail_only, CUSTOM)) == tail_only


@pytest.mark.parametrize("text", [
    "jobs: {}\n",
    "  # <--START CUSTOM JOBS-->\n  lint: {}\n",
    "  # <--END CUSTOM JOBS-->\n  lint: {}\n  # <--START CUSTOM JOBS-->\n",
])
def test_extract_without_a_complete_section(sections, text):
    assert sections.extract(text) is None
    assert sections.strip(text) == text


def test_marker_variants_are_recognised(sections):
    text = "jobs:\n  ##   <--START CUSTOM JOBS-->  \n\n  lint: {}\n\n#<--END CUSTOM JOBS-->\n"
    assert sections.extract(text) == "  lint: {}"


def test_extract_trims_whitespace_only_edge_lines(sections):
    text = "jobs:\n  # <--START CUSTOM JOBS-->\n  \n\t\n  lint: {}\n    \n\n  # <--END CUSTOM JOBS-->\n"
    assert sections.extract(text) == "  lint: {}"
    assert sections.is_customized(sections.extract(text)) is True


def test_markers_inside_prose_do_not_count(sections):
    text = "# Put jobs between '# <--START CUSTOM JOBS-->' and '# <--END CUSTOM JOBS-->' markers\n"
    assert sections.extract(text) is None


def test_missing_anchor(sections):
    with pytest.raises(AnchorNotFound):
        sections.splice("jobs:\n  tag:\n    runs-on: x\n", CUSTOM)


@pytest.mark.parametrize("section, expected", [
    (None, False),
    ("", False),
    ("  \n\n", False),
    (DEFAULT_CUSTOM_SECTION, False),
    (CUSTOM, True),
    (DEFAULT_CUSTOM_SECTION + "\n\n" + CUSTOM, True),
])
def test_is_customized(sections, section, expected):
    assert sections.is_customized(section) is expected
