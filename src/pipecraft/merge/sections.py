#!/usr/bin/env python3
"""
PIPECRAFT SECTION EXTRACTOR - Custom Jobs Side-Channel
------------------------------------------------------
The custom jobs section is owned by the user and never parsed into the
tree. It is cut out of the previous file's raw text before parsing and
spliced back into the new text after serialization, right after the
version job's outputs block.

Author: Pipecraft Team
Date: 2026-01-16
"""

import re
from typing import Optional

from pipecraft.core.errors import AnchorNotFound

START_MARKER = "<--START CUSTOM JOBS-->"
END_MARKER = "<--END CUSTOM JOBS-->"

# Any prefix, one or more '#', optional whitespace, then the literal
START_PATTERN = re.compile(r"^.*#+[ \t]*" + re.escape(START_MARKER) + r"[ \t]*$", re.MULTILINE)
END_PATTERN = re.compile(r"^.*#+[ \t]*" + re.escape(END_MARKER) + r"[ \t]*$", re.MULTILINE)

# End of the version job's outputs block
ANCHOR_PATTERN = re.compile(r"^ {2}version:\s*\n(?:.*\n)*? {4}outputs:\s*\n\s*version:.*$",
                            re.MULTILINE)

LEADING_BLANK_LINES = re.compile(r"\A(?:[ \t]*\n)+")
TRAILING_BLANK_LINES = re.compile(r"(?:\n[ \t]*)+\Z")

DEFAULT_CUSTOM_SECTION = """\
  #=============================================================================
  # CUSTOM JOBS SECTION (✅ Add your own jobs here)
  #=============================================================================
  # This section is preserved across regenerations. Add your custom jobs between
  # the START and END markers.
  #
  # Example: test-gate pattern (recommended for production workflows)
  # Uncomment and customize the example below to prevent deployments when tests fail.

  # test-gate:
  #   needs: [ changes ]  # Add all test job names (e.g., test-api, test-web)
  #   if: always()  # Add failure checks and success conditions
  #   runs-on: ubuntu-latest
  #   steps:
  #     - run: echo "✅ All tests passed\""""


class SectionExtractor:
    """Pure string operations around the START/END sentinel comments."""

    def _bounds(self, raw_text: str):
        start = START_PATTERN.search(raw_text)
        end = END_PATTERN.search(raw_text)
        if not start or not end or end.start() < start.end():
            return None
        return start, end

    def extract(self, raw_text: str) -> Optional[str]:
        """
        Returns the text strictly between the sentinels with blank and
        whitespace-only edge lines removed, or None when either sentinel
        is missing.
        """
        bounds = self._bounds(raw_text)
        if bounds is None:
            return None
        start, end = bounds
        section = raw_text[start.end():end.start()]
        return TRAILING_BLANK_LINES.sub("", LEADING_BLANK_LINES.sub("", section))

    def strip(self, raw_text: str) -> str:
        """
        Removes the sentinel lines, everything between them and one blank
        line on either side, undoing what `splice` inserted.
        """
        bounds = self._bounds(raw_text)
        if bounds is None:
            return raw_text
        start, end = bounds

        head = raw_text[:start.start()]
        tail = raw_text[end.end():]
        if tail.startswith("\n"):
            tail = tail[1:]
        if head.endswith("\n\n"):
            head = head[:-1]
        if tail.startswith("\n"):
            tail = tail[1:]
        return head + tail

    def splice(self, text: str, section: str) -> str:
        """Inserts `section` between fresh sentinels after the version outputs block."""
        match = ANCHOR_PATTERN.search(text)
        if match is None:
            raise AnchorNotFound("Could not find the version job outputs block to anchor custom jobs")
        block = f"\n\n  # {START_MARKER}\n\n{section}\n\n  # {END_MARKER}\n"
        return text[:match.end()] + block + text[match.end():]

    def is_customized(self, section: Optional[str]) -> bool:
        """False for a missing, blank or untouched placeholder section."""
        return bool(section and section.strip()) and section != DEFAULT_CUSTOM_SECTION
