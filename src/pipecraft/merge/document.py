#!/usr/bin/env python3
"""
PIPECRAFT DOCUMENT ADAPTER - Parse & Serialize
----------------------------------------------
Wraps ruamel.yaml's round-trip mode. Parsing loads CommentedMap /
CommentedSeq containers, then re-homes every comment by position the
way a reviewer reads a file: a comment run directly above a key belongs
to that key, a run indented deeper than the next key still trails the
previous block, and a comment on a key's line is that key's inline
comment. Serializing is a plain round-trip dump with Pipecraft's house
layout (two-space mappings, dashes offset by two).

Author: Pipecraft Team
Date: 2026-01-16
"""

import io
import re
import textwrap
from typing import Any, List, Optional, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedKeyMap, CommentedKeySeq, CommentedMap, CommentedSeq
from ruamel.yaml.error import YAMLError
from ruamel.yaml.scalarstring import (
    DoubleQuotedScalarString, FoldedScalarString, LiteralScalarString,
    ScalarString, SingleQuotedScalarString,
)

from pipecraft.core.errors import MalformedDocument
from pipecraft.merge.nodes import (
    BLOCK_SCALARS, KEY_PRE, VALUE_POST, Document, Pair, make_token, walk_containers,
)

STYLE_TYPES = {
    "single": SingleQuotedScalarString,
    "double": DoubleQuotedScalarString,
    "literal": LiteralScalarString,
    "folded": FoldedScalarString,
}

DOC_START = re.compile(r"^---[ \t]*(#.*)?$")
DOC_END = re.compile(r"^\.\.\.[ \t]*(#.*)?$")
BLOCK_INDICATOR = re.compile(r"[|>][0-9+-]*")


def find_comment_start(text: str) -> int:
    """
    Identifies the true start of a comment, protecting hashes
    wrapped in quotes. Returns -1 when the text has no comment.
    """
    in_double = in_single = escaped = False
    for i, char in enumerate(text):
        if escaped:
            escaped = False
            continue
        if char == '\\' and in_double:
            escaped = True
            continue
        if char == '"' and not in_single:
            in_double = not in_double
        elif char == "'" and not in_double:
            in_single = not in_single
        if char == '#' and not in_double and not in_single:
            # Valid YAML comments require a leading space if not at start
            if i == 0 or text[i - 1].isspace():
                return i
    return -1


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _is_flow(node: Any) -> bool:
    return bool(node.fa.flow_style())


def _clear_comments(root: CommentedMap, text: str):
    """Drops the loader's comment placement; `_CommentReader` redoes it by position."""
    for container in walk_containers(root):
        if isinstance(container, CommentedMap) and any(
                isinstance(key, (CommentedKeyMap, CommentedKeySeq)) for key in container):
            raise MalformedDocument("Complex mapping keys are not supported", text)
        container.ca.comment = None
        container.ca.items.clear()
        container.ca.end = []
        values = container.values() if isinstance(container, CommentedMap) else container
        for value in values:
            if isinstance(value, BLOCK_SCALARS):
                value.comment = None


class _CommentReader:
    """
    Attaches the comment and blank lines of `lines[start:stop]` to the
    loaded tree. Each key is emitted at a known column (two per level),
    so comment columns are stored relative to where their owner lands.
    """

    def __init__(self, lines: List[str], start: int, stop: int):
        self.lines = lines
        self.start = start
        self.stop = stop
        self.protected = set()  # Block scalar content: never comments

    def read(self, root: CommentedMap) -> List[str]:
        """Attaches everything and returns the footer: trailing lines no entry owns."""
        self._protect(root)
        keys = list(root)
        if keys:
            self._attach_mapping(root, 0, self.start)

        j = self.stop - 1
        while j >= self.start and self._is_filler(j):
            j -= 1
        run = list(range(j + 1, self.stop))
        if keys:
            split = self._trailing_split(run, 0)
            if split and self._attach_trailing(root[keys[-1]], 2, True, run[:split]):
                run = run[split:]

        footer = [self.lines[i].rstrip() for i in run]
        while footer and not footer[-1]:
            footer.pop()
        return footer

    # --- Line classes ---

    def _is_filler(self, i: int) -> bool:
        if i in self.protected:
            return False
        text = self.lines[i].strip()
        return not text or text.startswith("#")

    def _protect(self, root: CommentedMap):
        for container in walk_containers(root):
            if isinstance(container, CommentedMap):
                for key, value in container.items():
                    if isinstance(value, BLOCK_SCALARS):
                        self._protect_block(*container.lc.value(key))
            else:
                for idx, item in enumerate(container):
                    if isinstance(item, BLOCK_SCALARS):
                        self._protect_block(*container.lc.item(idx))

    def _protect_block(self, line: int, column: int):
        indicator = BLOCK_INDICATOR.match(self.lines[line], column)
        keep = indicator is not None and "+" in indicator.group(0)
        owner = _indent_of(self.lines[line])

        indent: Optional[int] = None
        last = line
        for j in range(line + 1, self.stop):
            text = self.lines[j]
            if not text.strip():
                if keep:
                    last = j
                continue
            col = _indent_of(text)
            if (indent is None and col <= owner) or (indent is not None and col < indent):
                break
            indent = col if indent is None else indent
            last = j
        self.protected.update(range(line + 1, last + 1))

    # --- Runs ---

    def _run_start(self, line: int, floor: int) -> int:
        j = line - 1
        while j >= floor and self._is_filler(j):
            j -= 1
        return j + 1

    def _trailing_split(self, run: List[int], column: int) -> int:
        """Index just past the last comment indented deeper than `column`, 0 when there is none."""
        split = 0
        for n, i in enumerate(run):
            text = self.lines[i]
            if text.strip() and _indent_of(text) > column:
                split = n + 1
        return split

    def _token(self, i: int, emit: int, source: int):
        text = self.lines[i]
        return make_token(text.strip(), max(0, emit + _indent_of(text) - source))

    def _dash(self, seq: CommentedSeq, idx: int) -> Tuple[int, int]:
        line, col = seq.lc.item(idx)
        dash = self.lines[line].rfind("-", 0, col)
        if dash != -1:
            return line, dash
        while line > 0 and not self.lines[line].lstrip().startswith("-"):
            line -= 1
        return line, _indent_of(self.lines[line])

    def _child_column(self, node: Any) -> int:
        if isinstance(node, CommentedMap):
            return node.lc.key(next(iter(node)))[1]
        return self._dash(node, 0)[1]

    def _attach_trailing(self, node: Any, child_emit: int, parent_is_map: bool,
                         run: List[int]) -> bool:
        """
        Stores a run as end comments of the deepest block container in
        `node`'s last-descendant chain that still sits at or left of the
        run. Sequence items are skipped: their comment slots are owned by
        the enclosing sequence.
        """
        column = min(_indent_of(self.lines[i]) for i in run if self.lines[i].strip())
        target = None
        while isinstance(node, (CommentedMap, CommentedSeq)) and len(node) and not _is_flow(node):
            source = self._child_column(node)
            if source > column:
                break
            if parent_is_map:
                target = (node, child_emit, source)
            if isinstance(node, CommentedMap):
                node, parent_is_map = node[list(node)[-1]], True
            else:
                node, parent_is_map = node[-1], False
            child_emit += 2

        if target is None:
            return False
        container, emit, source = target
        if container.ca.comment is None:
            container.ca.comment = [None, None]
        container.ca.end = list(container.ca.end or []) + [self._token(i, emit, source) for i in run]
        return True

    # --- Containers ---

    def _attach_mapping(self, mapping: CommentedMap, emit: int, floor: int):
        keys = list(mapping)
        for n, key in enumerate(keys):
            line, col = mapping.lc.key(key)
            own = list(range(self._run_start(line, floor), line))
            if n > 0 and own:
                split = self._trailing_split(own, col)
                if split and self._attach_trailing(mapping[keys[n - 1]], emit + 2, True, own[:split]):
                    own = own[split:]
            if own:
                entry = mapping.ca.items.setdefault(key, [None, None, None, None])
                entry[KEY_PRE] = [self._token(i, emit, col) for i in own]
            self._attach_inline(mapping, key, line, col)

            value = mapping[key]
            if isinstance(value, CommentedMap) and not _is_flow(value):
                self._attach_mapping(value, emit + 2, line + 1)
            elif isinstance(value, CommentedSeq) and not _is_flow(value):
                self._attach_sequence(value, emit + 2, line + 1)

    def _attach_inline(self, mapping: CommentedMap, key: Any, line: int, col: int):
        value = mapping[key]
        if isinstance(value, BLOCK_SCALARS):
            value_line, value_col = mapping.lc.value(key)
            indicator = BLOCK_INDICATOR.match(self.lines[value_line], value_col)
            rest = self.lines[value_line][indicator.end():].rstrip() if indicator else ""
            if rest.strip():
                entry = mapping.ca.items.setdefault(key, [None, None, None, None])
                entry[VALUE_POST] = [rest]
            return
        idx = find_comment_start(self.lines[line][col:])
        if idx != -1:
            mapping.yaml_add_eol_comment(self.lines[line][col + idx:].rstrip(), key,
                                         column=col + idx)

    def _attach_sequence(self, seq: CommentedSeq, dash_emit: int, floor: int):
        for idx, item in enumerate(seq):
            line, dash = self._dash(seq, idx)
            own = list(range(self._run_start(line, floor), line))
            if idx > 0 and own:
                split = self._trailing_split(own, dash)
                if split and self._attach_trailing(seq[idx - 1], dash_emit + 2, False, own[:split]):
                    own = own[split:]
            pre = [self._token(i, dash_emit, dash) for i in own] or None

            eol = None
            if isinstance(item, BLOCK_SCALARS):
                item_line, item_col = seq.lc.item(idx)
                indicator = BLOCK_INDICATOR.match(self.lines[item_line], item_col)
                rest = self.lines[item_line][indicator.end():].rstrip() if indicator else ""
                # The header comment shares the item's slot with leading comments
                if rest.strip() and pre is None:
                    item.comment = rest
            elif not isinstance(item, (CommentedMap, CommentedSeq)) or _is_flow(item):
                item_line, item_col = seq.lc.item(idx)
                tail = self.lines[item_line][item_col:]
                cut = find_comment_start(tail)
                if cut != -1:
                    eol = make_token(tail[cut:].rstrip(), item_col + cut)
            if pre or eol:
                seq.ca.items[idx] = [eol, pre]

            if isinstance(item, CommentedMap) and not _is_flow(item):
                self._attach_mapping(item, dash_emit + 2, line + 1)
            elif isinstance(item, CommentedSeq) and not _is_flow(item):
                self._attach_sequence(item, dash_emit + 2, line + 1)


class DocumentAdapter:
    """
    The only component that configures and calls ruamel.yaml. Callers
    work with Document, Pair and the CommentedMap / CommentedSeq tree.
    """

    def __init__(self):
        self.yaml = YAML(typ="rt")
        self.yaml.preserve_quotes = True
        # Two-space mappings, sequences indented 4 with the dash offset 2
        self.yaml.indent(mapping=2, sequence=4, offset=2)
        self.yaml.width = 4096

    def _clean_artifacts(self, text: str) -> str:
        """Removes UTF-8 BOM markers and standardizes line endings."""
        return text.lstrip('\ufeff').replace('\r\n', '\n')

    def _load(self, text: str) -> Any:
        try:
            return self.yaml.load(text)
        except YAMLError as e:
            mark = getattr(e, "problem_mark", None) or getattr(e, "context_mark", None)
            line = mark.line + 1 if mark is not None else None
            column = mark.column + 1 if mark is not None else None
            problem = getattr(e, "problem", None) or str(e)
            raise MalformedDocument(f"Invalid YAML: {problem}", text, line, column) from e
        finally:
            # Directives are kept verbatim in the header; the dumper must not repeat them
            self.yaml.version = None
            self.yaml.tags = None

    def _load_mapping(self, text: str, what: str) -> CommentedMap:
        root = self._load(text)
        if root is None:
            return CommentedMap()
        if not isinstance(root, CommentedMap):
            line = root.lc.line + 1 if isinstance(root, CommentedSeq) else None
            raise MalformedDocument(f"{what} is not a mapping", text, line, 1 if line else None)
        _clear_comments(root, text)
        return root

    def _dump(self, node: Any) -> str:
        stream = io.StringIO()
        self.yaml.dump(node, stream)
        return stream.getvalue()

    def parse(self, text: str) -> Document:
        """Parses text into a Document. Raises MalformedDocument on invalid input."""
        text = self._clean_artifacts(text)
        root = self._load_mapping(text, "Document root")
        lines = text.split("\n")

        start = 0
        for i, line in enumerate(lines):
            if DOC_START.match(line):
                start = i + 1
                break
            stripped = line.strip()
            if stripped and not stripped.startswith(("#", "%")):
                break

        stop = len(lines)
        for i in range(start, len(lines)):
            if DOC_END.match(lines[i]):
                stop = i
                break
        end = [line.rstrip() for line in lines[stop:]]
        while end and not end[-1]:
            end.pop()

        footer = _CommentReader(lines, start, stop).read(root)
        return Document(root=root, header=lines[:start], footer=footer, end=end)

    def serialize(self, document: Document) -> str:
        body = self._dump(document.root) if len(document.root) else ""
        tail = document.footer + document.end
        return ("".join(line + "\n" for line in document.header) + body
                + "".join(line + "\n" for line in tail))

    def serialize_pairs(self, pairs: List[Pair], indent: int = 0) -> str:
        """Renders individual pairs (comments included) as a text block at `indent`."""
        holder = CommentedMap()
        for pair in pairs:
            holder[pair.key] = pair.value
            entry = pair.mapping.ca.items.get(pair.key)
            if entry is not None:
                holder.ca.items[pair.key] = list(entry)

        # Nest under placeholder keys so the dump lands at the right column
        depth = indent // 2
        for _ in range(depth):
            holder = CommentedMap([("_", holder)])
        lines = self._dump(holder).split("\n")[depth:]
        return "\n".join(lines).rstrip("\n")

    # --- Constructors ---

    def scalar_from(self, value: Any, style: Optional[str] = None) -> Any:
        """A scalar in the given quoting style ('single', 'double', 'literal', 'folded' or plain)."""
        if isinstance(value, (dict, list, tuple)):
            raise TypeError(f"Cannot build a scalar from {type(value).__name__}")
        if style is None or style == "plain":
            return value
        return STYLE_TYPES[style](str(value))

    def mapping_from(self, obj: Any) -> Any:
        """Builds a round-trip tree from plain Python data (dicts keep insertion order)."""
        if isinstance(obj, (CommentedMap, CommentedSeq)):
            return obj
        if isinstance(obj, dict):
            mapping = CommentedMap()
            for key, value in obj.items():
                mapping[str(key)] = self.mapping_from(value)
            return mapping
        if isinstance(obj, (list, tuple)):
            return CommentedSeq([self.mapping_from(item) for item in obj])
        if isinstance(obj, str) and not isinstance(obj, ScalarString) and "\n" in obj:
            return LiteralScalarString(obj)
        return obj

    def from_indented_block(self, fragment: str) -> CommentedMap:
        """
        Parses a hand-written YAML fragment (any common indentation) into
        a mapping that keeps the fragment's own layout and comments.
        Comment columns are relative to the fragment's left edge.
        """
        text = textwrap.dedent(self._clean_artifacts(fragment)).strip("\n") + "\n"
        root = self._load(text)
        if not isinstance(root, CommentedMap):
            raise MalformedDocument("Indented block must describe a mapping", text)
        _clear_comments(root, text)
        lines = text.split("\n")
        _CommentReader(lines, 0, len(lines)).read(root)
        return root
