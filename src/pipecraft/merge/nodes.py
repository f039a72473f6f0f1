#!/usr/bin/env python3
"""
PIPECRAFT NODES - The Document Tree
-----------------------------------
A thin layer over ruamel.yaml's round-trip containers. The tree itself
is made of CommentedMap / CommentedSeq; this module adds the views the
merge engine reasons in: a Pair (one key of a mapping together with the
comment run above it, its spacing and its end-of-line comment) and a
Document (the root mapping plus the raw lines around it).

Comments live in the container's `.ca` slots, keyed by the entry, so a
value can be swapped while the pair keeps its place and commentary.

Author: Pipecraft Team
Date: 2026-01-16
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional

from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.error import CommentMark
from ruamel.yaml.scalarstring import FoldedScalarString, LiteralScalarString
from ruamel.yaml.tokens import CommentToken

# The engine only ever sees these two container types
Mapping = CommentedMap
Sequence = CommentedSeq

BLOCK_SCALARS = (LiteralScalarString, FoldedScalarString)

# .ca.items slots of a mapping entry
KEY_PRE = 1
VALUE_EOL = 2
VALUE_POST = 3


def make_token(line: str, column: int = 0) -> CommentToken:
    """One comment line ('# text' or '#') at `column`; '' makes a blank line."""
    if not line:
        return CommentToken("\n", CommentMark(0))
    return CommentToken(line + "\n", CommentMark(column))


def is_blank(token: CommentToken) -> bool:
    return not token.value.strip()


def comment_text(token: CommentToken) -> str:
    """The token's comment line without its trailing newline and indentation."""
    return token.value.strip()


def walk_containers(node: Any) -> Iterator[Any]:
    """Depth-first over every CommentedMap / CommentedSeq below (and including) `node`."""
    if isinstance(node, CommentedMap):
        yield node
        for value in node.values():
            yield from walk_containers(value)
    elif isinstance(node, CommentedSeq):
        yield node
        for item in node:
            yield from walk_containers(item)


class Pair:
    """
    A view of one mapping entry. Holds no state of its own: everything
    is read from and written to the mapping's comment slots.

    `column` is where the key is emitted; new comment lines are placed there.
    """

    def __init__(self, mapping: CommentedMap, key: str, column: int = 0):
        self.mapping = mapping
        self.key = key
        self.column = column

    def __repr__(self) -> str:
        return f"Pair({self.key!r})"

    # --- Slots ---

    def _entry(self, create: bool = False) -> Optional[list]:
        entry = self.mapping.ca.items.get(self.key)
        if entry is None and create:
            entry = [None, None, None, None]
            self.mapping.ca.items[self.key] = entry
        return entry

    def _tokens(self) -> List[CommentToken]:
        entry = self._entry()
        return list(entry[KEY_PRE] or []) if entry else []

    def _set_tokens(self, tokens: List[CommentToken]):
        entry = self._entry(create=bool(tokens))
        if entry is not None:
            entry[KEY_PRE] = tokens or None

    def _split(self):
        tokens = self._tokens()
        blanks = 0
        while blanks < len(tokens) and is_blank(tokens[blanks]):
            blanks += 1
        return tokens[:blanks], tokens[blanks:]

    # --- Value ---

    @property
    def value(self) -> Any:
        return self.mapping.get(self.key)

    def replace_value(self, value: Any):
        entry = self._entry()
        if entry is not None and not isinstance(value, BLOCK_SCALARS):
            # A block scalar header comment has no place on any other value
            entry[VALUE_POST] = None
        self.mapping[self.key] = value

    # --- Leading comments & spacing ---

    @property
    def comment_lines(self) -> List[str]:
        """The comment run above the key: '# text', '#' or '' for a blank line inside it."""
        _, own = self._split()
        return ["" if is_blank(t) else comment_text(t) for t in own]

    @property
    def comment(self) -> Optional[str]:
        """The leading comment block as plain text, without '#' markers."""
        lines = self.comment_lines
        if not lines:
            return None
        text = []
        for line in lines:
            body = line[1:] if line.startswith("#") else line
            text.append(body[1:] if body.startswith(" ") else body)
        return "\n".join(text)

    def set_comment(self, text: Optional[str]):
        blanks, _ = self._split()
        lines = []
        if text:
            lines = [f"# {line}" if line else "#" for line in text.strip("\n").split("\n")]
        self._set_tokens(blanks + [make_token(line, self.column) for line in lines])

    @property
    def space_before(self) -> bool:
        blanks, _ = self._split()
        return bool(blanks)

    @space_before.setter
    def space_before(self, flag: bool):
        blanks, own = self._split()
        if flag and not blanks:
            blanks = [make_token("")]
        elif not flag:
            blanks = []
        self._set_tokens(blanks + own)

    @property
    def inline_comment(self) -> Optional[str]:
        entry = self._entry()
        if not entry:
            return None
        if entry[VALUE_EOL] is not None:
            return comment_text(entry[VALUE_EOL])
        post = entry[VALUE_POST]
        if post and isinstance(post[0], str):
            return post[0].strip()
        return None


def remove_key(mapping: CommentedMap, key: str) -> bool:
    """Deletes `key` together with its comments. Returns False when it was absent."""
    if key not in mapping:
        return False
    del mapping[key]
    mapping.ca.items.pop(key, None)
    return True


def reorder(mapping: CommentedMap, keys: List[str]):
    """Rearranges entries to follow `keys`; keys not listed keep their place in front."""
    if list(mapping) == [k for k in keys if k in mapping]:
        return
    for key in keys:
        if key in mapping:
            mapping.move_to_end(key)


def indent_comments(node: Any, delta: int):
    """Shifts the column of every comment below `node` by `delta`."""
    if not delta:
        return

    def shift(token: Optional[CommentToken]):
        # Marks can be shared between tokens, so each gets a fresh one
        if token is not None and not is_blank(token):
            token.start_mark = CommentMark(max(0, token.column + delta))

    for container in walk_containers(node):
        for entry in container.ca.items.values():
            for slot in entry:
                if isinstance(slot, CommentToken):
                    shift(slot)
                elif isinstance(slot, list):
                    for token in slot:
                        if isinstance(token, CommentToken):
                            shift(token)
        for token in container.ca.end or []:
            shift(token)


@dataclass
class Document:
    """
    A parsed file. `header` holds the lines up to an explicit '---',
    `footer` the comments after the last entry and `end` a '...' marker
    with whatever follows it. All three are written back verbatim.
    """
    root: CommentedMap = field(default_factory=CommentedMap)
    header: List[str] = field(default_factory=list)
    footer: List[str] = field(default_factory=list)
    end: List[str] = field(default_factory=list)
