#!/usr/bin/env python3
"""
PIPECRAFT OPERATION APPLICATOR - Verb Engine
--------------------------------------------
Applies an ordered list of declarative path operations to a document
tree. Each verb decides how schema-derived content meets whatever the
previous run (or the user) left at the same key:

    Set        insert when absent, never touch an existing value
    Overwrite  always replace the value (pair comments and spacing stay)
    Merge      union sequences, merge mappings (payload wins on leaves)
    Preserve   insert when absent, otherwise a full no-op

After all verbs ran, every mapping that owns an operation target is
re-ordered: keys that existed keep their original order, new keys land
next to their neighbours in operation order, deprecated keys are dropped.

Author: Pipecraft Team
Date: 2026-01-16
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Set

from pipecraft.core.errors import InvalidPathError, MissingRequiredPath
from pipecraft.core.models import Operation, Verb
from pipecraft.merge.document import DocumentAdapter
from pipecraft.merge.nodes import Mapping, Sequence, indent_comments, remove_key, reorder
from pipecraft.merge.paths import find_mapping, resolve

logger = logging.getLogger("pipecraft.applicator")

# Jobs written by earlier generations of the generator and since retired
DEPRECATED_KEYS: Dict[str, frozenset] = {
    "jobs": frozenset({"createpr", "branch", "apps"}),
}

BANNER_RULE = re.compile(r"={5,}")
BANNER_WORDS = ("pipecraft",)


def is_system_comment(text: Optional[str]) -> bool:
    """
    Heuristic ownership check for a leading comment: banners written by
    the generator mention Pipecraft or carry a '=====' rule line.
    """
    if not text:
        return False
    lowered = text.lower()
    return any(word in lowered for word in BANNER_WORDS) or bool(BANNER_RULE.search(text))


def to_plain(node: Any) -> Any:
    """Order-insensitive comparison form of a subtree."""
    if isinstance(node, Mapping):
        return {k: to_plain(v) for k, v in node.items()}
    if isinstance(node, Sequence):
        return [to_plain(item) for item in node]
    return node


def merge_nodes(existing: Any, incoming: Any) -> Any:
    """
    Merges `incoming` into `existing` in place where shapes allow it and
    returns the node that should end up at the key.
    """
    if isinstance(existing, Sequence) and isinstance(incoming, Sequence):
        present = [to_plain(item) for item in existing]
        for item in incoming:
            if to_plain(item) not in present:
                existing.append(item)
                present.append(to_plain(item))
        return existing

    if isinstance(existing, Mapping) and isinstance(incoming, Mapping):
        for key, value in incoming.items():
            if key not in existing:
                existing[key] = value
                if key in incoming.ca.items:
                    existing.ca.items[key] = incoming.ca.items[key]
                continue
            current = existing[key]
            merged = merge_nodes(current, value)
            if merged is not current:
                existing[key] = merged
        return existing

    return incoming


class OperationApplicator:
    """
    Runs operations in the order given; never reorders them itself.
    Returns a human-readable action log alongside the mutated tree.
    """

    def __init__(self, adapter: Optional[DocumentAdapter] = None,
                 deprecated: Optional[Dict[str, Iterable[str]]] = None):
        self.adapter = adapter or DocumentAdapter()
        self.deprecated = {k: set(v) for k, v in (deprecated if deprecated is not None
                                                  else DEPRECATED_KEYS).items()}

        # Verb dispatch table; each handler receives (location, operation)
        self.verbs = {
            Verb.SET: self._verb_set,
            Verb.OVERWRITE: self._verb_overwrite,
            Verb.MERGE: self._verb_merge,
            Verb.PRESERVE: self._verb_preserve,
        }

    def apply(self, root: Mapping, operations: List[Operation],
              removals: Optional[Dict[str, Iterable[str]]] = None) -> List[str]:
        actions: List[str] = []
        parents = self._parent_paths(operations)
        original_order = {p: self._keys_at(root, p) for p in parents}

        for op in operations:
            try:
                msg = self._apply_one(root, op)
            except InvalidPathError as e:
                if op.required:
                    raise MissingRequiredPath(op.path, str(e)) from e
                raise
            if msg:
                actions.append(msg)

        drop = {p: set(keys) for p, keys in self.deprecated.items()}
        for parent, keys in (removals or {}).items():
            drop.setdefault(parent, set()).update(keys)
        actions.extend(self._remove(root, drop))

        for parent in parents:
            self._reconstruct_order(root, parent, original_order[parent], operations)
        return actions

    # --- Single operation ---

    def _apply_one(self, root: Mapping, op: Operation) -> str:
        location = resolve(root, op.path, create_if_missing=op.required)
        if location.parent is None:
            logger.debug(f"Skipping optional '{op.path}': parent missing")
            return ""

        if not location.existed:
            if not op.required:
                return ""
            location.parent[location.key] = self._payload(op, location.column)
            self._decorate(location.pair, op)
            return f"Inserted '{op.path}'"

        msg = self.verbs[op.verb](location, op)
        if op.verb is not Verb.PRESERVE:
            self._decorate(location.pair, op)
        return msg

    def _payload(self, op: Operation, column: int) -> Any:
        """Builds the value and moves its comments under a key emitted at `column`."""
        value = op.build()
        if value is None:
            raise MissingRequiredPath(op.path, "payload builder returned nothing")
        node = self.adapter.mapping_from(value)
        indent_comments(node, column + 2)
        return node

    def _verb_set(self, location, op) -> str:
        return ""

    def _verb_overwrite(self, location, op) -> str:
        location.pair.replace_value(self._payload(op, location.column))
        return f"Overwrote '{op.path}'"

    def _verb_merge(self, location, op) -> str:
        existing = location.node
        merged = merge_nodes(existing, self._payload(op, location.column))
        if merged is not existing:
            location.pair.replace_value(merged)
        return f"Merged '{op.path}'"

    def _verb_preserve(self, location, op) -> str:
        return ""

    def _decorate(self, pair, op: Operation):
        """Attaches comment/spacing directives unless a user comment owns the slot."""
        if op.comment_before:
            current = pair.comment
            if current is None or is_system_comment(current):
                pair.set_comment(op.comment_before)
            else:
                logger.info(f"Keeping user comment above '{op.path}'")
        if op.space_before is not None:
            pair.space_before = op.space_before

    # --- Removal & ordering ---

    def _remove(self, root: Mapping, drop: Dict[str, Set[str]]) -> List[str]:
        actions = []
        for parent_path, keys in drop.items():
            parent = find_mapping(root, parent_path)
            if parent is None:
                continue
            for key in sorted(keys):
                if remove_key(parent, key):
                    logger.info(f"Removed '{parent_path}.{key}'")
                    actions.append(f"Removed '{parent_path}.{key}'")
        return actions

    def _parent_paths(self, operations: List[Operation]) -> List[str]:
        """Every mapping path an operation descends through, root ('') first."""
        parents: List[str] = []
        for op in operations:
            segments = op.path.split(".")
            for depth in range(len(segments)):
                parent = ".".join(segments[:depth])
                if parent not in parents:
                    parents.append(parent)
        return parents

    def _keys_at(self, root: Mapping, parent_path: str) -> List[str]:
        mapping = find_mapping(root, parent_path)
        return list(mapping) if mapping is not None else []

    def _reconstruct_order(self, root: Mapping, parent_path: str,
                           original: List[str], operations: List[Operation]):
        mapping = find_mapping(root, parent_path)
        if mapping is None:
            return

        prefix = parent_path + "." if parent_path else ""
        op_keys: List[str] = []
        for op in operations:
            if op.path.startswith(prefix):
                key = op.path[len(prefix):].split(".")[0]
                if key not in op_keys:
                    op_keys.append(key)

        current = list(mapping)
        order = [k for k in original if k in current]
        fresh = [k for k in op_keys if k in current and k not in order]
        fresh += [k for k in current if k not in order and k not in fresh]

        for key in fresh:
            order.insert(self._slot(key, order, op_keys), key)
        reorder(mapping, order)

    def _slot(self, key: str, order: List[str], op_keys: List[str]) -> int:
        """Index right after the nearest earlier op key present, else before the nearest later one."""
        if key not in op_keys:
            return len(order)
        idx = op_keys.index(key)
        for before in reversed(op_keys[:idx]):
            if before in order:
                return order.index(before) + 1
        for after in op_keys[idx + 1:]:
            if after in order:
                return order.index(after)
        return len(order)
