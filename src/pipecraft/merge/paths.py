#!/usr/bin/env python3
"""
PIPECRAFT PATH RESOLVER
-----------------------
Walks dotted mapping paths such as `jobs.test-api.steps`, optionally
creating the intermediate mappings on the way down.

Author: Pipecraft Team
Date: 2026-01-16
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from pipecraft.core.errors import InvalidPathError
from pipecraft.merge.nodes import Mapping, Pair


@dataclass
class Location:
    """A handle to the final path segment inside its parent mapping."""
    path: str
    parent: Optional[Mapping]  # None when a missing intermediate was not created
    key: str
    existed: bool

    @property
    def column(self) -> int:
        """Column the key is emitted at: two per nesting level."""
        return 2 * (len(self.path.split(".")) - 1)

    @property
    def node(self) -> Any:
        return self.parent.get(self.key) if self.parent is not None else None

    @property
    def pair(self) -> Optional[Pair]:
        if self.parent is None or self.key not in self.parent:
            return None
        return Pair(self.parent, self.key, self.column)


def split_path(path: str) -> List[str]:
    segments = path.split(".") if path else []
    if not segments or any(not s for s in segments):
        raise InvalidPathError(path, path, reason="is empty")
    return segments


def find_mapping(root: Mapping, path: str) -> Optional[Mapping]:
    """Returns the mapping stored at `path` (root for ''), or None when absent or not a mapping."""
    current: Any = root
    for segment in (path.split(".") if path else []):
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment)
    return current if isinstance(current, Mapping) else None


def resolve(root: Mapping, path: str, create_if_missing: bool = False) -> Location:
    """
    Resolves `path` against `root`. Missing intermediates become empty
    mappings appended at the end of their parent when `create_if_missing`
    is set. A null intermediate (`workflow_dispatch:` with no value)
    counts as an empty mapping.
    """
    segments = split_path(path)
    current = root
    for segment in segments[:-1]:
        child = current.get(segment)
        if child is None:
            if not create_if_missing:
                return Location(path, None, segments[-1], existed=False)
            child = Mapping()
            current[segment] = child
        elif not isinstance(child, Mapping):
            raise InvalidPathError(path, segment)
        current = child

    return Location(path, current, segments[-1], existed=segments[-1] in current)
