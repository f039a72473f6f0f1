#!/usr/bin/env python3
"""
PIPECRAFT CORE MODELS
---------------------
Defines the fundamental data structures shared across the generator:
the pipeline schema, the declarative path operations and the result
of a generation run.

Author: Pipecraft Team
Date: 2026-01-16
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

DEFAULT_OUTPUT = ".github/workflows/pipeline.yml"


class Verb(Enum):
    """How an operation treats content already present at its target key."""
    SET = "set"              # Ensure the key exists, never touch an existing value
    OVERWRITE = "overwrite"  # Always replace with the schema-derived value
    MERGE = "merge"          # Union sequences, recurse into mappings
    PRESERVE = "preserve"    # User-owned: only scaffold when absent


class Status(str, Enum):
    """Terminal states reported for a generated document."""
    CREATED = "created"
    UPDATED = "updated"
    MERGED = "merged"
    REBUILT = "rebuilt"


@dataclass
class DomainConfig:
    """Per-domain switches controlling which jobs are generated."""
    test: bool = True
    deploy: bool = False
    remote_test: bool = False
    paths: List[str] = field(default_factory=list)  # Globs handed to change detection


@dataclass
class PipelineSchema:
    """
    The validated pipeline description.

    branch_flow lists branches in promotion order (e.g. develop -> staging -> main).
    initial_branch and final_branch default to the first and last entries.
    """
    branch_flow: List[str]
    domains: Dict[str, DomainConfig] = field(default_factory=dict)
    initial_branch: Optional[str] = None
    final_branch: Optional[str] = None
    runner: str = "ubuntu-latest"
    output: str = DEFAULT_OUTPUT

    def __post_init__(self):
        if self.initial_branch is None and self.branch_flow:
            self.initial_branch = self.branch_flow[0]
        if self.final_branch is None and self.branch_flow:
            self.final_branch = self.branch_flow[-1]

    @property
    def domain_names(self) -> List[str]:
        return sorted(self.domains)

    @property
    def test_domains(self) -> List[str]:
        return [d for d in self.domain_names if self.domains[d].test]

    @property
    def deploy_domains(self) -> List[str]:
        return [d for d in self.domain_names if self.domains[d].deploy]

    @property
    def remote_test_domains(self) -> List[str]:
        return [d for d in self.domain_names if self.domains[d].remote_test]


Payload = Union[Any, Callable[[], Any]]


@dataclass
class Operation:
    """
    A declarative instruction against one dotted path of the document.

    payload is a node, plain Python data, or a zero-argument builder
    returning either. Builders are only invoked when the verb needs them.
    """
    path: str
    verb: Verb
    payload: Payload = None
    comment_before: Optional[str] = None
    space_before: Optional[bool] = None
    required: bool = True

    def build(self) -> Any:
        return self.payload() if callable(self.payload) else self.payload


@dataclass
class ComposeResult:
    """Outcome of one generation run, consumed by the CLI report."""
    path: str
    status: Status
    content: str
    previous: Optional[str] = None       # Prior file text, None on first run
    written: bool = False
    backup_path: Optional[str] = None
    custom_section_found: bool = False
    owned_jobs: List[str] = field(default_factory=list)
    actions: List[str] = field(default_factory=list)   # Applicator action log
    warnings: List[str] = field(default_factory=list)
    action_files: List["ComposeResult"] = field(default_factory=list)  # Composite actions

    @property
    def changed(self) -> bool:
        """True when this file's content differs from what is on disk."""
        return self.previous != self.content

    @property
    def files(self) -> List["ComposeResult"]:
        """This result followed by the composite action results."""
        return [self] + self.action_files

    @property
    def stale(self) -> bool:
        return any(f.changed for f in self.files)
