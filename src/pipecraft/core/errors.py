#!/usr/bin/env python3
"""
PIPECRAFT ERRORS - Failure Taxonomy
-----------------------------------
Every failure the generator can raise derives from PipecraftError.
Each class carries the process exit code and a short remedy hint that
the CLI prints next to the error message.

Author: Pipecraft Team
Date: 2026-01-16
"""

from typing import Optional


class PipecraftError(Exception):
    """Base exception for all Pipecraft failures."""

    exit_code: int = 1
    remedy: str = ""


class MalformedDocument(PipecraftError):
    """
    A previously generated document could not be parsed.
    Carries the offending text and, where the parser reports one,
    a 1-based line/column locator.
    """

    exit_code = 2
    remedy = "Back up the file and run again with --force to rebuild it."

    def __init__(self, message: str, text: str = "",
                 line: Optional[int] = None, column: Optional[int] = None):
        self.text = text
        self.line = line
        self.column = column
        location = f" (line {line}, column {column})" if line is not None else ""
        super().__init__(f"{message}{location}")


class InvalidPathError(PipecraftError):
    """An operation path walks through something that is not a mapping."""

    exit_code = 3
    remedy = "This is an internal defect in an operation path. Please report it."

    def __init__(self, path: str, segment: str, reason: str = "is not a mapping"):
        self.path = path
        self.segment = segment
        super().__init__(f"Cannot resolve '{path}': segment '{segment}' {reason}")


class MissingRequiredPath(PipecraftError):
    """A required operation could not be resolved or applied."""

    exit_code = 3
    remedy = "Check the workflow for keys that were changed into lists or values."

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        detail = f": {reason}" if reason else ""
        super().__init__(f"Required path '{path}' could not be applied{detail}")


class IOFailure(PipecraftError):
    """Reading or writing at the file-system boundary failed."""

    exit_code = 4
    remedy = "Check that the path exists and is writable."

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"I/O failure on {path}: {reason}")


class AnchorNotFound(PipecraftError):
    """The serialized workflow has no version outputs block to anchor the custom section."""

    exit_code = 3
    remedy = "This is an internal defect in the version job template. Please report it."


class ConfigError(PipecraftError):
    """The schema file is missing or invalid."""

    exit_code = 5
    remedy = "Fix the configuration file (see .pipecraftrc) and run again."


class ValidationFailed(PipecraftError):
    """The generated workflow failed the post-generation checks; nothing was written."""

    exit_code = 6
    remedy = "Inspect the custom jobs section for invalid YAML."
