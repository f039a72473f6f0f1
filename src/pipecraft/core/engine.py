#!/usr/bin/env python3
"""
PIPECRAFT ENGINE - The Document Composer
----------------------------------------
The PipelineComposer drives one generation run: it reads the previous
workflow, sets the custom jobs section aside, lets the applicator bring
the managed parts in line with the schema, then splices the custom
section back. The composite actions the workflow calls are composed
the same way, one document each, and every changed file is persisted
atomically.

Author: Pipecraft Team
Date: 2026-01-16
"""

import os
import shutil
import logging
from pathlib import Path
from typing import Dict, List, Optional, Set

from pipecraft.core.errors import IOFailure, MalformedDocument, ValidationFailed
from pipecraft.core.models import ComposeResult, PipelineSchema, Status
from pipecraft.merge.applicator import DEPRECATED_KEYS, OperationApplicator, is_system_comment
from pipecraft.merge.document import DocumentAdapter
from pipecraft.merge.nodes import Document, Mapping, Pair
from pipecraft.merge.paths import find_mapping
from pipecraft.merge.sections import DEFAULT_CUSTOM_SECTION, SectionExtractor
from pipecraft.validator.validator import WorkflowValidator
from pipecraft.workflows.actions import ActionBuilder
from pipecraft.workflows.builder import WorkflowBuilder, domain_jobs

logger = logging.getLogger("pipecraft.engine")

BACKUP_SUFFIX = ".pipecraft.backup"
TEMP_SUFFIX = ".pipecraft.tmp"


class PipelineComposer:
    """
    Principal orchestrator for pipeline generation.
    `compose` is side-effect free apart from reading the previous file;
    `generate` adds validation and the write.
    """

    def __init__(self, schema: PipelineSchema, workspace_path: str = ".",
                 output_path: Optional[str] = None,
                 adapter: Optional[DocumentAdapter] = None):
        self.schema = schema
        self.workspace = Path(workspace_path).resolve()
        self.output = Path(output_path or schema.output)

        self.adapter = adapter or DocumentAdapter()
        self.sections = SectionExtractor()
        self.builder = WorkflowBuilder(schema, self.adapter)
        self.applicator = OperationApplicator(self.adapter)
        self.actions = ActionBuilder(schema, self.adapter)
        self.action_applicator = OperationApplicator(self.adapter, deprecated={})
        self.validator = WorkflowValidator()

    @property
    def target(self) -> Path:
        return self.output if self.output.is_absolute() else self.workspace / self.output

    # --- Composition ---

    def _read(self, path: Path) -> Optional[str]:
        """Reads a file (BOM-aware), or None when there is none yet."""
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise IOFailure(str(path), str(e)) from e

    def read_previous(self) -> Optional[str]:
        return self._read(self.target)

    def compose(self, force: bool = False) -> ComposeResult:
        result = self.compose_text(self.read_previous(), force=force)
        result.action_files = self.compose_actions(force=force)
        return result

    def compose_actions(self, force: bool = False) -> List[ComposeResult]:
        """
        Brings every composite action the workflow calls in line with the
        schema. Each action file is its own document; there is no custom
        section, so user additions survive at any key the operations do
        not own.
        """
        results = []
        for name, operations in self.actions.operations().items():
            path = self.workspace / self.actions.path_for(name)
            previous = self._read(path)
            if previous is not None and not force:
                document = self.adapter.parse(previous)
            else:
                document = Document()

            actions = self.action_applicator.apply(document.root, operations)
            if previous is None:
                status = Status.CREATED
            else:
                status = Status.REBUILT if force else Status.UPDATED
            results.append(ComposeResult(
                path=str(path),
                status=status,
                content=self.adapter.serialize(document),
                previous=previous,
                actions=actions,
            ))
        return results

    def compose_text(self, previous: Optional[str], force: bool = False) -> ComposeResult:
        """
        Produces the new workflow text from `previous` (None on first run).
        Forced runs rebuild the managed document from scratch but still
        keep the custom section.
        """
        section = self.sections.extract(previous) if previous is not None else None
        customized = self.sections.is_customized(section)
        warnings: List[str] = []

        prior_root: Optional[Mapping] = None
        if previous is not None and not force:
            document = self.adapter.parse(self.sections.strip(previous))
            prior_root = document.root
        else:
            document = Document()
            if previous is not None:
                prior_root = self._parse_best_effort(previous, warnings)

        owned = self.builder.owned_jobs()
        stale = self._stale_domain_jobs(prior_root)
        removals = {"jobs": stale} if stale and not force else None

        if force and prior_root is not None and not customized:
            carried = self._carry_foreign_jobs(prior_root, set(owned) | stale)
            if carried:
                logger.info("Carrying foreign jobs into the custom section")
                section, customized = carried, True

        actions = self.applicator.apply(document.root, self.builder.operations(), removals)
        text = self.adapter.serialize(document)
        text = self.sections.splice(text, section if customized else DEFAULT_CUSTOM_SECTION)

        if previous is None:
            status = Status.CREATED
        elif force:
            status = Status.REBUILT
        elif customized:
            status = Status.MERGED
        else:
            status = Status.UPDATED

        logger.info(f"Composed {self.output} ({status.value}, {len(actions)} actions)")
        return ComposeResult(
            path=str(self.target),
            status=status,
            content=text,
            previous=previous,
            custom_section_found=section is not None,
            owned_jobs=owned,
            actions=actions,
            warnings=warnings,
        )

    def _parse_best_effort(self, previous: str, warnings: List[str]) -> Optional[Mapping]:
        try:
            return self.adapter.parse(self.sections.strip(previous)).root
        except MalformedDocument as e:
            logger.warning(f"Previous workflow is not parseable, rebuilding blind: {e}")
            warnings.append(f"Previous workflow could not be parsed: {e}")
            return None

    def _stale_domain_jobs(self, prior_root: Optional[Mapping]) -> Set[str]:
        """Domain jobs of domains the previous run generated but the schema no longer lists."""
        if prior_root is None:
            return set()
        outputs = find_mapping(prior_root, "jobs.changes.outputs")
        if outputs is None:
            return set()
        stale: Set[str] = set()
        for domain in outputs.keys():
            if domain not in self.schema.domains:
                logger.info(f"Domain '{domain}' was removed from the schema")
                stale.update(domain_jobs(domain))
        return stale

    def _carry_foreign_jobs(self, prior_root: Mapping, skip: Set[str]) -> Optional[str]:
        jobs = find_mapping(prior_root, "jobs")
        if jobs is None:
            return None
        skip = skip | DEPRECATED_KEYS.get("jobs", frozenset())
        blocks = []
        for key in jobs:
            if key in skip:
                continue
            pair = Pair(jobs, key, 2)
            pair.space_before = False
            if is_system_comment(pair.comment):
                pair.set_comment(None)
            blocks.append(self.adapter.serialize_pairs([pair], 2))
        return "\n\n".join(blocks) if blocks else None

    # --- Persistence ---

    def generate(self, force: bool = False, dry_run: bool = False,
                 backup: bool = False) -> ComposeResult:
        """
        Composes, validates and writes the workflow and its composite
        actions. Nothing is written on dry runs, for files whose content
        is unchanged, or when any file fails validation.
        """
        result = self.compose(force=force)

        valid, message = self.validator.validate(result.content, result.owned_jobs)
        if not valid:
            raise ValidationFailed(message)
        for action in result.action_files:
            valid, message = self.validator.validate_action(action.content)
            if not valid:
                raise ValidationFailed(f"{action.path}: {message}")
        result.warnings.extend(self.validator.lint(result.content))

        if dry_run:
            return result

        for item in result.files:
            if not item.changed:
                continue
            target = Path(item.path)
            if backup and target.exists():
                item.backup_path = str(self._backup(target))
                if item is result:
                    result.warnings.extend(self.check_git_safety())
            self._atomic_write(target, item.content)
            item.written = True
            logger.info(f"Wrote {target}")
        return result

    def _backup(self, target_path: Path) -> Path:
        backup_path = self._create_unique_backup(target_path)
        try:
            shutil.copy2(target_path, backup_path)
        except OSError as e:
            raise IOFailure(str(backup_path), f"Backup failed: {e}") from e
        return backup_path

    def _atomic_write(self, target_path: Path, content: str):
        temp_file = target_path.with_name(target_path.name + TEMP_SUFFIX)
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            temp_file.write_text(content, encoding="utf-8")
            os.replace(temp_file, target_path)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise IOFailure(str(target_path), f"Atomic write failed: {e}") from e

    def _create_unique_backup(self, target_path: Path) -> Path:
        backup_path = target_path.with_name(target_path.name + BACKUP_SUFFIX)
        counter = 1
        while backup_path.exists():
            backup_path = target_path.with_name(f"{target_path.name}-{counter}{BACKUP_SUFFIX}")
            counter += 1
        return backup_path

    def check_git_safety(self) -> List[str]:
        warnings = []
        gitignore = self.workspace / ".gitignore"
        if (self.workspace / ".git").exists() and gitignore.exists():
            content = gitignore.read_text(encoding="utf-8", errors="ignore")
            for ext in ["*" + BACKUP_SUFFIX, "*" + TEMP_SUFFIX]:
                if ext not in content:
                    warnings.append(f"Add '{ext}' to .gitignore")
        return warnings

    def generate_summary(self, result: ComposeResult) -> Dict[str, object]:
        """Counts shown in the CLI's closing table."""
        removed = sum(1 for a in result.actions if a.startswith("Removed"))
        inserted = sum(1 for a in result.actions if a.startswith("Inserted"))
        return {
            "status": result.status.value,
            "owned_jobs": len(result.owned_jobs),
            "inserted": inserted,
            "removed": removed,
            "changed": result.changed,
            "written": result.written,
            "backup": result.backup_path,
            "action_files": len(result.action_files),
            "action_files_written": sum(1 for a in result.action_files if a.written),
        }
