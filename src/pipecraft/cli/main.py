#!/usr/bin/env python3
"""
PIPECRAFT CLI - Generate & Check
--------------------------------
Primary interface: `pipecraft generate` writes or updates the pipeline
workflow from .pipecraftrc, `pipecraft check` reports whether the file
on disk is up to date without touching it.

Author: Pipecraft Team
Date: 2026-01-16
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional

# Rich library components for high-fidelity terminal UI
from rich.console import Console
from rich.panel import Panel

from pipecraft.cli.formatter import PipecraftFormatter
from pipecraft.config.loader import load_config
from pipecraft.core.engine import PipelineComposer
from pipecraft.core.errors import PipecraftError, ValidationFailed
from pipecraft.core.models import ComposeResult

VERSION = "1.0.0"

# Global console for consistent styling across the application
console = Console()


class PipecraftCLI:
    """
    CLI wrapper that translates user commands into composer runs.
    Returns process exit codes instead of exiting, so it can be driven from tests.
    """

    def __init__(self, out: Optional[Console] = None):
        self.console = out or console
        self.formatter = PipecraftFormatter(self.console)
        self.root = Path(".").resolve()
        self.parser = argparse.ArgumentParser(
            prog="pipecraft",
            description="Pipecraft - CI/CD pipeline generator that keeps your customizations",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self._setup_args()

    def _setup_args(self):
        """Configures the command-line flags and subcommands."""
        self.parser.add_argument("--version", action="version", version=f"pipecraft v{VERSION}")
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        common = argparse.ArgumentParser(add_help=False)
        common.add_argument("-c", "--config", help="Path to the config file (default: discover .pipecraftrc)")
        common.add_argument("-o", "--output", help="Workflow path (default: from config)")
        common.add_argument("-w", "--workspace", default=".", help="Repository root (default: .)")
        common.add_argument("--force", action="store_true", help="Rebuild managed content from scratch")
        common.add_argument("--diff", action="store_true", help="Show a unified diff of the changes")
        common.add_argument("-v", "--verbose", action="store_true", help="Log every applied operation")

        # 'generate' subcommand - writes the workflow
        gen_parser = subparsers.add_parser("generate", parents=[common],
                                           help="🛠  Generate or update the pipeline workflow")
        gen_parser.add_argument("--dry-run", action="store_true", help="Preview results without writing")
        gen_parser.add_argument("--backup", action="store_true", help="Keep a .pipecraft.backup copy")

        # 'check' subcommand - read-only
        subparsers.add_parser("check", parents=[common],
                              help="🔍 Exit non-zero when the workflow is out of date")

    def print_header(self, subtitle: str):
        """Renders the Pipecraft splash header with themed styling."""
        self.console.print(Panel.fit(
            f"[bold cyan]Pipecraft v{VERSION}[/bold cyan]\n"
            "══════════════════════════════════════════════════════════════════",
            title=f"[bold white]{subtitle}[/bold white]",
            border_style="cyan"
        ))

    def _composer(self, args: argparse.Namespace) -> PipelineComposer:
        schema = load_config(args.config, start=args.workspace)
        self.formatter.print_schema(schema)
        composer = PipelineComposer(schema, args.workspace, output_path=args.output)
        self.root = composer.workspace
        return composer

    def _show_diffs(self, result: ComposeResult):
        for item in result.files:
            self.formatter.display_diff(item.previous, item.content, self._display_path(item.path))

    def _display_path(self, path: str) -> str:
        try:
            return Path(path).relative_to(self.root).as_posix()
        except ValueError:
            return path

    def _run_generate(self, args: argparse.Namespace) -> int:
        composer = self._composer(args)
        result = composer.generate(force=args.force, dry_run=args.dry_run, backup=args.backup)

        if args.verbose:
            for item in result.files:
                self.formatter.show_actions(item.actions)
        if args.diff:
            self._show_diffs(result)
        self.formatter.show_warnings(result.warnings)
        self.formatter.print_final_table(result, composer.generate_summary(result))

        if args.dry_run and result.stale:
            self.console.print("[bold yellow]Dry run: nothing was written.[/bold yellow]")
        elif not result.stale:
            self.console.print("[green]Workflow already up to date.[/green]")
        return 0

    def _run_check(self, args: argparse.Namespace) -> int:
        composer = self._composer(args)
        result = composer.compose(force=args.force)
        valid, message = composer.validator.validate(result.content, result.owned_jobs)
        if not valid:
            raise ValidationFailed(message)
        for action in result.action_files:
            valid, message = composer.validator.validate_action(action.content)
            if not valid:
                raise ValidationFailed(f"{action.path}: {message}")

        if args.diff:
            self._show_diffs(result)
        self.formatter.show_warnings(result.warnings + composer.validator.lint(result.content))

        stale = [item for item in result.files if item.changed]
        for item in stale:
            self.console.print(f"[bold red]✗ {self._display_path(item.path)} is out of date.[/bold red]")
        if stale:
            self.console.print("Run 'pipecraft generate' to update it.")
            return 1
        self.console.print(f"[bold green]✓ {composer.output} is up to date.[/bold green]")
        return 0

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Primary routing entry point."""
        argv = sys.argv[1:] if argv is None else argv
        if not argv:
            self.print_header("CI/CD Pipeline Generator")
            self.parser.print_help()
            return 0

        args = self.parser.parse_args(argv)
        if args.command is None:
            self.parser.print_help()
            return 0

        logging.basicConfig(
            level=logging.INFO if args.verbose else logging.WARNING,
            format="%(levelname)s %(name)s: %(message)s",
        )

        try:
            if args.command == "check":
                self.print_header("Workflow Check")
                return self._run_check(args)
            self.print_header("Workflow Generator")
            return self._run_generate(args)
        except PipecraftError as e:
            self.console.print(f"[bold red]{type(e).__name__}:[/bold red] {e}")
            if e.remedy:
                self.console.print(f"[yellow]Remedy:[/yellow] {e.remedy}")
            return e.exit_code


def main():
    """Application entry point with interrupt handling."""
    try:
        sys.exit(PipecraftCLI().run())
    except KeyboardInterrupt:
        console.print("\n[bold red]Terminated by user.[/bold red]")
        sys.exit(130)


if __name__ == "__main__":
    main()
