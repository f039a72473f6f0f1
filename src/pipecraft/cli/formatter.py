# src/pipecraft/cli/formatter.py
import difflib
from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from pipecraft.core.models import ComposeResult, PipelineSchema

# Initialize the Rich console for high-quality terminal output
console = Console()

STATUS_COLORS = {
    "created": "green",
    "updated": "cyan",
    "merged": "magenta",
    "rebuilt": "yellow",
}


class PipecraftFormatter:
    """
    PipecraftFormatter: the visual side of the CLI.
    Responsible for rendering diffs, the schema overview and run reports.
    """

    def __init__(self, out: Optional[Console] = None):
        self.console = out or console

    def display_diff(self, original_text: Optional[str], new_text: str, file_name: str):
        """Renders a colorized unified diff between the previous and the generated workflow."""
        diff = difflib.unified_diff(
            (original_text or "").splitlines(),
            new_text.splitlines(),
            fromfile=f"a/{file_name}",
            tofile=f"b/{file_name}",
            lineterm=""
        )
        diff_list = list(diff)

        if not diff_list:
            self.console.print(f"[dim]ℹ No changes needed for {file_name}.[/dim]")
            return

        syntax = Syntax("\n".join(diff_list), "diff", theme="monokai", line_numbers=True)
        self.console.print(Panel(
            syntax,
            title=f"Proposed Changes: {file_name}",
            border_style="green"
        ))

    def show_actions(self, actions: List[str]):
        """Lists what the applicator did, one line per action."""
        for action in actions:
            self.console.print(f"[bold cyan]⚙  Applied:[/bold cyan] {action}")

    def show_warnings(self, warnings: List[str]):
        for warning in warnings:
            self.console.print(f"[bold yellow]⚠  Warning:[/bold yellow] {warning}")

    def print_schema(self, schema: PipelineSchema):
        """One row per domain with the jobs it contributes."""
        table = Table(title=f"Branch flow: {' → '.join(schema.branch_flow)}",
                      header_style="bold magenta")
        table.add_column("Domain", style="cyan")
        table.add_column("Test", justify="center")
        table.add_column("Deploy", justify="center")
        table.add_column("Remote Test", justify="center")
        table.add_column("Paths", style="dim")

        def mark(flag: bool) -> str:
            return "✅" if flag else "·"

        for name in schema.domain_names:
            domain = schema.domains[name]
            table.add_row(name, mark(domain.test), mark(domain.deploy),
                          mark(domain.remote_test), ", ".join(domain.paths))
        self.console.print(table)

    def print_final_table(self, result: ComposeResult, summary: Dict[str, object]):
        """Builds the summary table shown at the very end of a run."""
        table = Table(title="Pipecraft Generation Report", show_header=True, header_style="bold magenta")
        table.add_column("Workflow", style="cyan")
        table.add_column("Status")
        table.add_column("Jobs", justify="right")
        table.add_column("Custom Section", justify="center")
        table.add_column("Written", justify="center")

        color = STATUS_COLORS.get(result.status.value, "white")
        table.add_row(
            result.path,
            f"[{color}]{result.status.value.upper()}[/{color}]",
            str(summary["owned_jobs"]),
            "✅" if result.custom_section_found else "—",
            "✅" if result.written else "—",
        )
        # Composite actions: no jobs, no custom section
        for action in result.action_files:
            color = STATUS_COLORS.get(action.status.value, "white")
            status = action.status.value.upper() if action.changed else "CURRENT"
            table.add_row(
                action.path,
                f"[{color}]{status}[/{color}]",
                "—",
                "—",
                "✅" if action.written else "—",
            )
        self.console.print(table)

        if summary.get("backup"):
            self.console.print(f"[dim]Backup saved to {summary['backup']}[/dim]")
