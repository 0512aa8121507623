"""
ConsoleUI - Rich-based console interface.

Formats batch results, restore reports, status and snapshot listings.
"""

from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table
from rich import box

from .. import __version__
from ..catalog.models import MutationCatalog
from ..protocol.result import BatchOutcome, OrchestrationResult, VerificationReport
from ..snapshot.models import RestoreReport, Snapshot, SnapshotInfo


OUTCOME_STYLES = {
    BatchOutcome.SUCCEEDED: "bold green",
    BatchOutcome.SUCCEEDED_WITH_WARNINGS: "bold yellow",
    BatchOutcome.PARTIAL_FAILURE: "bold red",
    BatchOutcome.FAILED: "bold red",
}


class ConsoleUI:
    """
    Rich console interface for pc_optimizer.
    """

    def __init__(self, quiet: bool = False, console: Optional[Console] = None):
        self.quiet = quiet
        self.console = console or Console()

    def print(self, *args, **kwargs):
        """Print to console."""
        if self.quiet:
            return
        self.console.print(*args, **kwargs)

    def print_header(self, title: str):
        """Print a section header."""
        if self.quiet:
            return
        self.console.print()
        self.console.rule(f"[bold blue]{title}[/]")

    def print_banner(self, backend: str, environment_tag: str):
        """Print application banner."""
        if self.quiet:
            return

        banner = (
            f"[bold cyan]PC Optimizer[/] [dim]v{__version__}[/]\n"
            f"[dim]backend: {backend}   environment: {environment_tag}[/]"
        )
        self.console.print(Panel(banner, border_style="cyan"))

    def print_error(self, message: str):
        # Errors are shown even in quiet mode
        self.console.print(f"[bold red]Error:[/] {message}")

    def print_warning(self, message: str):
        if self.quiet:
            return
        self.console.print(f"[yellow]Warning:[/] {message}")

    def print_success(self, message: str):
        if self.quiet:
            return
        self.console.print(f"[green]✓[/] {message}")

    def confirm(self, message: str, default: bool = False) -> bool:
        """Ask a yes/no question."""
        return Confirm.ask(message, default=default, console=self.console)

    # =========================================================================
    # Catalog
    # =========================================================================

    def display_categories(self, catalog: MutationCatalog):
        """Display the available categories."""
        table = Table(title="Optimization categories", box=box.SIMPLE_HEAVY)
        table.add_column("Category", style="cyan")
        table.add_column("Unit")
        table.add_column("Steps", justify="right")
        table.add_column("Description", style="dim")

        for unit in catalog:
            table.add_row(unit.category.label, unit.id, str(len(unit.steps)), unit.description)

        self.console.print(table)

    # =========================================================================
    # Batch
    # =========================================================================

    def display_batch_result(self, result: OrchestrationResult):
        """Display per-unit outcome, snapshot and verification of a batch."""
        self.print_header("Batch Result")

        table = Table(box=box.SIMPLE)
        table.add_column("Category", style="cyan")
        table.add_column("Result")
        table.add_column("Time", justify="right", style="dim")
        table.add_column("Detail")

        for unit in result.per_unit:
            status = "[green]applied[/]" if unit.success else "[red]failed[/]"
            label = unit.category.label if unit.category else unit.unit_id
            table.add_row(label, status, f"{unit.duration_seconds:.1f}s", unit.detail)

        self.console.print(table)

        if result.snapshot_id:
            self.print(f"Snapshot: [bold]{result.snapshot_id}[/]  (restore with: pc-optimizer restore)")
        else:
            self.print_warning(f"No rollback available, snapshot failed: {result.snapshot_error}")

        if result.cancelled:
            self.print_warning("Batch was cancelled")

        if result.verification is not None:
            self.display_verification(result.verification, title="Verification")

        style = OUTCOME_STYLES[result.outcome]
        self.console.print(
            f"\n[{style}]{result.outcome.value}[/]: "
            f"{result.applied}/{result.requested} applied, {result.failed} failed "
            f"in {result.elapsed_seconds:.1f}s"
        )

    def display_verification(self, report: VerificationReport, title: str = "Status"):
        """Display per-category indicator matches."""
        table = Table(title=title, box=box.SIMPLE)
        table.add_column("Category", style="cyan")
        table.add_column("Optimized")
        table.add_column("Expected", style="dim")
        table.add_column("Actual", style="dim")

        mismatches = {m.category: m for m in report.mismatches}
        for category, matched in report.per_category_match.items():
            mismatch = mismatches.get(category)
            table.add_row(
                category.label,
                "[green]yes[/]" if matched else "[red]no[/]",
                mismatch.expected if mismatch else "",
                mismatch.actual if mismatch else "",
            )

        self.console.print(table)

    def display_status(
        self,
        report: VerificationReport,
        latest_snapshot: Optional[str],
        environment_tag: str,
    ):
        """Display host status."""
        self.display_verification(report, title="Host status")
        optimized = sum(1 for matched in report.per_category_match.values() if matched)
        self.print(f"{optimized}/{len(report.per_category_match)} categories optimized")
        self.print(f"Environment: {environment_tag}")
        self.print(f"Latest snapshot: {latest_snapshot or '[dim](none)[/]'}")

    # =========================================================================
    # Snapshots
    # =========================================================================

    def display_restore_report(self, report: RestoreReport):
        """Display restore outcome."""
        self.print_header("Restore")
        self.print(
            f"Snapshot {report.snapshot_id}: "
            f"{report.restored_keys} key(s), {report.restored_services} service(s) restored"
        )
        if report.success:
            self.print_success("Restore complete")
            return

        self.print_error("Restore incomplete, host is in a mixed state")
        for key in report.failed_keys:
            self.console.print(f"  [red]key[/] {key}")
        for service in report.failed_services:
            self.console.print(f"  [red]service[/] {service}")

    def display_snapshots(self, snapshots: List[SnapshotInfo]):
        """Display snapshot listing."""
        if not snapshots:
            self.print("[dim]No snapshots[/]")
            return

        table = Table(title="Snapshots", box=box.SIMPLE)
        table.add_column("ID", style="cyan")
        table.add_column("Created")
        table.add_column("Categories")
        table.add_column("Keys", justify="right")
        table.add_column("Services", justify="right")

        for info in snapshots:
            table.add_row(
                info.id,
                info.created_at,
                ", ".join(c.lower() for c in info.categories),
                str(info.key_count),
                str(info.service_count),
            )

        self.console.print(table)

    def display_snapshot(self, snapshot: Snapshot):
        """Display one snapshot's captured values."""
        self.print_header(f"Snapshot {snapshot.id}")
        self.print(f"Created: {snapshot.created_at}")
        self.print(f"Environment: {snapshot.environment_tag}")
        self.print(f"Categories: {', '.join(snapshot.categories) or '-'}")

        table = Table(box=box.SIMPLE)
        table.add_column("Key", style="cyan")
        table.add_column("Previous value")
        for key in snapshot.captured_keys:
            table.add_row(key.label, "[dim](absent)[/]" if key.previous is None else repr(key.previous))
        self.console.print(table)

        if snapshot.captured_services:
            services = Table(box=box.SIMPLE)
            services.add_column("Service", style="cyan")
            services.add_column("Previous startup mode")
            for service in snapshot.captured_services:
                services.add_row(service.name, service.previous_startup_mode.value)
            self.console.print(services)
