"""
cli/reporter.py - Report Rendering

Renders ComparisonReport / TwoSourceReport values as a rich console
summary, a JSON document or a CSV file, and hosts the rich progress bar
used while counterpart balances are fetched.
"""

import csv
import json
import logging
import time
from pathlib import Path
from typing import Iterable, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table

from reconciliation.models import ComparisonReport, TwoSourceComparison, TwoSourceReport

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("console", "json", "csv")

# Console listing limits for the two-source report
UNIQUE_PREVIEW = 10
MISMATCH_PREVIEW = 20


class RichProgressObserver:
    """Progress bar fed by the fetch scheduler."""

    def __init__(self, console: Optional[Console] = None, description: str = "Fetching balances"):
        self.console = console or Console(stderr=True)
        self.description = description
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def start(self, total: int) -> None:
        self._progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            MofNCompleteColumn(),
            TextColumn("addresses"),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self._progress.start()
        self._task = self._progress.add_task(self.description, total=total)

    def update(self, completed: int) -> None:
        if self._progress is not None and self._task is not None:
            self._progress.update(self._task, completed=completed)

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
            self._task = None


class Reporter:
    """Console / JSON / CSV output for reconciliation reports."""

    def __init__(self, console: Optional[Console] = None, err_console: Optional[Console] = None):
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    # ------------------------------------------------------------------
    # Baseline vs counterpart
    # ------------------------------------------------------------------

    def generate_report(
        self,
        report: ComparisonReport,
        output_format: str,
        output_file: Optional[str] = None,
    ) -> Optional[Path]:
        if output_format == "console":
            self.print_console_report(report)
            return None
        if output_format == "json":
            return self._write_json(report.to_dict(), output_file, "balance-report")
        if output_format == "csv":
            return self._write_csv(self._report_rows(report), output_file, "balance-report")
        raise ValueError(f"Unsupported output format: {output_format}")

    def print_console_report(self, report: ComparisonReport):
        self.console.print(Panel.fit("[bold cyan]BALANCE COMPARISON REPORT[/bold cyan]"))
        self.console.print(f"[bold]Process ID:[/bold] {report.process_id}")
        self.console.print(f"[bold]Timestamp:[/bold] {report.timestamp.isoformat()}")
        self.console.print(f"[bold]Total Addresses:[/bold] {report.total_addresses}")

        summary = Table(title="Summary", show_header=False)
        summary.add_column("Metric", style="bold")
        summary.add_column("Value", justify="right")
        summary.add_row("[green]✓ Matching[/green]", str(report.matching_count))
        summary.add_row("[red]✗ Mismatching[/red]", str(report.mismatch_count))
        if report.unknown_count:
            summary.add_row("[yellow]? Unknown[/yellow]", str(report.unknown_count))
        summary.add_row("Accuracy", f"{report.accuracy_percentage:.2f}%")
        summary.add_row("Total Discrepancy", report.total_discrepancy)
        self.console.print(summary)

        if report.mismatch_count:
            table = Table(title="[bold red]MISMATCHED BALANCES[/bold red]")
            table.add_column("#", justify="right")
            table.add_column("Address", style="cyan")
            table.add_column("AO Balance", justify="right")
            table.add_column("Hyperbeam Balance", justify="right")
            table.add_column("Difference", justify="right", style="red")
            for i, m in enumerate(report.mismatches, 1):
                table.add_row(str(i), escape(m.address), m.baseline_balance, m.counterpart_balance or "", m.difference or "0")
            self.console.print(table)
        else:
            self.console.print("[bold green]✓ All balances match![/bold green]")

        if report.unknown_count:
            table = Table(title="[bold yellow]UNFETCHED BALANCES[/bold yellow]")
            table.add_column("Address", style="cyan")
            table.add_column("AO Balance", justify="right")
            for u in report.unknowns:
                table.add_row(escape(u.address), u.baseline_balance)
            self.console.print(table)

    def _report_rows(self, report: ComparisonReport) -> List[List[str]]:
        rows = [["Address", "AO Balance", "Hyperbeam Balance", "Match", "Difference"]]
        for c in list(report.mismatches) + list(report.matches) + list(report.unknowns):
            rows.append([
                c.address,
                c.baseline_balance,
                c.counterpart_balance if c.counterpart_balance is not None else "",
                "Yes" if c.match else "No",
                c.difference or "0",
            ])
        rows.append([])
        rows.append(["Summary"])
        rows.append(["Total Addresses", str(report.total_addresses)])
        rows.append(["Matching", str(report.matching_count)])
        rows.append(["Mismatching", str(report.mismatch_count)])
        rows.append(["Unknown", str(report.unknown_count)])
        rows.append(["Accuracy", f"{report.accuracy_percentage:.2f}%"])
        rows.append(["Total Discrepancy", report.total_discrepancy])
        rows.append(["Process ID", report.process_id])
        rows.append(["Timestamp", report.timestamp.isoformat()])
        return rows

    # ------------------------------------------------------------------
    # Two-source
    # ------------------------------------------------------------------

    def generate_two_source_report(
        self,
        report: TwoSourceReport,
        output_format: str,
        output_file: Optional[str] = None,
    ) -> Optional[Path]:
        if output_format == "console":
            self.print_two_source_console_report(report)
            return None
        if output_format == "json":
            return self._write_json(report.to_dict(), output_file, "cu-comparison")
        if output_format == "csv":
            return self._write_csv(self._two_source_rows(report), output_file, "cu-comparison")
        raise ValueError(f"Unsupported output format: {output_format}")

    def print_two_source_console_report(self, report: TwoSourceReport):
        self.console.print(Panel.fit("[bold cyan]CU BALANCE COMPARISON REPORT[/bold cyan]"))
        self.console.print(f"[bold]Process ID:[/bold] {report.process_id}")
        self.console.print(f"[bold]Message ID:[/bold] {report.message_id}")
        self.console.print(f"[bold]Timestamp:[/bold] {report.timestamp.isoformat()}")
        self.console.print(f"[blue]CU A:[/blue] {escape(report.source_a_url)}")
        self.console.print(f"[blue]CU B:[/blue] {escape(report.source_b_url)}")

        summary = Table(title="Summary", show_header=False)
        summary.add_column("Metric", style="bold")
        summary.add_column("Value", justify="right")
        summary.add_row("Total Addresses (CU A)", str(report.total_addresses_a))
        summary.add_row("Total Addresses (CU B)", str(report.total_addresses_b))
        summary.add_row("Common Addresses", str(report.common_addresses))
        summary.add_row("[yellow]Only in CU A[/yellow]", str(report.only_in_a))
        summary.add_row("[yellow]Only in CU B[/yellow]", str(report.only_in_b))
        summary.add_row("[green]✓ Matching[/green]", str(report.matching_count))
        summary.add_row("[red]✗ Mismatching[/red]", str(report.mismatch_count))
        summary.add_row("Accuracy", f"{report.accuracy_percentage:.2f}%")
        summary.add_row("Total Discrepancy", report.total_discrepancy)
        self.console.print(summary)

        self._print_unique("UNIQUE TO CU A", report.unique_to_a, use_a=True)
        self._print_unique("UNIQUE TO CU B", report.unique_to_b, use_a=False)

        if report.mismatch_count:
            table = Table(title=f"[bold red]MISMATCHED BALANCES ({report.mismatch_count})[/bold red]")
            table.add_column("#", justify="right")
            table.add_column("Address", style="cyan")
            table.add_column("CU A Balance", justify="right")
            table.add_column("CU B Balance", justify="right")
            table.add_column("Difference", justify="right", style="red")
            for i, m in enumerate(report.mismatches[:MISMATCH_PREVIEW], 1):
                table.add_row(str(i), escape(m.address), m.balance_a or "", m.balance_b or "", m.difference or "0")
            self.console.print(table)
            if len(report.mismatches) > MISMATCH_PREVIEW:
                self.console.print(f"[dim]... and {len(report.mismatches) - MISMATCH_PREVIEW} more mismatches[/dim]")
        elif not report.only_in_a and not report.only_in_b:
            self.console.print("[bold green]✓ All balances match perfectly![/bold green]")

    def _print_unique(self, title: str, items: Iterable[TwoSourceComparison], use_a: bool):
        items = list(items)
        if not items:
            return
        table = Table(title=f"[bold yellow]{title} ({len(items)})[/bold yellow]")
        table.add_column("#", justify="right")
        table.add_column("Address", style="cyan")
        table.add_column("Balance", justify="right")
        for i, item in enumerate(items[:UNIQUE_PREVIEW], 1):
            table.add_row(str(i), escape(item.address), (item.balance_a if use_a else item.balance_b) or "")
        self.console.print(table)
        if len(items) > UNIQUE_PREVIEW:
            self.console.print(f"[dim]... and {len(items) - UNIQUE_PREVIEW} more[/dim]")

    def _two_source_rows(self, report: TwoSourceReport) -> List[List[str]]:
        rows = [["Address", "CU A Balance", "CU B Balance", "Status", "Difference"]]
        ordered = (
            list(report.unique_to_a) + list(report.unique_to_b)
            + list(report.mismatches) + list(report.matches)
        )
        for c in ordered:
            if c.only_in_a:
                status = "Only in CU A"
            elif c.only_in_b:
                status = "Only in CU B"
            elif not c.match:
                status = "Mismatch"
            else:
                status = "Match"
            rows.append([c.address, c.balance_a or "", c.balance_b or "", status, c.difference or "0"])
        rows.append([])
        rows.append(["Summary"])
        rows.append(["Process ID", report.process_id])
        rows.append(["Message ID", report.message_id])
        rows.append(["CU A", report.source_a_url])
        rows.append(["CU B", report.source_b_url])
        rows.append(["Total Addresses (CU A)", str(report.total_addresses_a)])
        rows.append(["Total Addresses (CU B)", str(report.total_addresses_b)])
        rows.append(["Common Addresses", str(report.common_addresses)])
        rows.append(["Only in CU A", str(report.only_in_a)])
        rows.append(["Only in CU B", str(report.only_in_b)])
        rows.append(["Matching", str(report.matching_count)])
        rows.append(["Mismatching", str(report.mismatch_count)])
        rows.append(["Accuracy", f"{report.accuracy_percentage:.2f}%"])
        rows.append(["Total Discrepancy", report.total_discrepancy])
        rows.append(["Timestamp", report.timestamp.isoformat()])
        return rows

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    @staticmethod
    def _target(output_file: Optional[str], prefix: str, suffix: str) -> Path:
        name = output_file or f"{prefix}-{int(time.time() * 1000)}.{suffix}"
        return Path(name).resolve()

    def _write_json(self, payload: dict, output_file: Optional[str], prefix: str) -> Path:
        path = self._target(output_file, prefix, "json")
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        self.console.print(f"[green]✓ JSON report saved to: {path}[/green]")
        logger.info(f"JSON report written to {path}")
        return path

    def _write_csv(self, rows: List[List[str]], output_file: Optional[str], prefix: str) -> Path:
        path = self._target(output_file, prefix, "csv")
        with open(path, "w", newline="", encoding="utf-8") as f:
            csv.writer(f).writerows(rows)
        self.console.print(f"[green]✓ CSV report saved to: {path}[/green]")
        logger.info(f"CSV report written to {path}")
        return path

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def print_error(self, error: BaseException):
        self.err_console.print(f"[red]✗ Error:[/red] {escape(str(error))}")

    def print_warning(self, message: str):
        self.err_console.print(f"[yellow]⚠ Warning:[/yellow] {escape(message)}")

    def print_info(self, message: str):
        self.err_console.print(f"[blue]ℹ Info:[/blue] {escape(message)}")

    def print_success(self, message: str):
        self.console.print(f"[green]✓[/green] {message}")
