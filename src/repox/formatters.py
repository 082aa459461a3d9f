"""Output for console blocks, summaries and JSON."""

from __future__ import annotations

import json
import threading
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from .core import Config, OperationResult, RunSummary


class OutputSynchronizer:
    """Print each repository's report as one uninterrupted block.

    Workers call :meth:`report` concurrently; the lock is held only while a
    single block is written, never while git runs.
    """

    def __init__(self, console: Console, err_console: Console, enabled: bool = True):
        self.console = console
        self.err_console = err_console
        self.enabled = enabled
        self._lock = threading.Lock()

    def report(self, result: OperationResult):
        """Write the block for one repository, if it has anything to say."""
        if not self.enabled or not result.has_output:
            return

        with self._lock:
            execution = result.execution
            if execution is None:
                self._print_header(result, suffix=" [dim](dry-run)[/]")
            elif not execution.spawned:
                self.err_console.print()
                self.err_console.print(
                    f"[red]\\[ERROR] {escape(result.requested)} failed on "
                    f"{escape(result.repo)}: {escape(execution.error)}[/]",
                    soft_wrap=True,
                )
            else:
                suffix = ""
                if execution.returncode:
                    suffix = f" [red](exit {execution.returncode})[/]"
                self._print_header(result, suffix=suffix)
                if execution.stdout.strip():
                    self.console.out(execution.stdout.strip(), highlight=False)
                if execution.stderr.strip():
                    self.err_console.out(execution.stderr.strip(), highlight=False)

    def _print_header(self, result: OperationResult, suffix: str = ""):
        # Header stays on one line whatever the console width.
        if result.command != result.requested:
            suffix = f" [dim]({escape(result.command)})[/]{suffix}"
        self.console.print()
        self.console.print(
            f"[blue]=== {escape(result.requested.upper())}: {escape(result.repo)} ===[/]{suffix}",
            soft_wrap=True,
        )


class OutputFormatter:
    """Format run results for console or JSON."""

    def __init__(self, console: Console, use_json: bool = False):
        self.console = console
        self.use_json = use_json

    def print_summary(self, summary: RunSummary):
        """Print a one-line outcome summary."""
        if summary.total == 0:
            self.console.print("[dim]No repositories to process[/]")
            return

        parts = [f"[green]{summary.ok} ok[/]"]
        if summary.failed:
            parts.append(f"[red]{summary.failed} failed[/]")
        if summary.errors:
            parts.append(f"[red]{summary.errors} errors[/]")
        if summary.skipped:
            parts.append(f"[dim]{summary.skipped} skipped[/]")
        if summary.clean:
            parts.append(f"[dim]{summary.clean} clean[/]")
        if summary.planned:
            parts.append(f"[yellow]{summary.planned} planned[/]")

        self.console.print()
        self.console.print(f"[bold]Done:[/] {summary.total} repositories | " + " | ".join(parts))

    def print_results_json(
        self,
        config: Config,
        results: list[OperationResult],
        summary: RunSummary,
    ):
        """Print the whole run as one JSON document."""
        output = {
            "command": config.command,
            "dev_dir": str(config.dev_dir),
            "parallels": config.parallels,
            "dry_run": config.dry_run,
            "results": [r.to_dict() for r in sorted(results, key=lambda r: r.repo)],
            "summary": summary.to_dict(),
        }
        self.console.out(json.dumps(output, indent=2), highlight=False)
