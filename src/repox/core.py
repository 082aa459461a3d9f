"""
repox: run one git command across a list of repositories.

Repositories are read from a plain list file, mapped to directories under a
development root and processed by a fixed pool of worker threads. Missing
repositories are cloned first; each repository's output is printed as one
uninterrupted block.
"""

from __future__ import annotations

import json
import os
import queue
import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass
from enum import StrEnum
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from ._version import __version__
from .formatters import OutputFormatter, OutputSynchronizer
from .schema import get_tool_schema

DEFAULT_PARALLELS = 5
REPOX_FILE_NAME = ".repox"

# =============================================================================
# Domain Models
# =============================================================================


class RepoCommand(StrEnum):
    """Git commands with special handling. Anything else is passed through."""

    CLONE = "clone"
    STATUS = "status"


class Outcome(StrEnum):
    """What happened to a single repository."""

    OK = "ok"
    FAILED = "failed"  # process ran, non-zero exit
    ERROR = "error"  # process could not be spawned
    SKIPPED = "skipped"  # clone requested, already present
    CLEAN = "clean"  # status requested, nothing to report
    PLANNED = "planned"  # dry-run


@dataclass(frozen=True)
class Config:
    """Per-run settings, shared read-only by all workers."""

    command: str
    sub_dir: str
    dev_dir: Path
    parallels: int = DEFAULT_PARALLELS
    repox_file: Path | None = None
    dry_run: bool = False


@dataclass(frozen=True)
class Resolution:
    """The command that will actually run for a repository."""

    command: str
    skip: bool = False


@dataclass
class ExecutionResult:
    """Captured output of one git invocation."""

    stdout: str = ""
    stderr: str = ""
    returncode: int | None = None
    error: str = ""

    @property
    def spawned(self) -> bool:
        return not self.error

    @property
    def success(self) -> bool:
        return self.spawned and self.returncode == 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class OperationResult:
    """Result of processing one repository."""

    repo: str
    path: Path
    requested: str
    command: str
    outcome: Outcome
    execution: ExecutionResult | None = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def success(self) -> bool:
        return self.outcome not in (Outcome.FAILED, Outcome.ERROR)

    @property
    def has_output(self) -> bool:
        return self.outcome in (Outcome.OK, Outcome.FAILED, Outcome.ERROR, Outcome.PLANNED)

    def to_dict(self) -> dict:
        return {
            "repo": self.repo,
            "path": str(self.path),
            "name": self.name,
            "requested": self.requested,
            "command": self.command,
            "outcome": self.outcome.value,
            "success": self.success,
            "execution": self.execution.to_dict() if self.execution else None,
        }


@dataclass
class RunSummary:
    """Outcome counts for a run."""

    total: int = 0
    ok: int = 0
    failed: int = 0
    errors: int = 0
    skipped: int = 0
    clean: int = 0
    planned: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_results(cls, results: list[OperationResult]) -> RunSummary:
        summary = cls(total=len(results))
        for result in results:
            if result.outcome == Outcome.OK:
                summary.ok += 1
            elif result.outcome == Outcome.FAILED:
                summary.failed += 1
            elif result.outcome == Outcome.ERROR:
                summary.errors += 1
            elif result.outcome == Outcome.SKIPPED:
                summary.skipped += 1
            elif result.outcome == Outcome.CLEAN:
                summary.clean += 1
            elif result.outcome == Outcome.PLANNED:
                summary.planned += 1
        return summary


# =============================================================================
# Command Resolution
# =============================================================================


def local_repo_name(repo: str) -> str:
    """Derive the checkout directory name from a repository identifier.

    Takes the last path segment (``/`` or the ``:`` of scp-like URLs) and
    strips a trailing ``.git``. Raises ValueError when nothing usable is left.
    """
    name = repo.strip().rstrip("/")
    name = name.rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    while name.endswith(".git"):
        name = name.removesuffix(".git")
    if name in ("", ".", ".."):
        raise ValueError(f"cannot derive a directory name from {repo!r}")
    return name


def resolve_command(requested: str, local_exists: bool) -> Resolution:
    """Decide what to run for one repository.

    ============  ============  ==================
    requested     local exists  result
    ============  ============  ==================
    clone         yes           skip
    clone         no            clone
    other         no            clone
    other         yes           other
    ============  ============  ==================
    """
    if requested == RepoCommand.CLONE:
        return Resolution(RepoCommand.CLONE.value, skip=local_exists)
    if not local_exists:
        return Resolution(RepoCommand.CLONE.value)
    return Resolution(requested)


# =============================================================================
# Git Operations (Low-level)
# =============================================================================


class GitOperations:
    """Run git for a single repository and capture what it prints."""

    def __init__(self, repo: str, repo_path: Path, dev_dir: Path):
        self.repo = repo
        self.repo_path = repo_path
        self.dev_dir = dev_dir

    @staticmethod
    def _run(*args: str, cwd: Path) -> ExecutionResult:
        """Run a git command; spawn failures are returned, not raised."""
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except OSError as e:
            return ExecutionResult(error=str(e))
        return ExecutionResult(
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            returncode=result.returncode,
        )

    def clone(self) -> ExecutionResult:
        """Clone into the dev directory; the checkout does not exist yet."""
        return self._run("clone", self.repo, cwd=self.dev_dir)

    def status(self) -> ExecutionResult | None:
        """Full status, or None when the working tree is clean."""
        check = self._run("status", "--porcelain", cwd=self.repo_path)
        if not check.spawned:
            return check
        if not check.stdout:
            return None
        return self._run("status", cwd=self.repo_path)

    def run(self, command: str) -> ExecutionResult:
        """Pass any other subcommand through verbatim."""
        return self._run(command, cwd=self.repo_path)

    def execute(self, command: str) -> ExecutionResult | None:
        if command == RepoCommand.CLONE:
            return self.clone()
        if command == RepoCommand.STATUS:
            return self.status()
        return self.run(command)


# =============================================================================
# Dispatch
# =============================================================================


class RepoQueue:
    """Thread-safe LIFO queue of repository identifiers."""

    def __init__(self, repos: list[str]):
        self._queue: queue.LifoQueue[str] = queue.LifoQueue()
        for repo in repos:
            self._queue.put(repo)

    def take(self) -> str | None:
        """Pop one identifier, or None once the queue is drained."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def __len__(self) -> int:
        return self._queue.qsize()


class FleetDispatcher:
    """Drain a repository queue with a fixed pool of workers."""

    def __init__(self, config: Config, output: OutputSynchronizer):
        self.config = config
        self.output = output

    def process_repo(self, repo: str) -> OperationResult:
        """Resolve, execute and report a single repository."""
        try:
            repo_path = self.config.dev_dir / local_repo_name(repo)
        except ValueError as e:
            result = OperationResult(
                repo=repo,
                path=self.config.dev_dir,
                requested=self.config.command,
                command=self.config.command,
                outcome=Outcome.ERROR,
                execution=ExecutionResult(error=str(e)),
            )
            self.output.report(result)
            return result

        resolution = resolve_command(self.config.command, repo_path.exists())

        result = OperationResult(
            repo=repo,
            path=repo_path,
            requested=self.config.command,
            command=resolution.command,
            outcome=Outcome.SKIPPED,
        )
        if resolution.skip:
            return result

        if self.config.dry_run:
            result.outcome = Outcome.PLANNED
        else:
            ops = GitOperations(repo, repo_path, self.config.dev_dir)
            execution = ops.execute(resolution.command)
            if execution is None:
                result.outcome = Outcome.CLEAN
            else:
                result.execution = execution
                if not execution.spawned:
                    result.outcome = Outcome.ERROR
                elif execution.success:
                    result.outcome = Outcome.OK
                else:
                    result.outcome = Outcome.FAILED

        self.output.report(result)
        return result

    def _worker(self, work: RepoQueue) -> list[OperationResult]:
        results = []
        while (repo := work.take()) is not None:
            results.append(self.process_repo(repo))
        return results

    def run(self, repos: list[str]) -> list[OperationResult]:
        """Process every repository exactly once; blocks until all workers exit."""
        work = RepoQueue(repos)
        results: list[OperationResult] = []

        with ThreadPoolExecutor(
            max_workers=self.config.parallels, thread_name_prefix="repox"
        ) as executor:
            futures = [executor.submit(self._worker, work) for _ in range(self.config.parallels)]
            for future in as_completed(futures):
                results.extend(future.result())

        return results


# =============================================================================
# Configuration
# =============================================================================


def resolve_home() -> Path:
    return Path(os.environ.get("HOME", "."))


def resolve_repox_file(override: Path | None = None) -> Path:
    """Repository list location: explicit override, else ``$HOME/.repox``."""
    if override is not None:
        return override.expanduser()
    return resolve_home() / REPOX_FILE_NAME


def resolve_dev_dir(sub_dir: str) -> Path:
    """Target directory: ``$DEV/<sub_dir>``, falling back to ``$HOME/dev/<sub_dir>``."""
    dev = os.environ.get("DEV")
    base = Path(dev) if dev is not None else resolve_home() / "dev"
    return base / sub_dir


def parse_parallels(value: str | None) -> int:
    """Parse the worker count; anything but a positive integer means the default."""
    if value is None:
        return DEFAULT_PARALLELS
    try:
        parallels = int(value)
    except ValueError:
        return DEFAULT_PARALLELS
    return parallels if parallels > 0 else DEFAULT_PARALLELS


def load_repox_file(repox_file: Path) -> list[str]:
    """Load repository identifiers (one per line).

    Supports:
    - Comments starting with #
    - Blank lines

    Raises OSError if the file cannot be read.
    """
    repos = []
    with open(repox_file, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                repos.append(line)
    return repos


# =============================================================================
# CLI Application
# =============================================================================


app = typer.Typer(
    name="repox",
    help="Run a git command across every repository in a repox file.",
    add_completion=False,
)

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

EPILOG = """
Commands:
  clone    Clone all repos
  fetch    Fetch all repos
  pull     Pull all repos
  status   Show status of repos with local changes

Any other git subcommand is passed through verbatim.
Repositories missing locally are cloned first.
"""


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"repox {__version__}")
        raise typer.Exit()


def schema_callback(value: bool):
    """Print the tool schema and exit."""
    if value:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()


def fail(err_console: Console, message: str):
    """Report a fatal pre-run error and exit with status 1."""
    err_console.print(f"[red]ERROR: {escape(message)}[/]")
    raise typer.Exit(1)


@app.command(context_settings=CONTEXT_SETTINGS, epilog=EPILOG)
def main(
    command: str = typer.Argument(
        None,
        metavar="COMMAND",
        help="git command to run (clone, fetch, pull, status, ...)",
        show_default=False,
    ),
    sub_dir: str = typer.Argument(
        None,
        metavar="SUB_DIRECTORY",
        help="Directory under $DEV (or $HOME/dev) holding the checkouts",
        show_default=False,
    ),
    parallel: str = typer.Option(
        None,
        "--parallel",
        "-p",
        metavar="PARALLEL",
        help=f"Number of repositories processed at once (default: {DEFAULT_PARALLELS})",
    ),
    config_file: Path = typer.Option(
        None,
        "--config",
        "-c",
        metavar="FILE",
        help="Use a specific repox file (default: $HOME/.repox)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Show what would run without invoking git",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output results as JSON after the run",
    ),
    summary: bool = typer.Option(
        False,
        "--summary",
        help="Print outcome counts after the run",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        callback=schema_callback,
        is_eager=True,
        help="Output MCP-compatible tool schema for AI agents",
    ),
):
    """Run COMMAND on every repository listed in the repox file."""
    console = Console(highlight=False)
    err_console = Console(stderr=True, highlight=False)

    if not command:
        fail(err_console, "Missing command")
    if not sub_dir:
        fail(err_console, "Missing subdirectory")

    repox_file = resolve_repox_file(config_file)
    if not repox_file.exists():
        fail(err_console, f"No repox file found at {repox_file}")

    dev_dir = resolve_dev_dir(sub_dir)
    try:
        dev_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        fail(err_console, f"Failed to create dev directory: {e}")

    try:
        repos = load_repox_file(repox_file)
    except OSError as e:
        fail(err_console, f"Could not read repox file: {e}")

    config = Config(
        command=command,
        sub_dir=sub_dir,
        dev_dir=dev_dir,
        parallels=parse_parallels(parallel),
        repox_file=repox_file,
        dry_run=dry_run,
    )

    output = OutputSynchronizer(console, err_console, enabled=not json_output)
    results = FleetDispatcher(config, output).run(repos)

    formatter = OutputFormatter(console, use_json=json_output)
    if json_output:
        formatter.print_results_json(config, results, RunSummary.from_results(results))
    elif summary:
        formatter.print_summary(RunSummary.from_results(results))
