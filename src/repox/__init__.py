"""repox: run one git command across a list of repositories, in parallel."""

# Guard against deleted CWD (e.g. directory removed by another process).
# rich crashes on import if os.getcwd() fails, so recover before any imports.
import os

try:
    os.getcwd()
except (OSError, PermissionError):
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .core import (
    Config,
    ExecutionResult,
    FleetDispatcher,
    GitOperations,
    OperationResult,
    Outcome,
    RepoCommand,
    RepoQueue,
    Resolution,
    RunSummary,
    app,
    load_repox_file,
    local_repo_name,
    parse_parallels,
    resolve_command,
    resolve_dev_dir,
    resolve_repox_file,
)
from .formatters import OutputFormatter, OutputSynchronizer
from .schema import get_tool_schema

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "Config",
    "ExecutionResult",
    "OperationResult",
    "Outcome",
    "RepoCommand",
    "Resolution",
    "RunSummary",
    # Operations
    "FleetDispatcher",
    "GitOperations",
    "RepoQueue",
    # Functions
    "get_tool_schema",
    "load_repox_file",
    "local_repo_name",
    "parse_parallels",
    "resolve_command",
    "resolve_dev_dir",
    "resolve_repox_file",
    # Formatters
    "OutputFormatter",
    "OutputSynchronizer",
]
