"""MCP-compatible tool schema for AI agents."""

from __future__ import annotations

from ._version import __version__

OUTCOMES = ["ok", "failed", "error", "skipped", "clean", "planned"]


def get_tool_schema() -> dict:
    """Generate MCP-compatible tool schema for AI agents."""
    return {
        "name": "repox",
        "version": __version__,
        "description": "Run one git command across every repository listed in a repox file, several repositories at a time. Repositories missing locally are cloned first; per-repository failures are reported without stopping the run.",
        "usage": "repox [options] <command> <sub_directory>",
        "tools": [
            {
                "name": "run",
                "description": "Run a git subcommand on each listed repository. 'clone' skips repositories already present; 'status' only reports repositories with local changes; any other subcommand (fetch, pull, ...) is passed to git verbatim.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "command": {
                            "type": "string",
                            "description": "git subcommand to run (clone, fetch, pull, status, ...)",
                        },
                        "sub_directory": {
                            "type": "string",
                            "description": "Directory under $DEV (default: $HOME/dev) holding the checkouts",
                        },
                        "parallel": {
                            "type": "integer",
                            "description": "Number of repositories processed at once",
                            "default": 5,
                        },
                        "config": {
                            "type": "string",
                            "description": "Path to the repox file (default: $HOME/.repox)",
                        },
                        "json": {
                            "type": "boolean",
                            "description": "Output as JSON for machine parsing",
                            "default": False,
                        },
                        "dry_run": {
                            "type": "boolean",
                            "description": "Show the resolved command per repository without running git",
                            "default": False,
                        },
                    },
                    "required": ["command", "sub_directory"],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "command": {"type": "string"},
                        "dev_dir": {"type": "string"},
                        "parallels": {"type": "integer"},
                        "dry_run": {"type": "boolean"},
                        "results": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "repo": {"type": "string"},
                                    "path": {"type": "string"},
                                    "name": {"type": "string"},
                                    "requested": {"type": "string"},
                                    "command": {
                                        "type": "string",
                                        "description": "Command actually run (clone when the checkout was missing)",
                                    },
                                    "outcome": {"type": "string", "enum": OUTCOMES},
                                    "success": {"type": "boolean"},
                                    "execution": {
                                        "type": ["object", "null"],
                                        "properties": {
                                            "stdout": {"type": "string"},
                                            "stderr": {"type": "string"},
                                            "returncode": {"type": ["integer", "null"]},
                                            "error": {
                                                "type": "string",
                                                "description": "Set when git could not be started",
                                            },
                                        },
                                    },
                                },
                            },
                        },
                        "summary": {
                            "type": "object",
                            "properties": {
                                "total": {"type": "integer"},
                                "ok": {"type": "integer"},
                                "failed": {"type": "integer"},
                                "errors": {"type": "integer"},
                                "skipped": {"type": "integer"},
                                "clean": {"type": "integer"},
                                "planned": {"type": "integer"},
                            },
                        },
                    },
                },
                "examples": [
                    {
                        "description": "Clone everything listed in ~/.repox into ~/dev/github",
                        "command": "repox clone github",
                    },
                    {
                        "description": "Pull with 10 workers and report as JSON",
                        "command": "repox -p 10 --json pull github",
                    },
                    {
                        "description": "Preview what a fetch would do",
                        "command": "repox --dry-run fetch codeberg",
                    },
                ],
            },
        ],
        "globalOptions": {
            "--parallel, -p": "Number of repositories processed at once (default: 5)",
            "--config, -c": "Path to the repox file",
            "--json, -j": "Output in JSON format (recommended for AI agents)",
            "--dry-run, -n": "Preview operations without executing",
            "--summary": "Print outcome counts after the run",
        },
        "repoxFileFormat": {
            "description": "The repox file contains one repository URL per line",
            "features": [
                "Comments start with #",
                "Empty lines are ignored",
                "The checkout directory is the last path segment without .git",
            ],
            "example": "# ~/.repox\nhttps://github.com/org/foo.git\ngit@codeberg.org:org/bar.git",
        },
        "environment": {
            "HOME": "Base for the default repox file and dev directory ('.' if unset)",
            "DEV": "Root for checkouts (default: $HOME/dev)",
        },
        "notes": [
            "Exit code is 0 even when individual repositories fail; inspect 'outcome' per result",
            "A non-zero git exit code is reported as outcome 'failed'; a git binary that cannot be started as 'error'",
            "Output of repositories is never interleaved; each is printed as one block",
        ],
    }
