"""Runner utility for CLI commands."""

from __future__ import annotations

import subprocess
import sys


def run(cmd: list[str]) -> int:
    """Run a command and return its exit code."""
    return subprocess.run(cmd, check=False).returncode  # nosec


def run_uv(*args: str) -> None:
    """Run ``uv run <args>`` plus any extra arguments given on the command line, then exit."""
    sys.exit(run(["uv", "run", *args, *sys.argv[1:]]))
