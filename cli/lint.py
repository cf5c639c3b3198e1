import sys

from cli._runner import run

SOURCES = ["app", "cli", "tests"]


def main() -> None:
    """Lint sources."""
    sys.exit(run(["uv", "run", "ruff", "check", *SOURCES, *sys.argv[1:]]))


def format() -> None:
    """Format sources in place."""
    sys.exit(run(["uv", "run", "ruff", "format", *SOURCES]))


def check() -> None:
    """Lint and verify formatting without writing; for CI."""
    lint = run(["uv", "run", "ruff", "check", *SOURCES])
    formatting = run(["uv", "run", "ruff", "format", "--check", *SOURCES])
    sys.exit(lint or formatting)
