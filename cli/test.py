from cli._runner import run_uv


def main() -> None:
    """Run the test suite."""
    run_uv("pytest")


def test_v() -> None:
    """Run tests with verbose output."""
    run_uv("pytest", "-v")


def test_unit() -> None:
    """Run unit tests only, stopping at the first failure."""
    run_uv("pytest", "tests/unit", "-x")
