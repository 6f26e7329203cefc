"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from gorerun.errors import ResolveError
from gorerun.packages.resolver import Package


class FakeResolver:
    """In-memory package graph keyed by import path."""

    def __init__(self, packages: dict[str, Package]):
        self.packages = packages
        self.calls: list[str] = []

    async def resolve(self, import_path: str) -> Package:
        self.calls.append(import_path)
        try:
            return self.packages[import_path]
        except KeyError:
            raise ResolveError(import_path, "package not found") from None


def make_package(
    import_path: str,
    directory: Path | str,
    imports: list[str] | None = None,
    name: str = "lib",
    read_only: bool = False,
    target: Path | None = None,
    error: str | None = None,
) -> Package:
    """Build a Package with sensible defaults for tests."""
    return Package(
        import_path=import_path,
        name=name,
        dir=Path(directory),
        imports=imports or [],
        read_only=read_only,
        target=target,
        error=error,
    )


@pytest.fixture
def fake_resolver():
    """Factory for FakeResolver instances."""
    return FakeResolver


@pytest.fixture
def package_factory():
    """Factory for Package instances."""
    return make_package


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-go",
        action="store_true",
        default=False,
        help="run tests that invoke a real Go toolchain",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "go: mark test as requiring the go tool (deselect with '-m \"not go\"')",
    )


def pytest_collection_modifyitems(config, items):
    """Skip Go toolchain tests unless --run-go is specified."""
    if config.getoption("--run-go"):
        return

    skip_go = pytest.mark.skip(reason="need --run-go option to run")
    for item in items:
        if item.get_closest_marker("go"):
            item.add_marker(skip_go)
