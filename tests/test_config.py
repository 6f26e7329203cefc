"""Tests for run configuration and build target derivation."""

from pathlib import Path

import pytest

from gorerun.config import BuildTarget, RerunConfig, binary_name_for, derive_target
from gorerun.errors import SetupError


class TestRerunConfig:
    """Tests for RerunConfig."""

    def test_defaults(self):
        """Defaults match the plain `gorerun <path>` invocation."""
        config = RerunConfig()

        assert not config.run_tests
        assert not config.release_build
        assert not config.no_run
        assert not config.race
        assert config.source_extension == ".go"
        assert config.grace_period == 5.0
        assert config.bin_dir is None

    def test_is_immutable(self):
        """Config cannot be changed after construction."""
        config = RerunConfig()

        with pytest.raises(AttributeError):
            config.race = True  # type: ignore[misc]

    def test_from_environment_reads_gobin(self):
        """GOBIN overrides the binary directory."""
        config = RerunConfig.from_environment({"GOBIN": "/opt/bin"}, race=True)

        assert config.bin_dir == Path("/opt/bin")
        assert config.race

    def test_from_environment_ignores_empty_gobin(self):
        """An empty GOBIN is treated as unset."""
        config = RerunConfig.from_environment({"GOBIN": ""})

        assert config.bin_dir is None


class TestBinaryName:
    """Tests for binary_name_for()."""

    @pytest.mark.parametrize(
        "import_path,expected",
        [
            ("example.com/cmd/server", "server"),
            ("server", "server"),
            ("example.com/tool/", "tool"),
            ("example.com/tool/v2", "tool"),
        ],
    )
    def test_last_path_element(self, import_path: str, expected: str):
        """The binary is named after the last import path element."""
        assert binary_name_for(import_path) == expected


class TestDeriveTarget:
    """Tests for derive_target()."""

    def test_uses_package_install_location(self, package_factory):
        """Without an override the binary lives next to the package target."""
        package = package_factory(
            "example.com/cmd/server",
            "/src/server",
            name="main",
            target=Path("/home/user/go/bin/server"),
        )

        target = derive_target(package, ["-port", "8080"], RerunConfig())

        assert target == BuildTarget(
            import_path="example.com/cmd/server",
            binary_name="server",
            binary_path=Path("/home/user/go/bin/server"),
            args=("-port", "8080"),
        )
        assert target.command == ["/home/user/go/bin/server", "-port", "8080"]

    def test_bin_dir_override(self, package_factory):
        """GOBIN takes precedence over package metadata."""
        package = package_factory(
            "example.com/cmd/server",
            "/src/server",
            name="main",
            target=Path("/home/user/go/bin/server"),
        )

        target = derive_target(package, [], RerunConfig(bin_dir=Path("/opt/bin")))

        assert target.binary_path == Path("/opt/bin/server")

    def test_rejects_library_package(self, package_factory):
        """Only package main can be run."""
        package = package_factory("example.com/lib", "/src/lib", name="lib")

        with pytest.raises(SetupError) as exc_info:
            derive_target(package, [], RerunConfig(bin_dir=Path("/opt/bin")))

        assert 'expected package "main", got "lib"' in str(exc_info.value)

    def test_rejects_broken_package(self, package_factory):
        """A package with errors cannot be set up."""
        package = package_factory("app", "/src/app", name="main", error="syntax error")

        with pytest.raises(SetupError):
            derive_target(package, [], RerunConfig(bin_dir=Path("/opt/bin")))

    def test_requires_install_location(self, package_factory):
        """Setup fails when there is nowhere to find the binary."""
        package = package_factory("app", "/src/app", name="main")

        with pytest.raises(SetupError):
            derive_target(package, [], RerunConfig())
