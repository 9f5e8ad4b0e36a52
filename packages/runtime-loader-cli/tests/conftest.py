# SPDX-License-Identifier: MIT
"""Pytest configuration and fixtures for CLI tests."""

from __future__ import annotations

import sys
import zipfile
from pathlib import Path
from typing import Generator

import pytest
import structlog
from click.testing import CliRunner


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_state() -> Generator[None, None, None]:
    """Undo logging configuration and imports made by CLI invocations."""
    modules = set(sys.modules)
    meta_path = list(sys.meta_path)
    yield
    for name in set(sys.modules) - modules:
        del sys.modules[name]
    sys.meta_path[:] = meta_path
    structlog.reset_defaults()


@pytest.fixture
def wheel_dir(tmp_path: Path) -> Path:
    """Directory of wheels used as a local package source."""
    directory = tmp_path / "wheels"
    directory.mkdir()
    return directory


def write_wheel(directory: Path, name: str, version: str, files: dict[str, str]) -> Path:
    """Write a pure-Python wheel with the given files."""
    dist = name.replace("-", "_")
    dist_info = f"{dist}-{version}.dist-info"
    wheel_path = directory / f"{dist}-{version}-py3-none-any.whl"
    with zipfile.ZipFile(wheel_path, "w") as whl:
        for path, content in files.items():
            whl.writestr(path, content)
        whl.writestr(f"{dist_info}/METADATA", f"Metadata-Version: 2.1\nName: {name}\nVersion: {version}\n")
        whl.writestr(
            f"{dist_info}/WHEEL",
            "Wheel-Version: 1.0\nRoot-Is-Purelib: true\nTag: py3-none-any\n",
        )
        whl.writestr(f"{dist_info}/RECORD", "")
    return wheel_path


@pytest.fixture
def make_wheel(wheel_dir: Path):
    """Factory writing wheels into wheel_dir."""

    def factory(name: str, version: str, files: dict[str, str]) -> Path:
        return write_wheel(wheel_dir, name, version, files)

    return factory
