# SPDX-License-Identifier: MIT
"""Pytest configuration and fixtures for runtime loader tests."""

from __future__ import annotations

import base64
import hashlib
import sys
import zipfile
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest


WheelFactory = Callable[..., Path]


def _record_line(path: str, content: bytes) -> str:
    digest = base64.urlsafe_b64encode(hashlib.sha256(content).digest()).rstrip(b"=").decode()
    return f"{path},sha256={digest},{len(content)}"


def build_wheel(
    directory: Path,
    name: str,
    version: str,
    tag: str = "py3-none-any",
    files: Optional[dict[str, str]] = None,
    requires: Optional[list[str]] = None,
    extra_entries: Optional[dict[str, str]] = None,
) -> Path:
    """Write a minimal wheel file and return its path."""
    dist = name.replace("-", "_")
    dist_info = f"{dist}-{version}.dist-info"
    directory.mkdir(parents=True, exist_ok=True)
    wheel_path = directory / f"{dist}-{version}-{tag}.whl"

    metadata = f"Metadata-Version: 2.1\nName: {name}\nVersion: {version}\n"
    for requirement in requires or []:
        metadata += f"Requires-Dist: {requirement}\n"
    wheel_meta = (
        "Wheel-Version: 1.0\n"
        "Generator: runtime-loader-tests\n"
        f"Root-Is-Purelib: {'true' if tag.endswith('none-any') else 'false'}\n"
        f"Tag: {tag}\n"
    )

    entries: dict[str, bytes] = {p: c.encode("utf-8") for p, c in (files or {}).items()}
    entries.update({p: c.encode("utf-8") for p, c in (extra_entries or {}).items()})
    entries[f"{dist_info}/METADATA"] = metadata.encode("utf-8")
    entries[f"{dist_info}/WHEEL"] = wheel_meta.encode("utf-8")

    record = [_record_line(p, c) for p, c in entries.items()]
    record.append(f"{dist_info}/RECORD,,")
    entries[f"{dist_info}/RECORD"] = ("\n".join(record) + "\n").encode("utf-8")

    with zipfile.ZipFile(wheel_path, "w", zipfile.ZIP_DEFLATED) as whl:
        for path, content in entries.items():
            whl.writestr(path, content)

    return wheel_path


@pytest.fixture
def make_wheel(tmp_path: Path) -> WheelFactory:
    """Factory building wheels in tmp_path/wheels (or a given directory)."""

    def factory(name: str, version: str = "1.0.0", directory: Optional[Path] = None, **kwargs) -> Path:
        return build_wheel(directory or tmp_path / "wheels", name, version, **kwargs)

    return factory


@pytest.fixture
def isolated_imports() -> Generator[None, None, None]:
    """Restore sys.modules and sys.meta_path after the test."""
    modules = set(sys.modules)
    meta_path = list(sys.meta_path)
    yield
    for name in set(sys.modules) - modules:
        del sys.modules[name]
    sys.meta_path[:] = meta_path
