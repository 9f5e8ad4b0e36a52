# SPDX-License-Identifier: MIT
"""Compatibility tags and target environments.

This module describes the interpreter and platform packages are installed
for, and picks the best compatible tag folder among the ones extracted for
a package.
"""

from __future__ import annotations

import sys
import zipfile
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from packaging import tags
from packaging.markers import default_environment


@dataclass(frozen=True)
class PlatformTag:
    """A PEP 425 compatibility tag, possibly compressed.

    Attributes:
        python_tag: Python implementation and version (e.g., "py3", "cp311", "py2.py3")
        abi_tag: ABI tag (e.g., "none", "cp311", "abi3")
        platform_tag: Platform tag (e.g., "any", "linux_x86_64", "macosx_11_0_arm64")
    """

    python_tag: str
    abi_tag: str
    platform_tag: str

    @property
    def is_pure_python(self) -> bool:
        """Check if this tag represents a pure Python package."""
        return self.platform_tag == "any" and self.abi_tag == "none"

    def __str__(self) -> str:
        """Return the full tag string."""
        return f"{self.python_tag}-{self.abi_tag}-{self.platform_tag}"

    def expand(self) -> frozenset[tags.Tag]:
        """Expand a compressed tag set into individual tags."""
        return tags.parse_tag(str(self))

    @classmethod
    def pure_python(cls) -> "PlatformTag":
        """Create a pure Python platform tag (py3-none-any)."""
        return cls(python_tag="py3", abi_tag="none", platform_tag="any")

    @classmethod
    def from_string(cls, tag_string: str) -> "PlatformTag":
        """Parse a platform tag from a string.

        Args:
            tag_string: Tag string in format "python-abi-platform"

        Returns:
            PlatformTag instance

        Raises:
            ValueError: If the tag string is invalid
        """
        parts = tag_string.split("-")
        if len(parts) != 3 or not all(parts):
            raise ValueError(f"Invalid platform tag: {tag_string}")

        return cls(python_tag=parts[0], abi_tag=parts[1], platform_tag=parts[2])


def parse_wheel_filename_tags(wheel_filename: str) -> PlatformTag:
    """Parse the compressed tag set from a wheel filename.

    Wheel filenames follow the pattern:
    {distribution}-{version}(-{build tag})?-{python tag}-{abi tag}-{platform tag}.whl

    Args:
        wheel_filename: Name of the wheel file

    Returns:
        PlatformTag for the filename (py3-none-any when the name is malformed)
    """
    name = wheel_filename.rsplit(".", 1)[0]
    parts = name.split("-")

    if len(parts) < 5:
        return PlatformTag.pure_python()

    return PlatformTag(python_tag=parts[-3], abi_tag=parts[-2], platform_tag=parts[-1])


def parse_wheel_tags(wheel_path: Path) -> list[PlatformTag]:
    """Parse tags from a wheel file's WHEEL metadata.

    Falls back to the filename when the archive has no usable WHEEL file.
    """
    found: list[PlatformTag] = []

    try:
        with zipfile.ZipFile(wheel_path, "r") as whl:
            wheel_file = next(
                (n for n in whl.namelist() if n.endswith(".dist-info/WHEEL")),
                None,
            )
            if wheel_file is not None:
                content = whl.read(wheel_file).decode("utf-8")
                for line in content.splitlines():
                    if line.startswith("Tag:"):
                        try:
                            found.append(PlatformTag.from_string(line.split(":", 1)[1].strip()))
                        except ValueError:
                            continue
    except (OSError, zipfile.BadZipFile, UnicodeDecodeError):
        found = []

    return found or [parse_wheel_filename_tags(wheel_path.name)]


_IMPLEMENTATION_NAMES = {
    "cp": ("cpython", "CPython"),
    "pp": ("pypy", "PyPy"),
    "ip": ("ironpython", "IronPython"),
    "jy": ("jython", "Jython"),
}


def _platform_markers(platform: str) -> dict[str, str]:
    """Marker values implied by a platform tag such as "manylinux2014_x86_64"."""
    if platform.startswith("win"):
        machine = {"win32": "x86", "win_amd64": "AMD64", "win_arm64": "ARM64"}.get(platform, "")
        return {"os_name": "nt", "sys_platform": "win32", "platform_system": "Windows", "platform_machine": machine}
    if platform.startswith("macosx_"):
        parts = platform.split("_", 3)
        machine = parts[3] if len(parts) == 4 else ""
        return {"os_name": "posix", "sys_platform": "darwin", "platform_system": "Darwin", "platform_machine": machine}
    if platform.startswith(("manylinux_", "musllinux_")):
        parts = platform.split("_", 3)
        machine = parts[3] if len(parts) == 4 else ""
        return {"os_name": "posix", "sys_platform": "linux", "platform_system": "Linux", "platform_machine": machine}
    if platform.startswith(("linux_", "manylinux")):
        machine = platform.split("_", 1)[1] if "_" in platform else ""
        return {"os_name": "posix", "sys_platform": "linux", "platform_system": "Linux", "platform_machine": machine}
    return {}


def _parse_python_version(version: str) -> tuple[int, ...]:
    """Parse a pip-style python version ("3", "3.11" or "311")."""
    try:
        if "." in version:
            return tuple(int(p) for p in version.split(".")[:2])
        if len(version) > 1:
            return (int(version[0]), int(version[1:]))
        return (int(version),)
    except ValueError:
        raise ValueError(f"Invalid python version: {version}") from None


@dataclass
class TargetEnvironment:
    """The interpreter and platform packages are selected for.

    With no overrides this is the running interpreter.

    Attributes:
        python_version: Target Python version, e.g. "3.11"
        platforms: Target platform tags, e.g. ["manylinux2014_x86_64"]
        implementation: Interpreter implementation abbreviation, e.g. "cp" or "pp"
        abi: Target ABI tag, e.g. "cp311"
    """

    python_version: Optional[str] = None
    platforms: list[str] = field(default_factory=list)
    implementation: Optional[str] = None
    abi: Optional[str] = None

    def __post_init__(self) -> None:
        if self.python_version is not None:
            _parse_python_version(self.python_version)

    @property
    def is_current(self) -> bool:
        """True when no override is set."""
        return not (self.python_version or self.platforms or self.implementation or self.abi)

    def supported_tags(self) -> list[tags.Tag]:
        """Tags this environment accepts, most preferred first."""
        if self.is_current:
            return list(tags.sys_tags())

        version = (
            _parse_python_version(self.python_version)
            if self.python_version
            else tuple(sys.version_info[:2])
        )
        implementation = self.implementation or tags.interpreter_name()
        interpreter = f"{implementation}{''.join(str(v) for v in version[:2])}"
        platforms = self.platforms or None
        abis = [self.abi] if self.abi else None

        supported: list[tags.Tag] = []
        if implementation == "cp":
            supported.extend(tags.cpython_tags(version, abis, platforms))
        else:
            supported.extend(tags.generic_tags(interpreter, abis, platforms))
        supported.extend(tags.compatible_tags(version, interpreter, platforms))
        return supported

    def marker_environment(self) -> dict[str, str]:
        """PEP 508 marker values for this environment.

        Overrides replace the matching values of the running interpreter; the
        first platform decides the operating system and machine.
        """
        env = dict(default_environment())
        if self.python_version:
            version = _parse_python_version(self.python_version)
            env["python_version"] = ".".join(str(v) for v in version[:2])
            env["python_full_version"] = ".".join(str(v) for v in (version + (0, 0))[:3])
        if self.implementation in _IMPLEMENTATION_NAMES:
            name, display = _IMPLEMENTATION_NAMES[self.implementation]
            env["implementation_name"] = name
            env["platform_python_implementation"] = display
        if self.platforms:
            env.update({k: v for k, v in _platform_markers(self.platforms[0]).items() if v})
        return env

    def pip_args(self) -> list[str]:
        """pip download flags targeting this environment."""
        args: list[str] = []
        if self.python_version:
            args.extend(["--python-version", self.python_version])
        for platform in self.platforms:
            args.extend(["--platform", platform])
        if self.implementation:
            args.extend(["--implementation", self.implementation])
        if self.abi:
            args.extend(["--abi", self.abi])
        return args


def rank_tags(supported: Iterable[tags.Tag]) -> dict[tags.Tag, int]:
    """Map each supported tag to its preference rank (0 is best)."""
    ranks: dict[tags.Tag, int] = {}
    for rank, tag in enumerate(supported):
        ranks.setdefault(tag, rank)
    return ranks


def tag_priority(tag_set: str, ranks: Mapping[tags.Tag, int]) -> int | None:
    """Best rank of any tag in a (possibly compressed) tag set.

    Args:
        tag_set: Tag set such as "py2.py3-none-any"
        ranks: Output of rank_tags()

    Returns:
        The lowest rank, or None if the tag set is invalid or incompatible
    """
    try:
        expanded = tags.parse_tag(tag_set)
    except ValueError:
        return None

    matches = [ranks[t] for t in expanded if t in ranks]
    return min(matches) if matches else None


def select_best_tag_dir(dirs: Iterable[Path], supported: Sequence[tags.Tag]) -> Path | None:
    """Pick the most preferred compatible tag folder.

    Args:
        dirs: Tag folders extracted for one package version
        supported: Supported tags, most preferred first

    Returns:
        The best folder, or None when none is compatible
    """
    ranks = rank_tags(supported)
    best: tuple[int, str] | None = None
    best_dir: Path | None = None

    for directory in dirs:
        priority = tag_priority(directory.name, ranks)
        if priority is None:
            continue
        key = (priority, directory.name)
        if best is None or key < best:
            best = key
            best_dir = directory

    return best_dir
