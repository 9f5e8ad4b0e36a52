# SPDX-License-Identifier: MIT
"""Loader configuration: package sources, extraction and target settings."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .platform import TargetEnvironment


DEFAULT_INDEX_URL = "https://pypi.org/simple"
DEFAULT_INDEX_NAME = "pypi"
LOCAL_SOURCE_NAME = "local"
DEFAULT_PACKAGES_FOLDER = "packages"


class LoaderConfigError(Exception):
    """Raised when loader configuration is invalid."""

    pass


class LocalSourceNotFoundError(LoaderConfigError):
    """Raised when the configured local package source does not exist."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(f"Local package source directory not found: {path}")


@dataclass(frozen=True)
class PackageSource:
    """A place packages are fetched from.

    Attributes:
        source: Index URL or path to a directory of wheel files
        name: Display name of the source
    """

    source: str
    name: str

    @property
    def is_local(self) -> bool:
        """True when the source is a directory rather than an index URL."""
        return not self.source.startswith(("http://", "https://"))


@dataclass
class ExtractionSettings:
    """Controls what is written when a wheel is extracted.

    Attributes:
        save_wheel: Keep the original .whl file next to the extracted files
        save_dist_info: Extract the *.dist-info metadata directory
    """

    save_wheel: bool = True
    save_dist_info: bool = True


@dataclass
class LoaderConfig:
    """Configuration for a RuntimeLoader.

    Attributes:
        packages_folder: Folder extracted packages are placed in (made absolute)
        local_source: Optional directory of wheels used as an extra source
        index_url: Primary package index
        extra_index_urls: Additional package indexes
        offline: Only consult the local source
        include_prerelease: Allow pre-release versions during resolution
        isolated: Ask pip to ignore user configuration and environment variables
        target: Interpreter and platform packages are selected for
        extraction: Extraction settings
    """

    packages_folder: Path = field(default_factory=lambda: Path(DEFAULT_PACKAGES_FOLDER))
    local_source: Optional[Path] = None
    index_url: str = DEFAULT_INDEX_URL
    extra_index_urls: list[str] = field(default_factory=list)
    offline: bool = False
    include_prerelease: bool = False
    isolated: bool = False
    target: TargetEnvironment = field(default_factory=TargetEnvironment)
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)

    def __post_init__(self) -> None:
        self.packages_folder = Path(self.packages_folder).expanduser().resolve()

        if self.local_source is not None and str(self.local_source) != "":
            local = Path(self.local_source).expanduser()
            if not local.is_dir():
                raise LocalSourceNotFoundError(self.local_source)
            self.local_source = local.resolve()
        else:
            self.local_source = None

        if self.offline and self.local_source is None:
            raise LoaderConfigError("offline mode requires a local package source")

        if not self.offline and not self.index_url:
            raise LoaderConfigError("index_url is required unless offline")

    @property
    def sources(self) -> list[PackageSource]:
        """Package sources in the order they are consulted."""
        sources: list[PackageSource] = []

        if not self.offline:
            sources.append(PackageSource(self.index_url, DEFAULT_INDEX_NAME))
            for i, url in enumerate(self.extra_index_urls, start=1):
                sources.append(PackageSource(url, f"extra-{i}"))

        if self.local_source is not None:
            sources.append(PackageSource(str(self.local_source), LOCAL_SOURCE_NAME))

        return sources

    @classmethod
    def from_pyproject(cls, project_dir: str | Path) -> "LoaderConfig":
        """Load configuration from the [tool.runtime-loader] table of pyproject.toml.

        Args:
            project_dir: Directory containing pyproject.toml

        Returns:
            LoaderConfig instance

        Raises:
            LoaderConfigError: If the file is invalid
            FileNotFoundError: If pyproject.toml doesn't exist
        """
        project_path = Path(project_dir)
        pyproject_path = project_path / "pyproject.toml"

        if not pyproject_path.exists():
            raise FileNotFoundError(f"pyproject.toml not found in {project_path}")

        try:
            with open(pyproject_path, "rb") as f:
                pyproject = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise LoaderConfigError(f"Invalid TOML syntax: {e}") from e

        return cls.from_pyproject_dict(pyproject, project_path)

    @classmethod
    def from_pyproject_dict(
        cls,
        pyproject: dict[str, Any],
        project_dir: Path | None = None,
    ) -> "LoaderConfig":
        """Create a LoaderConfig from a parsed pyproject.toml dictionary.

        Relative paths are resolved against ``project_dir`` (default: cwd).
        """
        base = Path(project_dir) if project_dir is not None else Path.cwd()
        table = pyproject.get("tool", {}).get("runtime-loader", {})
        if not isinstance(table, dict):
            raise LoaderConfigError("[tool.runtime-loader] must be a table")

        packages_folder = _get_str(table, "packages-folder", DEFAULT_PACKAGES_FOLDER)
        local_source = _get_str(table, "local-source", "")
        extra_index_urls = table.get("extra-index-urls", [])
        if not isinstance(extra_index_urls, list) or not all(
            isinstance(u, str) for u in extra_index_urls
        ):
            raise LoaderConfigError("extra-index-urls must be a list of strings")

        target_table = table.get("target", {})
        extraction_table = table.get("extraction", {})
        if not isinstance(target_table, dict) or not isinstance(extraction_table, dict):
            raise LoaderConfigError("target and extraction must be tables")

        platforms = target_table.get("platforms", [])
        if isinstance(platforms, str):
            platforms = [platforms]

        return cls(
            packages_folder=base / packages_folder,
            local_source=(base / local_source) if local_source else None,
            index_url=_get_str(table, "index-url", DEFAULT_INDEX_URL),
            extra_index_urls=list(extra_index_urls),
            offline=_get_bool(table, "offline", False),
            include_prerelease=_get_bool(table, "include-prerelease", False),
            isolated=_get_bool(table, "isolated", False),
            target=TargetEnvironment(
                python_version=_get_str(target_table, "python-version", "") or None,
                platforms=list(platforms),
                implementation=_get_str(target_table, "implementation", "") or None,
                abi=_get_str(target_table, "abi", "") or None,
            ),
            extraction=ExtractionSettings(
                save_wheel=_get_bool(extraction_table, "save-wheel", True),
                save_dist_info=_get_bool(extraction_table, "save-dist-info", True),
            ),
        )


def _get_str(table: dict[str, Any], key: str, default: str) -> str:
    value = table.get(key, default)
    if not isinstance(value, str):
        raise LoaderConfigError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _get_bool(table: dict[str, Any], key: str, default: bool) -> bool:
    value = table.get(key, default)
    if not isinstance(value, bool):
        raise LoaderConfigError(f"{key} must be a boolean, got {type(value).__name__}")
    return value
