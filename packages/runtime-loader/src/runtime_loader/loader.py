# SPDX-License-Identifier: MIT
"""Install packages at runtime and import them on demand."""

from __future__ import annotations

import asyncio
import importlib
import tempfile
from pathlib import Path
from types import ModuleType
from typing import Optional

import structlog
from packaging.utils import NormalizedName, canonicalize_name
from packaging.version import InvalidVersion, Version

from .config import LoaderConfig, LoaderConfigError
from .finder import ModulePathFinder, iter_importables
from .installer import InstallResult, install_graph
from .platform import select_best_tag_dir
from .resolver import DependencyResolver


log = structlog.get_logger()


def _split_package_folder(folder_name: str) -> tuple[NormalizedName, Version] | None:
    """Split a "{name}-{version}" package folder name."""
    name, _, version = folder_name.rpartition("-")
    if not name:
        return None
    try:
        return canonicalize_name(name), Version(version)
    except InvalidVersion:
        return None


class RuntimeLoader:
    """Downloads packages into a local folder and serves their modules.

    Creating a loader registers a process-wide import hook; ``close()`` (or
    leaving the ``with`` block) removes it.

    Example:
        >>> with RuntimeLoader(local_source="wheels") as loader:
        ...     loader.install_package("attrs", "23.1.0")
        ...     attrs = loader.load("attrs")
    """

    def __init__(
        self,
        packages_folder: str | Path = "packages",
        local_source: str | Path | None = None,
        *,
        config: Optional[LoaderConfig] = None,
        python_executable: str | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            packages_folder: Folder packages are extracted into
            local_source: Optional directory of wheels consulted in addition to the index
            config: Full configuration; overrides packages_folder and local_source
            python_executable: Interpreter used to run pip (default: current one)

        Raises:
            LocalSourceNotFoundError: If local_source is not an existing directory
        """
        if config is None:
            config = LoaderConfig(
                packages_folder=Path(packages_folder),
                local_source=Path(local_source) if local_source else None,
            )
        self.config = config
        self.resolver = DependencyResolver(config, python_executable)
        self._finder = ModulePathFinder()
        self._finder.install()

    @property
    def packages_folder(self) -> Path:
        return self.config.packages_folder

    @property
    def module_paths(self) -> list[Path]:
        """Module paths served by the import hook."""
        return list(self._finder.paths)

    @property
    def closed(self) -> bool:
        return not self._finder.installed

    def install_package(self, package_id: str, version: str) -> InstallResult:
        """Install a package and its dependencies into the packages folder.

        Args:
            package_id: Name of the package to install
            version: Exact version to install

        Returns:
            InstallResult for the extracted packages

        Raises:
            LoaderConfigError: If the package name or version is invalid
            DependencyResolverError: If pip fails to resolve or download
        """
        if not package_id or not package_id.strip():
            raise LoaderConfigError("package_id is required")
        try:
            parsed = Version(version)
        except InvalidVersion as e:
            raise LoaderConfigError(f"Invalid version '{version}' for {package_id}") from e

        result = InstallResult(
            package_id=package_id,
            version=str(parsed),
            packages_folder=self.packages_folder,
        )
        log.info("installing", package=package_id, version=str(parsed))

        with tempfile.TemporaryDirectory(prefix="runtime-loader-") as temp_dir:
            graph = self.resolver.resolve([f"{package_id}=={parsed}"], Path(temp_dir))
            install_graph(graph, self.packages_folder, result, self.config.extraction)

        result.module_paths = self.collect_module_paths()
        return result

    async def install_package_async(self, package_id: str, version: str) -> InstallResult:
        """Async version of install_package, run in a worker thread."""
        return await asyncio.to_thread(self.install_package, package_id, version)

    def collect_module_paths(self) -> list[Path]:
        """Rebuild the module path list from the packages folder.

        Only the highest installed version of each package is used. Within
        it the best compatible tag folder for the configured target is
        selected and its importable entries are added. When the highest
        version has no compatible build, older versions are tried.
        """
        supported = self.config.target.supported_tags()
        installed: dict[NormalizedName, list[tuple[Version, Path]]] = {}
        paths: list[Path] = []

        if self.packages_folder.is_dir():
            for package_dir in self.packages_folder.iterdir():
                if not package_dir.is_dir() or package_dir.name.startswith("."):
                    continue
                parsed = _split_package_folder(package_dir.name)
                if parsed is None:
                    log.debug("unrecognized_package_folder", folder=package_dir.name)
                    continue
                name, version = parsed
                installed.setdefault(name, []).append((version, package_dir))

        for name in sorted(installed):
            for version, package_dir in sorted(installed[name], reverse=True):
                tag_dirs = [
                    d for d in package_dir.iterdir() if d.is_dir() and not d.name.startswith(".")
                ]
                best = select_best_tag_dir(tag_dirs, supported)
                if best is not None:
                    paths.extend(iter_importables(best))
                    break
            else:
                log.debug("no_compatible_build", package=name)

        self._finder.set_paths(paths)
        return list(paths)

    def load(self, module_name: str) -> ModuleType:
        """Import a module, falling back to the installed packages."""
        return importlib.import_module(module_name)

    def close(self) -> None:
        """Remove the import hook. Safe to call more than once."""
        self._finder.uninstall()

    def __enter__(self) -> "RuntimeLoader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
