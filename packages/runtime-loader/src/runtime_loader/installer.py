# SPDX-License-Identifier: MIT
"""Wheel extraction into the packages folder.

Every wheel is extracted into ``<packages folder>/<name>-<version>/<tag set>/``
so that one package version can hold builds for several targets side by side.
"""

from __future__ import annotations

import json
import shutil
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import structlog
from packaging.utils import InvalidWheelFilename, parse_wheel_filename

from .config import ExtractionSettings
from .finder import iter_importables, module_name_for
from .platform import parse_wheel_filename_tags
from .resolver import DependencyChainError, DependencyGraph


log = structlog.get_logger()


class WheelExtractionError(Exception):
    """Raised when a wheel cannot be extracted."""

    pass


@dataclass
class InstalledPackage:
    """A wheel extracted into the packages folder.

    Attributes:
        name: Normalized package name
        version: Package version
        tag: Compressed tag set of the wheel, e.g. "py3-none-any"
        path: Folder the wheel was extracted into
        top_level_modules: Importable top-level modules in the folder
        newly_extracted: False when the folder already existed
    """

    name: str
    version: str
    tag: str
    path: Path
    top_level_modules: list[str] = field(default_factory=list)
    newly_extracted: bool = True


@dataclass
class InstallResult:
    """Outcome of installing a package and its dependencies."""

    package_id: str
    version: str
    packages_folder: Path
    packages: list[InstalledPackage] = field(default_factory=list)
    dependency_graph: Optional[DependencyGraph] = None
    module_paths: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def get_module_names(self) -> set[str]:
        """All top-level module names provided by the installed packages."""
        names: set[str] = set()
        for pkg in self.packages:
            names.update(pkg.top_level_modules)
        return names


def package_folder_name(name: str, version: str) -> str:
    return f"{name}-{version}"


def _check_member(staging: Path, member: str) -> None:
    target = (staging / member).resolve()
    if target != staging and staging not in target.parents:
        raise WheelExtractionError(f"Refusing to extract '{member}' outside of {staging}")


def _promote_data_dirs(staging: Path) -> None:
    """Move purelib/platlib contents of *.data to the folder root; drop the rest."""
    for data_dir in staging.glob("*.data"):
        for scheme in ("purelib", "platlib"):
            scheme_dir = data_dir / scheme
            if not scheme_dir.is_dir():
                continue
            for item in scheme_dir.iterdir():
                destination = staging / item.name
                if destination.exists():
                    raise WheelExtractionError(
                        f"'{item.name}' from {data_dir.name}/{scheme} conflicts with wheel contents"
                    )
                shutil.move(str(item), str(destination))
        shutil.rmtree(data_dir)


def extract_wheel(
    wheel_path: Path,
    packages_folder: Path,
    settings: ExtractionSettings | None = None,
) -> InstalledPackage:
    """Extract one wheel into the packages folder.

    Args:
        wheel_path: Wheel file to extract
        packages_folder: Root folder for extracted packages
        settings: Extraction settings (defaults to ExtractionSettings())

    Returns:
        InstalledPackage describing the destination folder

    Raises:
        WheelExtractionError: If the wheel is malformed or unsafe
    """
    settings = settings or ExtractionSettings()

    try:
        name, version, _build, _tags = parse_wheel_filename(wheel_path.name)
    except InvalidWheelFilename as e:
        raise WheelExtractionError(str(e)) from e

    tag_set = str(parse_wheel_filename_tags(wheel_path.name))
    package_dir = packages_folder / package_folder_name(name, str(version))
    destination = package_dir / tag_set

    if destination.is_dir() and any(destination.iterdir()):
        log.debug("already_extracted", package=name, version=str(version), tag=tag_set)
        return InstalledPackage(
            name=name,
            version=str(version),
            tag=tag_set,
            path=destination,
            top_level_modules=[module_name_for(p) for p in iter_importables(destination)],
            newly_extracted=False,
        )

    package_dir.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=".extract-", dir=package_dir)).resolve()

    try:
        with zipfile.ZipFile(wheel_path, "r") as whl:
            for info in whl.infolist():
                top = info.filename.split("/", 1)[0]
                if not settings.save_dist_info and top.endswith(".dist-info"):
                    continue
                _check_member(staging, info.filename)
                whl.extract(info, staging)

        _promote_data_dirs(staging)

        if destination.exists():
            destination.rmdir()
        staging.rename(destination)
    except zipfile.BadZipFile as e:
        shutil.rmtree(staging, ignore_errors=True)
        raise WheelExtractionError(f"Invalid wheel {wheel_path.name}: {e}") from e
    except Exception:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    if settings.save_wheel:
        shutil.copy2(wheel_path, package_dir / wheel_path.name)

    log.info("extracted", package=name, version=str(version), tag=tag_set)
    return InstalledPackage(
        name=name,
        version=str(version),
        tag=tag_set,
        path=destination,
        top_level_modules=[module_name_for(p) for p in iter_importables(destination)],
    )


def install_graph(
    graph: DependencyGraph,
    packages_folder: Path,
    result: InstallResult,
    settings: ExtractionSettings | None = None,
) -> InstallResult:
    """Extract every wheel of a resolved graph, recording failures per package."""
    result.dependency_graph = graph
    packages_folder.mkdir(parents=True, exist_ok=True)

    for resolved in graph.get_all_packages():
        if resolved.wheel_path is None:
            continue
        try:
            result.packages.append(extract_wheel(resolved.wheel_path, packages_folder, settings))
        except (WheelExtractionError, OSError) as e:
            chain = graph.get_dependency_chain(resolved.name)
            log.error("extraction_failed", package=resolved.name, error=str(e))
            result.errors.append(str(DependencyChainError(resolved.name, chain, str(e))))

    return result


def write_install_manifest(
    result: InstallResult,
    output_path: str | Path,
) -> None:
    """Write a JSON manifest of an install for debugging and auditing.

    Args:
        result: InstallResult from RuntimeLoader.install_package
        output_path: Path to write the manifest file
    """
    installed: dict[str, dict[str, Any]] = {}
    dependency_graph_data: dict[str, list[str]] = {}
    root_dependencies: list[str] = []

    if result.dependency_graph is not None:
        root_dependencies = list(result.dependency_graph.root_dependencies)
        for name, resolved in result.dependency_graph.packages.items():
            installed[name] = {
                "version": resolved.version,
                "modules": [],
                "is_pure_python": resolved.is_pure_python,
                "platform_tags": resolved.platform_tags,
                "direct_dependencies": resolved.requires,
                "path": None,
            }
            dependency_graph_data[name] = resolved.requires

    for pkg in result.packages:
        entry = installed.setdefault(
            pkg.name,
            {
                "version": pkg.version,
                "is_pure_python": pkg.tag.endswith("-none-any"),
                "platform_tags": [pkg.tag],
                "direct_dependencies": [],
            },
        )
        entry["modules"] = pkg.top_level_modules
        entry["path"] = str(pkg.path)
        dependency_graph_data.setdefault(pkg.name, [])

    manifest: dict[str, Any] = {
        "package": result.package_id,
        "version": result.version,
        "packages_folder": str(result.packages_folder),
        "installed_packages": installed,
        "dependency_graph": dependency_graph_data,
        "root_dependencies": root_dependencies,
        "errors": result.errors,
    }

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
