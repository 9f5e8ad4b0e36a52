# SPDX-License-Identifier: MIT
"""Dependency resolution with transitive dependency support.

Resolution itself is delegated to ``pip download``; this module builds the
pip command from the loader configuration and turns the downloaded wheels
into a dependency graph.
"""

from __future__ import annotations

import email.parser
import subprocess
import sys
import zipfile
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import structlog
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from .platform import parse_wheel_tags

if TYPE_CHECKING:
    from .config import LoaderConfig


log = structlog.get_logger()


@dataclass
class ResolvedDependency:
    """A resolved dependency with its metadata.

    Attributes:
        name: Normalized package name
        version: Package version string
        requires: Normalized names of the direct dependencies of this package
        platform_tags: Tags from the wheel
        is_pure_python: True if the wheel is py3-none-any style
        wheel_path: Path to the downloaded wheel file, if available
    """

    name: str
    version: str
    requires: list[str] = field(default_factory=list)
    platform_tags: list[str] = field(default_factory=list)
    is_pure_python: bool = True
    wheel_path: Path | None = None


@dataclass
class DependencyGraph:
    """Graph of resolved dependencies."""

    packages: dict[str, ResolvedDependency] = field(default_factory=dict)
    root_dependencies: list[str] = field(default_factory=list)

    def get_all_packages(self) -> list[ResolvedDependency]:
        """Get all packages in topological order, dependents first."""
        in_degree: dict[str, int] = {name: 0 for name in self.packages}
        for pkg in self.packages.values():
            for dep in pkg.requires:
                if dep in in_degree:
                    in_degree[dep] += 1

        queue = deque(name for name, degree in in_degree.items() if degree == 0)
        result: list[ResolvedDependency] = []

        while queue:
            current = self.packages[queue.popleft()]
            result.append(current)
            for dep in current.requires:
                if dep in in_degree:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)

        # cycles
        for remaining in self.packages.values():
            if remaining not in result:
                result.append(remaining)

        return result

    def add_package(self, package: ResolvedDependency) -> None:
        """Add a package to the graph."""
        self.packages[package.name] = package

    def get_dependency_chain(self, target: str) -> list[str]:
        """Get the dependency chain from a root dependency to a target package.

        Uses BFS to find the shortest path from any root dependency to the target.

        Args:
            target: The target package name to find a chain to

        Returns:
            List of package names representing the chain from root to target,
            or just the target if no chain exists
        """
        if target in self.root_dependencies:
            return [target]

        reverse_graph: dict[str, list[str]] = {name: [] for name in self.packages}
        for name, pkg in self.packages.items():
            for dep in pkg.requires:
                if dep in reverse_graph:
                    reverse_graph[dep].append(name)

        queue: deque[tuple[str, list[str]]] = deque([(target, [target])])
        visited: set[str] = {target}

        while queue:
            current, path = queue.popleft()

            if current in self.root_dependencies:
                return list(reversed(path))

            for parent in reverse_graph.get(current, []):
                if parent not in visited:
                    visited.add(parent)
                    queue.append((parent, path + [parent]))

        return [target]


class DependencyResolverError(Exception):
    """Raised when dependency resolution fails."""

    pass


class DependencyChainError(DependencyResolverError):
    """A package failure reported with the chain that pulled it in.

    Attributes:
        package: The package that failed
        chain: The dependency chain leading to the failed package
        original_error: The original error message
    """

    def __init__(
        self,
        package: str,
        chain: list[str],
        original_error: str,
    ):
        self.package = package
        self.chain = chain
        self.original_error = original_error
        chain_str = " -> ".join(chain) if chain else package
        super().__init__(
            f"Failed to install '{package}':\n"
            f"  Dependency chain: {chain_str}\n"
            f"  Error: {original_error}"
        )


def _parse_requirement_name(requirement: str) -> str:
    """Extract the normalized package name from a requirement string."""
    try:
        return canonicalize_name(Requirement(requirement).name)
    except InvalidRequirement:
        return canonicalize_name(requirement.split("=", 1)[0].strip())


def _parse_requires_dist(
    requires_dist: list[str],
    environment: Optional[Mapping[str, str]] = None,
) -> list[str]:
    """Return the names of Requires-Dist entries that apply without extras.

    Markers are evaluated against ``environment`` (default: this interpreter).
    """
    marker_env = dict(environment or {})
    marker_env["extra"] = ""
    result: list[str] = []
    for entry in requires_dist:
        try:
            req = Requirement(entry)
        except InvalidRequirement:
            log.warning("invalid_requires_dist", requirement=entry)
            continue
        if req.marker is not None and not req.marker.evaluate(marker_env):
            continue
        name = canonicalize_name(req.name)
        if name not in result:
            result.append(name)
    return result


def parse_wheel(
    wheel_path: Path,
    environment: Optional[Mapping[str, str]] = None,
) -> ResolvedDependency | None:
    """Read name, version, dependencies and tags from a wheel file.

    ``environment`` holds the marker values dependencies are filtered with.
    Returns None when the archive has no readable METADATA.
    """
    try:
        with zipfile.ZipFile(wheel_path, "r") as whl:
            metadata_path = next(
                (n for n in whl.namelist() if n.endswith(".dist-info/METADATA")),
                None,
            )
            if metadata_path is None:
                return None
            metadata_content = whl.read(metadata_path).decode("utf-8")
    except (OSError, zipfile.BadZipFile, UnicodeDecodeError):
        log.warning("unreadable_wheel", wheel=str(wheel_path), exc_info=True)
        return None

    metadata = email.parser.Parser().parsestr(metadata_content)
    name = metadata.get("Name", "")
    if not name:
        return None

    platform_tags = parse_wheel_tags(wheel_path)

    return ResolvedDependency(
        name=canonicalize_name(name),
        version=metadata.get("Version", "unknown"),
        requires=_parse_requires_dist(metadata.get_all("Requires-Dist") or [], environment),
        platform_tags=[str(t) for t in platform_tags],
        is_pure_python=all(t.is_pure_python for t in platform_tags),
        wheel_path=wheel_path,
    )


class DependencyResolver:
    """Resolves a requirement and its transitive dependencies with pip."""

    def __init__(
        self,
        config: LoaderConfig,
        python_executable: str | None = None,
    ):
        self.config = config
        self.python = python_executable or sys.executable

    def source_args(self) -> list[str]:
        """pip flags selecting the configured package sources."""
        args: list[str] = []
        remote = [s for s in self.config.sources if not s.is_local]
        local = [s for s in self.config.sources if s.is_local]

        if not remote:
            args.append("--no-index")
        for i, source in enumerate(remote):
            args.extend(["--index-url" if i == 0 else "--extra-index-url", source.source])
        for source in local:
            args.extend(["--find-links", source.source])

        return args

    def build_command(self, requirements: list[str], dest: Path) -> list[str]:
        """Build the pip download command line."""
        cmd = [
            self.python,
            "-m",
            "pip",
            "download",
            "--dest",
            str(dest),
            "--only-binary=:all:",
            "--disable-pip-version-check",
            "--quiet",
        ]
        if self.config.isolated:
            cmd.append("--isolated")
        if self.config.include_prerelease:
            cmd.append("--pre")
        cmd.extend(self.source_args())
        cmd.extend(self.config.target.pip_args())
        cmd.extend(requirements)
        return cmd

    def resolve(self, requirements: list[str], dest: str | Path) -> DependencyGraph:
        """Download requirements and their dependencies into ``dest``.

        Args:
            requirements: pip requirement strings
            dest: Directory the wheels are downloaded to

        Returns:
            DependencyGraph of every downloaded wheel

        Raises:
            DependencyResolverError: If pip cannot be run or fails
        """
        graph = DependencyGraph()
        if not requirements:
            return graph

        graph.root_dependencies = [_parse_requirement_name(r) for r in requirements]
        wheel_dir = Path(dest)
        wheel_dir.mkdir(parents=True, exist_ok=True)

        cmd = self.build_command(requirements, wheel_dir)
        log.info("resolving", requirements=requirements, sources=[s.name for s in self.config.sources])

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError:
            raise DependencyResolverError(f"Python executable not found: {self.python}") from None
        except OSError as e:
            raise DependencyResolverError(f"Failed to run pip: {e}") from e

        if result.returncode != 0:
            raise DependencyResolverError(
                f"pip download failed:\n{result.stderr}\n{result.stdout}".rstrip()
            )

        environment = self.config.target.marker_environment()
        for wheel_file in sorted(wheel_dir.glob("*.whl")):
            resolved = parse_wheel(wheel_file, environment)
            if resolved is not None:
                graph.add_package(resolved)

        log.info("resolved", packages=sorted(graph.packages))
        return graph
