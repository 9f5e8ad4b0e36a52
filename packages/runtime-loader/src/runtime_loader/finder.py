# SPDX-License-Identifier: MIT
"""Import hook serving modules out of extracted package folders.

The finder is appended to ``sys.meta_path`` so it is only consulted after
the regular finders failed to locate a top-level module. It then scans its
list of module paths for one whose name matches the requested module.

Example:
    >>> finder = ModulePathFinder([Path("packages/attrs-23.1.0/py3-none-any/attrs")])
    >>> finder.install()
    >>> import attrs
"""

from __future__ import annotations

import importlib.abc
import importlib.machinery
import importlib.util
import sys
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from types import ModuleType

import structlog


log = structlog.get_logger()

SKIPPED_SUFFIXES = (".dist-info", ".data")


def _extension_suffix(path: Path) -> str | None:
    for suffix in importlib.machinery.EXTENSION_SUFFIXES:
        if path.name.endswith(suffix):
            return suffix
    return None


def module_name_for(path: Path) -> str:
    """Top-level module name provided by a package directory or module file."""
    if path.is_dir():
        return path.name
    suffix = _extension_suffix(path)
    if suffix is not None:
        return path.name[: -len(suffix)]
    return path.stem


def iter_importables(directory: Path) -> Iterator[Path]:
    """Yield the top-level importable entries of an extracted folder.

    Regular packages (directories with ``__init__.py``), ``.py`` modules and
    extension modules are yielded in name order. Metadata directories and
    bytecode caches are skipped.
    """
    if not directory.is_dir():
        return

    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if entry.name.startswith(".") or entry.name == "__pycache__":
            continue
        if entry.is_dir():
            if entry.name.endswith(SKIPPED_SUFFIXES):
                continue
            if (entry / "__init__.py").is_file():
                yield entry
        elif entry.suffix == ".py" and entry.stem != "__init__":
            yield entry
        elif _extension_suffix(entry) is not None:
            yield entry


class ModulePathFinder(importlib.abc.MetaPathFinder):
    """Fallback finder over an explicit list of module paths."""

    def __init__(self, paths: Iterable[Path] = ()) -> None:
        self.paths: list[Path] = list(paths)

    def set_paths(self, paths: Iterable[Path]) -> None:
        self.paths = list(paths)

    def find_path(self, name: str) -> Path | None:
        """First module path whose module name matches ``name`` ignoring case.

        Extension modules only match their exact name, since their init
        function is named after the module.
        """
        wanted = name.casefold()
        for candidate in self.paths:
            candidate_name = module_name_for(candidate)
            if candidate_name.casefold() != wanted:
                continue
            if candidate_name != name and not candidate.is_dir() and _extension_suffix(candidate):
                continue
            return candidate
        return None

    def find_spec(
        self,
        fullname: str,
        path: Sequence[str] | None = None,
        target: ModuleType | None = None,
    ) -> importlib.machinery.ModuleSpec | None:
        # submodules are found through their parent package's __path__
        if path is not None or "." in fullname:
            return None

        match = self.find_path(fullname)
        if match is None:
            return None

        log.debug("module_resolved", module=fullname, path=str(match))
        if match.is_dir():
            return importlib.util.spec_from_file_location(
                fullname,
                match / "__init__.py",
                submodule_search_locations=[str(match)],
            )
        return importlib.util.spec_from_file_location(fullname, match)

    @property
    def installed(self) -> bool:
        return self in sys.meta_path

    def install(self) -> None:
        """Append the finder to sys.meta_path if it is not there yet."""
        if not self.installed:
            sys.meta_path.append(self)

    def uninstall(self) -> None:
        """Remove the finder from sys.meta_path."""
        while self in sys.meta_path:
            sys.meta_path.remove(self)

    def __repr__(self) -> str:
        return f"ModulePathFinder(paths={len(self.paths)})"
