# SPDX-License-Identifier: MIT
"""Runtime package installation and on-demand module loading.

This package downloads a package and its transitive dependencies with pip,
extracts the wheels into a local packages folder and serves their modules
through a fallback import hook.

Example:
    >>> from runtime_loader import RuntimeLoader
    >>>
    >>> with RuntimeLoader("packages", local_source="wheels") as loader:
    ...     result = loader.install_package("attrs", "23.1.0")
    ...     attrs = loader.load("attrs")
"""

__version__ = "0.1.0"

from .config import (
    DEFAULT_INDEX_URL,
    ExtractionSettings,
    LoaderConfig,
    LoaderConfigError,
    LocalSourceNotFoundError,
    PackageSource,
)
from .finder import ModulePathFinder, iter_importables, module_name_for
from .index import IndexClient, IndexRequestError, PackageNotFoundError
from .installer import (
    InstalledPackage,
    InstallResult,
    WheelExtractionError,
    extract_wheel,
    write_install_manifest,
)
from .loader import RuntimeLoader
from .platform import PlatformTag, TargetEnvironment, select_best_tag_dir
from .resolver import (
    DependencyChainError,
    DependencyGraph,
    DependencyResolver,
    DependencyResolverError,
    ResolvedDependency,
)

__all__ = [
    # Version
    "__version__",
    # Config
    "DEFAULT_INDEX_URL",
    "ExtractionSettings",
    "LoaderConfig",
    "LoaderConfigError",
    "LocalSourceNotFoundError",
    "PackageSource",
    # Loader
    "RuntimeLoader",
    # Finder
    "ModulePathFinder",
    "iter_importables",
    "module_name_for",
    # Index
    "IndexClient",
    "IndexRequestError",
    "PackageNotFoundError",
    # Installer
    "InstalledPackage",
    "InstallResult",
    "WheelExtractionError",
    "extract_wheel",
    "write_install_manifest",
    # Platform
    "PlatformTag",
    "TargetEnvironment",
    "select_best_tag_dir",
    # Resolver
    "DependencyChainError",
    "DependencyGraph",
    "DependencyResolver",
    "DependencyResolverError",
    "ResolvedDependency",
]
