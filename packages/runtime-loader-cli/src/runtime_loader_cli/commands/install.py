# SPDX-License-Identifier: MIT
"""Install a package with its dependencies and load modules from it."""

from __future__ import annotations

from pathlib import Path

import click

from runtime_loader import (
    DependencyResolverError,
    IndexClient,
    IndexRequestError,
    LoaderConfigError,
    PackageNotFoundError,
    RuntimeLoader,
    write_install_manifest,
)

from ..main import Context, echo_error, echo_info, echo_success, echo_warning, pass_context


@click.command()
@click.argument("package_name")
@click.option(
    "--version",
    "-V",
    "version",
    default=None,
    help="Exact version to install (default: latest available).",
)
@click.option(
    "--load",
    "-m",
    "modules",
    multiple=True,
    help="Module to import once installed. May be repeated.",
)
@click.option(
    "--manifest",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write a JSON manifest of the installed packages.",
)
@pass_context
def install(
    ctx: Context,
    package_name: str,
    version: str | None,
    modules: tuple[str, ...],
    manifest: Path | None,
) -> None:
    """Install a package and its dependencies into the packages folder.

    \b
    Examples:
        # Install a specific version
        runtime-loader install attrs --version 23.1.0

        # Install the latest version and import a module from it
        runtime-loader install attrs --load attrs

        # Install from a folder of wheels only
        runtime-loader --local-source ./wheels --offline install my-plugin -V 1.0.0
    """
    try:
        config = ctx.load_config()
    except (LoaderConfigError, FileNotFoundError) as e:
        echo_error(str(e))
        raise SystemExit(1) from e

    if version is None:
        echo_info(f"Looking up the latest version of {package_name}...")
        try:
            version = str(IndexClient(config).latest_version(package_name))
        except (PackageNotFoundError, IndexRequestError) as e:
            echo_error(str(e))
            raise SystemExit(1) from e

    echo_info(f"Installing {package_name} {version} into {config.packages_folder}")

    with RuntimeLoader(config=config) as loader:
        try:
            result = loader.install_package(package_name, version)
        except (LoaderConfigError, DependencyResolverError) as e:
            echo_error(str(e))
            raise SystemExit(1) from e

        for pkg in result.packages:
            note = "" if pkg.newly_extracted else " (already present)"
            echo_info(f"  {pkg.name} {pkg.version} [{pkg.tag}]{note}")

        if manifest is not None:
            write_install_manifest(result, manifest)
            echo_info(f"Manifest written to {manifest}")

        if not result.success:
            for error in result.errors:
                echo_error(error)
            raise SystemExit(1)

        if not result.module_paths:
            echo_warning("No importable modules are compatible with this interpreter.")

        echo_success(f"Successfully installed {package_name} {result.version}")

        for module_name in modules:
            try:
                module = loader.load(module_name)
            except ImportError as e:
                echo_error(f"Could not load module {module_name}: {e}")
                raise SystemExit(1) from e
            location = getattr(module, "__file__", None) or "built-in"
            echo_success(f"Loaded module: {module.__name__} ({location})")
