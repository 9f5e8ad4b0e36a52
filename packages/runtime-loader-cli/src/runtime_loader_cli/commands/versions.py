# SPDX-License-Identifier: MIT
"""List the versions of a package offered by the configured sources."""

from __future__ import annotations

import click

from runtime_loader import IndexClient, IndexRequestError, LoaderConfigError

from ..main import Context, echo_error, echo_info, pass_context


@click.command()
@click.argument("package_name")
@pass_context
def versions(ctx: Context, package_name: str) -> None:
    """Show available versions of a package, oldest first."""
    try:
        config = ctx.load_config()
        available = IndexClient(config).available_versions(package_name)
    except (LoaderConfigError, FileNotFoundError, IndexRequestError) as e:
        echo_error(str(e))
        raise SystemExit(1) from e

    if not available:
        echo_error(f"No versions of {package_name} found.")
        raise SystemExit(1)

    for version in available:
        suffix = " (pre-release)" if version.is_prerelease else ""
        echo_info(f"{version}{suffix}")
