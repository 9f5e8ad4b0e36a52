# SPDX-License-Identifier: MIT
"""List the modules served from the packages folder."""

from __future__ import annotations

import click

from runtime_loader import LoaderConfigError, RuntimeLoader, module_name_for

from ..main import Context, echo_error, echo_info, pass_context


@click.command("list")
@pass_context
def list_modules(ctx: Context) -> None:
    """Show the modules that would be loaded for this interpreter."""
    try:
        config = ctx.load_config()
    except (LoaderConfigError, FileNotFoundError) as e:
        echo_error(str(e))
        raise SystemExit(1) from e

    with RuntimeLoader(config=config) as loader:
        paths = loader.collect_module_paths()

    if not paths:
        echo_info(f"No modules found in {config.packages_folder}")
        return

    width = max(len(module_name_for(p)) for p in paths)
    for path in paths:
        echo_info(f"{module_name_for(path):<{width}}  {path}")
