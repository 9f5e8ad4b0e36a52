# SPDX-License-Identifier: MIT
"""CLI entry point for the runtime-loader command."""

from __future__ import annotations

import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional

import click
import structlog

from runtime_loader import LoaderConfig, LoaderConfigError


class Context:
    """CLI context object passed to commands."""

    def __init__(self) -> None:
        self.config: Optional[LoaderConfig] = None
        self.verbose: bool = False
        self.project_dir: Optional[Path] = None
        self.packages_folder: Optional[Path] = None
        self.local_source: Optional[Path] = None
        self.offline: bool = False

    def load_config(self) -> LoaderConfig:
        """Build the loader configuration, caching the result.

        Values from [tool.runtime-loader] are used when a project directory is
        given; command line options take precedence.
        """
        if self.config is None:
            if self.project_dir is not None:
                config = LoaderConfig.from_pyproject(self.project_dir)
            else:
                config = LoaderConfig()

            overrides: dict[str, object] = {}
            if self.packages_folder is not None:
                overrides["packages_folder"] = self.packages_folder
            if self.local_source is not None:
                overrides["local_source"] = self.local_source
            if self.offline:
                overrides["offline"] = True

            self.config = dataclasses.replace(config, **overrides) if overrides else config
        return self.config


pass_context = click.make_pass_decorator(Context, ensure=True)


def echo_error(message: str) -> None:
    """Print an error message to stderr."""
    click.secho(f"Error: {message}", fg="red", err=True)


def echo_success(message: str) -> None:
    """Print a success message."""
    click.secho(message, fg="green")


def echo_info(message: str) -> None:
    """Print an info message."""
    click.echo(message)


def echo_warning(message: str) -> None:
    """Print a warning message."""
    click.secho(f"Warning: {message}", fg="yellow", err=True)


def _stderr_logger(*args: object) -> structlog.PrintLogger:
    # looked up per call so redirected streams are honoured
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(verbose: bool) -> None:
    """Route library log events to stderr at the requested level."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


@click.group()
@click.version_option(package_name="runtime-loader")
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose output.",
)
@click.option(
    "-C",
    "--directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Project directory whose pyproject.toml holds [tool.runtime-loader].",
)
@click.option(
    "--packages-folder",
    "-p",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="RUNTIME_LOADER_PACKAGES",
    default=None,
    help="Folder packages are extracted into (default: ./packages).",
)
@click.option(
    "--local-source",
    "-l",
    type=click.Path(path_type=Path),
    envvar="RUNTIME_LOADER_LOCAL_SOURCE",
    default=None,
    help="Directory of wheel files used as an additional source.",
)
@click.option(
    "--offline",
    is_flag=True,
    help="Only use the local source.",
)
@pass_context
def cli(
    ctx: Context,
    verbose: bool,
    directory: Optional[Path],
    packages_folder: Optional[Path],
    local_source: Optional[Path],
    offline: bool,
) -> None:
    """Install packages at runtime and load their modules.

    \b
    Examples:
        runtime-loader install attrs --version 23.1.0 --load attrs
        runtime-loader --local-source ./wheels --offline install my-plugin
        runtime-loader list
    """
    ctx.verbose = verbose
    ctx.project_dir = directory
    ctx.packages_folder = packages_folder
    ctx.local_source = local_source
    ctx.offline = offline
    configure_logging(verbose)


# Import and register commands
from .commands import install, listing, versions

cli.add_command(install.install)
cli.add_command(listing.list_modules)
cli.add_command(versions.versions)


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli()
    except LoaderConfigError as e:
        echo_error(str(e))
        sys.exit(1)
    except FileNotFoundError as e:
        echo_error(str(e))
        sys.exit(1)
    except Exception as e:
        echo_error(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
