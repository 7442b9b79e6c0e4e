"""Configuration and logging utilities for the smartftp CLI.

This module provides shared functions used across CLI commands, and the
``init`` command writing the configuration template.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from smartftp.core.config import CONFIG_FILENAME, Configuration, load_config, write_default_config
from smartftp.core.errors import ConfigError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Send smartftp log records to stderr.

    Args:
        verbose: Include debug records.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    smartftp_logger = logging.getLogger("smartftp")
    for existing in smartftp_logger.handlers[:]:
        smartftp_logger.removeHandler(existing)
    smartftp_logger.addHandler(handler)
    smartftp_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    smartftp_logger.propagate = False


def get_workspace(ctx: click.Context) -> Path:
    """Get the workspace root selected with ``--workspace``."""
    return Path(ctx.obj["workspace"]).expanduser().absolute()


def require_config(workspace: Path) -> Configuration:
    """Load the workspace configuration or exit with an error."""
    try:
        return load_config(workspace / CONFIG_FILENAME)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        if not (workspace / CONFIG_FILENAME).exists():
            click.echo("Run 'smartftp init' to create one.", err=True)
        sys.exit(1)


@click.command()
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file.")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Create a smartftp.json template in the workspace."""
    workspace = get_workspace(ctx)
    try:
        path = write_default_config(workspace, overwrite=force)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Use --force to overwrite it.", err=True)
        sys.exit(1)
    except OSError as e:
        click.echo(f"Error: Cannot write {CONFIG_FILENAME}: {e}", err=True)
        sys.exit(1)

    click.echo(f"Created configuration file: {path}")
    click.echo("Edit it with your server details, then run 'smartftp connect'.")
