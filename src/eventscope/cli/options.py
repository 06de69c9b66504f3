"""Options and config loading shared by the CLI commands."""

from __future__ import annotations

__all__ = [
    "config_option",
    "db_option",
    "load_config",
]

from pathlib import Path
from typing import Any, Callable

import click

from eventscope.config import AppConfig
from eventscope.exceptions import ConfigurationError

F = Callable[..., Any]

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to a JSON config file (defaults are used when omitted)",
)

db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Event database path (overrides persister.db_path)",
)


def load_config(config_path: Path | None, db_path: Path | None = None) -> AppConfig:
    """Load the app config for a command.

    Raises:
        click.ClickException: If the config file is missing or invalid.
    """
    try:
        config = AppConfig.load_from_file(config_path) if config_path else AppConfig()
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    if db_path is not None:
        config.persister.db_path = str(db_path)
    return config
