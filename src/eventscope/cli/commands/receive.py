"""Receive command for eventscope CLI.

Runs the TCP line receiver that remote-mode loggers send to.
"""

from __future__ import annotations

__all__ = ["receive"]

from pathlib import Path

import click

from eventscope.cli.options import config_option, db_option, load_config
from eventscope.exceptions import ConfigurationError
from eventscope.storage.persister import DurablePersister
from eventscope.telemetry.system.system_logger import configure_system_logger_file, set_console_level
from eventscope.wire.receiver import WireLineReceiver


@click.command()
@config_option
@db_option
@click.option("--host", default=None, help="Bind address (overrides event_logger.host)")
@click.option("--port", type=int, default=None, help="Port (overrides event_logger.port)")
def receive(config_path: Path | None, db_path: Path | None, host: str | None, port: int | None) -> None:
    """Accept newline-delimited wire lines over TCP and persist them.

    Runs until interrupted (Ctrl+C); queued events are flushed on exit.
    """
    config = load_config(config_path, db_path)
    set_console_level(config.logging.log_level)
    if config.logging.log_dir:
        configure_system_logger_file(Path(config.logging.log_dir).expanduser())

    persister = DurablePersister.from_config(config.persister)
    try:
        persister.start()
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    try:
        receiver = WireLineReceiver(
            persister,
            host if host is not None else config.event_logger.host,
            port if port is not None else config.event_logger.port,
        )
    except OSError as e:
        persister.shutdown()
        raise click.ClickException(f"Cannot listen: {e}") from e

    bound_host, bound_port = receiver.address
    click.echo(f"Receiving on {bound_host}:{bound_port} (Ctrl+C to stop)", err=True)
    try:
        receiver.serve_forever()
    except KeyboardInterrupt:
        click.echo("\nStopping receiver", err=True)
    finally:
        receiver.shutdown()
        persister.shutdown()
