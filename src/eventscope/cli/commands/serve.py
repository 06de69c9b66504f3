"""Serve command for eventscope CLI.

Starts the telemetry runtime and the query API in one process.
"""

from __future__ import annotations

__all__ = ["serve"]

from pathlib import Path

import click
import uvicorn

from eventscope.api.server import create_api_app
from eventscope.cli.options import config_option, db_option, load_config
from eventscope.exceptions import ConfigurationError
from eventscope.runtime import TelemetryRuntime


@click.command()
@config_option
@db_option
@click.option("--host", default=None, help="API bind address (overrides api.host)")
@click.option("--port", type=int, default=None, help="API port (overrides api.port)")
@click.option("--bridge-logging", is_flag=True, help="Capture records of the standard root logger")
def serve(
    config_path: Path | None,
    db_path: Path | None,
    host: str | None,
    port: int | None,
    bridge_logging: bool,
) -> None:
    """Run the capture pipeline and the HTTP query API.

    The API is only available when events are persisted locally
    (event_logger.sink = "persister").
    """
    config = load_config(config_path, db_path)
    runtime = TelemetryRuntime(config)
    try:
        runtime.init()
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    try:
        if runtime.repository is None:
            raise click.ClickException(
                f"Sink '{config.event_logger.sink}' does not persist locally; nothing to serve"
            )
        if bridge_logging:
            runtime.install_log_bridge()

        app = create_api_app(runtime.repository, config=config, stats_source=runtime.stats)
        uvicorn.run(
            app,
            host=host if host is not None else config.api.host,
            port=port if port is not None else config.api.port,
            log_level=config.logging.log_level.lower(),
        )
    finally:
        runtime.shutdown()
