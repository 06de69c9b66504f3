"""Ingest command for eventscope CLI.

Replays a file of wire lines into the event store.
"""

from __future__ import annotations

__all__ = ["ingest"]

from pathlib import Path
from typing import TextIO

import click

from eventscope.cli.options import config_option, db_option, load_config
from eventscope.exceptions import ConfigurationError
from eventscope.storage.persister import DurablePersister

# Lower bound for the final drain, so a replayed backlog is written in full
_DRAIN_TIMEOUT_SECONDS = 60.0


@click.command()
@click.argument("source", type=click.File("r", encoding="utf-8", errors="replace"))
@config_option
@db_option
def ingest(source: TextIO, config_path: Path | None, db_path: Path | None) -> None:
    """Replay wire lines from SOURCE ('-' for stdin) into the event store.

    Malformed lines are counted and skipped; events already stored are
    ignored, so replaying the same file twice is harmless.
    """
    config = load_config(config_path, db_path)
    config.persister.shutdown_grace_seconds = max(
        config.persister.shutdown_grace_seconds,
        _DRAIN_TIMEOUT_SECONDS,
    )
    persister = DurablePersister.from_config(config.persister)
    try:
        persister.start()
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    lines = 0
    try:
        for line in source:
            if not line.strip():
                continue
            lines += 1
            persister.ingest_line(line, block=True)
    finally:
        persister.shutdown()

    stats = persister.stats()
    click.echo(
        f"Read {lines} line(s): {stats['events_written']} written, "
        f"{stats['duplicates_ignored']} duplicate(s), "
        f"{stats['format_errors']} malformed, "
        f"{stats['dropped'] + stats['dropped_at_shutdown'] + stats['failed_events']} lost"
    )
