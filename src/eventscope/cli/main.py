"""Main CLI entry point for eventscope.

Defines the command group and registers all subcommands.

Commands:
    serve   - Run the capture pipeline with the query API
    ingest  - Replay a file of wire lines into the event store
    query   - Print one page of stored events as JSON
    receive - Accept wire lines over TCP and persist them
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import click

from eventscope import __version__
from eventscope.cli.commands.ingest import ingest
from eventscope.cli.commands.query import query
from eventscope.cli.commands.receive import receive
from eventscope.cli.commands.serve import serve


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """eventscope - capture, correlate and query telemetry events.

    Producers emit events through the in-process logger; events are
    persisted to a local SQLite store and served over an HTTP query API.
    """
    if version:
        click.echo(f"eventscope {__version__}")
        ctx.exit(0)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(serve)
cli.add_command(ingest)
cli.add_command(query)
cli.add_command(receive)


def main() -> None:
    """Entry point for the eventscope command."""
    cli()


if __name__ == "__main__":
    main()
