"""Query command for eventscope CLI.

Prints one page of stored events (or their count) as JSON.
"""

from __future__ import annotations

__all__ = ["query"]

from pathlib import Path

import click

from eventscope.cli.options import config_option, db_option, load_config
from eventscope.exceptions import QueryError
from eventscope.models import Priority
from eventscope.query.filters import EventFilter
from eventscope.query.repository import QueryRepository
from eventscope.storage.store import create_store


@click.command()
@config_option
@db_option
@click.option("--namespace", "-n", default=None, help="Exact namespace or '*' pattern")
@click.option("--start-time", type=int, default=None, help="Inclusive lower bound (epoch ms)")
@click.option("--end-time", type=int, default=None, help="Inclusive upper bound (epoch ms)")
@click.option("--aid", default=None, help="Agent id")
@click.option("--cid", default=None, help="Correlation (trace) id")
@click.option("--key", default=None, help="Attribute key (exact or '*' pattern)")
@click.option("--value", default=None, help="Attribute value (exact or '*' pattern)")
@click.option(
    "--priority",
    type=click.Choice([p.value for p in Priority], case_sensitive=False),
    default=None,
    help="Exact priority",
)
@click.option("--offset", type=int, default=0, show_default=True, help="Rows to skip")
@click.option("--limit", type=int, default=None, help="Page size")
@click.option("--count", "count_only", is_flag=True, help="Print the result size instead of a page")
def query(
    config_path: Path | None,
    db_path: Path | None,
    namespace: str | None,
    start_time: int | None,
    end_time: int | None,
    aid: str | None,
    cid: str | None,
    key: str | None,
    value: str | None,
    priority: str | None,
    offset: int,
    limit: int | None,
    count_only: bool,
) -> None:
    """Print stored events matching the filters as JSON, newest first."""
    config = load_config(config_path, db_path)
    db_file = Path(config.persister.db_path).expanduser()
    if not db_file.exists():
        raise click.ClickException(f"Event database not found: {db_file}")

    repository = QueryRepository.from_config(
        create_store(config.persister.store, str(db_file)),
        config.query,
    )
    filters = EventFilter(
        namespace=namespace,
        start_time=start_time,
        end_time=end_time,
        aid=aid,
        cid=cid,
        key=key,
        value=value,
        priority=Priority.parse(priority) if priority else None,
    )

    try:
        if count_only:
            result = repository.count(filters, limit)
        else:
            result = repository.find(filters, offset, limit)
    except QueryError as e:
        raise click.ClickException(f"{e.code}: {e.message}") from e

    click.echo(result.model_dump_json(by_alias=True, indent=2))
