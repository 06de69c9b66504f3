"""Tests for the eventscope command line interface.

Uses click's CliRunner; the serve and receive commands are exercised with
their blocking servers patched out.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from eventscope import __version__
from eventscope.cli import cli
from eventscope.wire.codec import encode


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def wire_file(tmp_path, make_event):
    """File with three valid lines, one blank and one malformed."""
    events = [
        make_event(namespace="io.file.read", cid="T1"),
        make_event(namespace="io.file.write", cid="T1"),
        make_event(namespace="net.http", cid="T2"),
    ]
    lines = [encode(e, [("n", str(i))]) for i, e in enumerate(events)]
    path = tmp_path / "events.log"
    path.write_text("\n".join([lines[0], "", "garbage", lines[1], lines[2]]) + "\n")
    return path


class TestMain:
    """Tests for the command group."""

    def test_version(self, runner):
        # Act
        result = runner.invoke(cli, ["--version"])

        # Assert
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_command_shows_help(self, runner):
        # Act
        result = runner.invoke(cli, [])

        # Assert
        assert result.exit_code == 0
        for command in ("serve", "ingest", "query", "receive"):
            assert command in result.output


class TestIngestAndQuery:
    """Tests for ingest followed by query against the same database."""

    def test_ingest_reports_counts(self, runner, wire_file, db_path):
        # Act
        result = runner.invoke(cli, ["ingest", str(wire_file), "--db", str(db_path)])

        # Assert
        assert result.exit_code == 0, result.output
        assert "Read 4 line(s): 3 written, 0 duplicate(s), 1 malformed, 0 lost" in result.output

    def test_ingest_counts_undecodable_bytes_as_malformed(self, runner, tmp_path, db_path, make_event):
        # Arrange
        first = encode(make_event(), []).encode("utf-8")
        second = encode(make_event(), []).encode("utf-8")
        path = tmp_path / "mixed.log"
        path.write_bytes(first + b"\n" + b"C:AP | 1\xff | main | INFO | a.b\n" + second + b"\n")

        # Act
        result = runner.invoke(cli, ["ingest", str(path), "--db", str(db_path)])

        # Assert
        assert result.exit_code == 0, result.output
        assert "Read 3 line(s): 2 written, 0 duplicate(s), 1 malformed, 0 lost" in result.output

    def test_reingest_is_idempotent(self, runner, wire_file, db_path):
        # Arrange
        runner.invoke(cli, ["ingest", str(wire_file), "--db", str(db_path)])

        # Act
        result = runner.invoke(cli, ["ingest", str(wire_file), "--db", str(db_path)])

        # Assert
        assert "0 written, 3 duplicate(s)" in result.output

    def test_query_prints_page_as_json(self, runner, wire_file, db_path):
        # Arrange
        runner.invoke(cli, ["ingest", str(wire_file), "--db", str(db_path)])

        # Act
        result = runner.invoke(cli, ["query", "--db", str(db_path), "-n", "io.file.*", "--cid", "T1"])

        # Assert
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["pagination"]["totalElements"] == 2
        assert {e["namespace"] for e in data["content"]} == {"io.file.read", "io.file.write"}

    def test_query_count(self, runner, wire_file, db_path):
        # Arrange
        runner.invoke(cli, ["ingest", str(wire_file), "--db", str(db_path)])

        # Act
        result = runner.invoke(cli, ["query", "--db", str(db_path), "--count"])

        # Assert
        assert json.loads(result.output)["totalElements"] == 3

    def test_query_missing_database(self, runner, tmp_path):
        # Act
        result = runner.invoke(cli, ["query", "--db", str(tmp_path / "none.db")])

        # Assert
        assert result.exit_code != 0
        assert "not found" in result.output

    def test_query_negative_offset(self, runner, wire_file, db_path):
        # Arrange
        runner.invoke(cli, ["ingest", str(wire_file), "--db", str(db_path)])

        # Act
        result = runner.invoke(cli, ["query", "--db", str(db_path), "--offset=-1"])

        # Assert
        assert result.exit_code != 0
        assert "INVALID_PARAMETER" in result.output

    def test_invalid_config_file(self, runner, tmp_path, wire_file):
        # Arrange
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"persister": {"batch_size": 0}}))

        # Act
        result = runner.invoke(cli, ["ingest", str(wire_file), "--config", str(config_path)])

        # Assert
        assert result.exit_code != 0
        assert "persister.batch_size" in result.output


class TestServe:
    """Tests for the serve command."""

    def test_serve_runs_api_over_runtime(self, runner, db_path):
        # Act
        with patch("eventscope.cli.commands.serve.uvicorn.run") as run:
            result = runner.invoke(cli, ["serve", "--db", str(db_path), "--port", "9999"])

        # Assert
        assert result.exit_code == 0, result.output
        app = run.call_args.args[0]
        assert run.call_args.kwargs["port"] == 9999
        assert app.state.repository is not None
        assert db_path.exists()

    def test_serve_refuses_non_persisting_sink(self, runner, tmp_path):
        # Arrange
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"event_logger": {"sink": "console"}}))

        # Act
        with patch("eventscope.cli.commands.serve.uvicorn.run") as run:
            result = runner.invoke(cli, ["serve", "--config", str(config_path)])

        # Assert
        assert result.exit_code != 0
        assert "nothing to serve" in result.output
        run.assert_not_called()


class TestReceive:
    """Tests for the receive command."""

    def test_receive_stops_on_interrupt(self, runner, db_path):
        # Act
        with patch(
            "eventscope.cli.commands.receive.WireLineReceiver.serve_forever",
            side_effect=KeyboardInterrupt,
        ):
            result = runner.invoke(cli, ["receive", "--db", str(db_path), "--port", "0"])

        # Assert
        assert result.exit_code == 0, result.output
        assert "Receiving on 127.0.0.1:" in result.output
        assert "Stopping receiver" in result.output
