"""Tests for configuration models and load/save behavior."""

import json
import os
import stat
from pathlib import Path

import pytest
from pydantic import ValidationError

from eventscope.config import (
    AppConfig,
    EventLoggerConfig,
    IdentityConfig,
    PersisterConfig,
    QueryConfig,
)
from eventscope.exceptions import ConfigurationError


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def valid_config_dict(tmp_path: Path) -> dict:
    """Configuration touching every section."""
    return {
        "logging": {"log_dir": str(tmp_path / "logs"), "log_level": "DEBUG"},
        "identity": {"aid": "agent-1", "config_tag": "C:TEST"},
        "context": {"ttl_seconds": 60},
        "event_logger": {"mode": "direct", "sink": "persister", "levels": {"net": "warn"}},
        "persister": {"db_path": str(tmp_path / "events.db"), "batch_size": 10},
        "query": {"default_page_size": 20, "max_page_size": 200},
        "api": {"port": 9000, "api_key": "secret"},
    }


@pytest.fixture
def config_file(tmp_path: Path, valid_config_dict: dict) -> Path:
    """Write valid config to temp file and return path."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps(valid_config_dict))
    return path


# ============================================================================
# Sections
# ============================================================================


class TestDefaults:
    """Defaults without any config file."""

    def test_every_section_has_defaults(self):
        # Act
        config = AppConfig()

        # Assert
        assert config.event_logger.mode == "buffered"
        assert config.event_logger.sink == "persister"
        assert config.persister.store == "sqlite"
        assert config.persister.db_path.endswith("events.db")
        assert config.query.default_page_size <= config.query.max_page_size
        assert config.api.api_key is None

    def test_agent_id_is_generated_per_instance(self):
        # Act
        first = IdentityConfig()
        second = IdentityConfig()

        # Assert
        assert first.aid != second.aid
        assert first.aid.endswith(f"-{os.getpid()}")


class TestEventLoggerConfig:
    """EventLoggerConfig validation tests."""

    def test_remote_mode_requires_transport_sink(self):
        with pytest.raises(ValidationError, match="remote"):
            EventLoggerConfig(mode="remote", sink="persister")

    def test_socket_sink_requires_remote_mode(self):
        with pytest.raises(ValidationError, match="only valid in mode 'remote'"):
            EventLoggerConfig(mode="buffered", sink="socket")

    def test_file_sink_requires_path(self):
        with pytest.raises(ValidationError, match="file_path"):
            EventLoggerConfig(sink="file")

    def test_rejects_unknown_namespace_level(self):
        with pytest.raises(ValidationError, match="unknown level"):
            EventLoggerConfig(levels={"net": "LOUD"})

    def test_rejects_unknown_mode(self):
        with pytest.raises(ValidationError):
            EventLoggerConfig(mode="async")

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValidationError):
            EventLoggerConfig(queue_capacity=0)


class TestOtherSections:
    """PersisterConfig and QueryConfig validation tests."""

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            PersisterConfig(batch_size=0)

    def test_default_page_size_must_fit_max(self):
        with pytest.raises(ValidationError, match="default_page_size"):
            QueryConfig(default_page_size=500, max_page_size=100)


# ============================================================================
# Load / Save
# ============================================================================


class TestLoadSave:
    """AppConfig file round trips and error reporting."""

    def test_load_valid_file(self, config_file: Path):
        # Act
        config = AppConfig.load_from_file(config_file)

        # Assert
        assert config.identity.aid == "agent-1"
        assert config.event_logger.mode == "direct"
        assert config.persister.batch_size == 10
        assert config.api.port == 9000

    def test_save_then_load(self, tmp_path: Path, config_file: Path):
        # Arrange
        config = AppConfig.load_from_file(config_file)
        target = tmp_path / "nested" / "saved.json"

        # Act
        config.save_to_file(target)
        reloaded = AppConfig.load_from_file(target)

        # Assert
        assert reloaded == config
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            AppConfig.load_from_file(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path):
        # Arrange
        path = tmp_path / "bad.json"
        path.write_text("{not json")

        # Act / Assert
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            AppConfig.load_from_file(path)

    def test_validation_errors_name_the_field(self, tmp_path: Path, valid_config_dict: dict):
        # Arrange
        valid_config_dict["persister"]["batch_size"] = -1
        path = tmp_path / "invalid.json"
        path.write_text(json.dumps(valid_config_dict))

        # Act
        with pytest.raises(ConfigurationError) as exc_info:
            AppConfig.load_from_file(path)

        # Assert
        assert "persister.batch_size" in exc_info.value.message
