"""
Tests for YAML configuration loading.
"""

import pytest
from pydantic import ValidationError

from slotbook.config import AppConfig, EngineSettings, NotificationSettings


def test_defaults():
    """Test the defaults used without a config file."""
    config = AppConfig()

    assert config.timezone == "UTC"
    assert config.database_url == "sqlite:///slotbook.db"
    assert config.engine.slot_step_minutes is None
    assert not config.engine.auto_confirm
    assert config.notifications.webhook_url is None


def test_load_from_yaml(tmp_path):
    """Test loading every section from YAML."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "timezone: Europe/Berlin\n"
        "log_level: debug\n"
        "engine:\n"
        "  slot_step_minutes: 15\n"
        "  auto_confirm: true\n"
        "notifications:\n"
        "  webhook_url: https://hooks.example.com/bookings\n",
        encoding="utf-8",
    )

    config = AppConfig.load_from_yaml(path)

    assert config.timezone == "Europe/Berlin"
    assert config.log_level == "DEBUG"
    assert config.engine.slot_step_minutes == 15
    assert config.engine.auto_confirm
    assert config.notifications.webhook_url == "https://hooks.example.com/bookings"


def test_missing_file(tmp_path):
    """Test that a missing file raises."""
    with pytest.raises(FileNotFoundError):
        AppConfig.load_from_yaml(tmp_path / "nope.yaml")


def test_explicit_missing_file_is_not_defaulted(tmp_path):
    """Test that an explicit missing path is not replaced by defaults."""
    with pytest.raises(FileNotFoundError):
        AppConfig.load_or_default(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    """Test that broken YAML is reported."""
    path = tmp_path / "config.yaml"
    path.write_text("timezone: [unclosed\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML"):
        AppConfig.load_from_yaml(path)


def test_root_must_be_mapping(tmp_path):
    """Test that the YAML root must be a mapping."""
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        AppConfig.load_from_yaml(path)


def test_unknown_timezone():
    """Test that an unknown timezone is rejected."""
    with pytest.raises(ValidationError):
        AppConfig(timezone="Mars/Olympus_Mons")


def test_unknown_log_level():
    """Test that an unknown log level is rejected."""
    with pytest.raises(ValidationError):
        AppConfig(log_level="chatty")


def test_non_positive_step():
    """Test that the slot step must be positive."""
    with pytest.raises(ValidationError):
        EngineSettings(slot_step_minutes=0)


def test_non_positive_timeout():
    """Test that the webhook timeout must be positive."""
    with pytest.raises(ValidationError):
        NotificationSettings(timeout_seconds=0)
