"""
Tests for the command line interface.
"""

import pytest
from typer.testing import CliRunner

from slotbook.cli.app import app

runner = CliRunner()

# 2030-01-07 is a Monday, safely in the future for the system clock
MONDAY = "2030-01-07"


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        f"timezone: Europe/Berlin\n"
        f"database_url: sqlite:///{tmp_path / 'cli.db'}\n"
        f"log_level: WARNING\n",
        encoding="utf-8",
    )
    schedule = tmp_path / "schedule.yaml"
    schedule.write_text(
        'monday:\n  segments: [["09:00", "12:00"]]\n',
        encoding="utf-8",
    )

    for args in (
        ["init-db"],
        ["add-service", "haircut", "provider-1", "--duration", "60", "--name", "Haircut"],
        ["set-schedule", "provider-1", str(schedule)],
    ):
        result = runner.invoke(app, [*args, "--config", str(path)])
        assert result.exit_code == 0, result.output

    return path


def test_version():
    """Test the version command."""
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "slotbook" in result.output


def test_show_schedule(config_file):
    """Test printing the weekly schedule table."""
    result = runner.invoke(app, ["show-schedule", "provider-1", "-c", str(config_file)])

    assert result.exit_code == 0
    assert "09:00-12:00" in result.output
    assert "closed" in result.output


def test_slots_and_booking(config_file):
    """Test that booking a slot removes it from the free slots."""
    result = runner.invoke(app, ["slots", "haircut", "--date", MONDAY, "-c", str(config_file)])
    assert result.exit_code == 0
    assert "3 free slot(s)" in result.output

    result = runner.invoke(
        app, ["book", "haircut", "customer-1", f"{MONDAY} 10:00", "-c", str(config_file)]
    )
    assert result.exit_code == 0, result.output
    assert "Pending" in result.output

    result = runner.invoke(app, ["slots", "haircut", "--date", MONDAY, "-c", str(config_file)])
    assert "2 free slot(s)" in result.output
    assert "10:00" not in result.output


def test_rejected_booking_exits_with_error(config_file):
    """Test that a rejected booking exits with status 1."""
    result = runner.invoke(
        app, ["book", "haircut", "customer-1", f"{MONDAY} 09:30", "-c", str(config_file)]
    )

    assert result.exit_code == 1
    assert "Error" in result.output


def test_duplicate_service(config_file):
    """Test that registering a service twice fails."""
    result = runner.invoke(
        app, ["add-service", "haircut", "provider-1", "-c", str(config_file)]
    )

    assert result.exit_code == 1
    assert "already exists" in result.output


def test_bookings_listing(config_file):
    """Test listing a customer's bookings and an empty narrowed list."""
    result = runner.invoke(
        app, ["book", "haircut", "customer-1", f"{MONDAY} 10:00", "-c", str(config_file)]
    )
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["bookings", "--customer", "customer-1", "-c", str(config_file)])
    assert result.exit_code == 0, result.output
    assert "Bookings of customer-1" in result.output
    assert "haircut" in result.output
    assert "Pending" in result.output

    result = runner.invoke(
        app,
        ["bookings", "--provider", "provider-1", "--customer", "customer-2", "-c", str(config_file)],
    )
    assert result.exit_code == 0, result.output
    assert "No bookings found" in result.output


def test_bookings_needs_customer_or_provider(config_file):
    """Test that listing bookings needs a filter."""
    result = runner.invoke(app, ["bookings", "-c", str(config_file)])

    assert result.exit_code == 1
    assert "--customer" in result.output
