"""
Tests for the inspection commands of the CLI.
"""

import pytest
from typer.testing import CliRunner

from ticketbot import __version__
from ticketbot.cli.commands import app
from ticketbot.config import loader
from ticketbot.config.loader import save_config

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch, config):
    """Point the loader at a config file under tmp_path."""
    path = save_config(config, tmp_path / "config.json")
    monkeypatch.setattr(loader, "get_config_path", lambda: path)
    return path


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_resolve_random_suffix_destination(config_file):
    result = runner.invoke(app, ["resolve", "srv-vip", "ticket-5"])

    assert result.exit_code == 0
    assert "Destination: VIP" in result.output
    assert "Priority: yes" in result.output
    assert "Delay: 200-200ms" in result.output


def test_resolve_unknown_destination(config_file):
    result = runner.invoke(app, ["resolve", "srv-missing", "Ticket #482"])

    assert result.exit_code == 0
    assert "Destination: Unknown" in result.output
    assert "Message: 482" in result.output


def test_destinations_table(config_file):
    result = runner.invoke(app, ["destinations"])

    assert result.exit_code == 0
    assert "Destinations" in result.output
    assert "Plain" in result.output


def test_run_requires_session_token(tmp_path, monkeypatch):
    monkeypatch.setattr(loader, "get_config_path", lambda: tmp_path / "absent.json")
    monkeypatch.delenv("TICKETBOT_UPSTREAM__SESSION_TOKEN", raising=False)

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 1
    assert "No session token" in result.output
