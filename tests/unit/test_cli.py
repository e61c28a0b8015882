"""Tests for the botlink CLI."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from botlink.cli import main
from botlink.config import ClientConfig
from botlink.errors import BotConnectionError, RequestTimeoutError


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def fake_bot():
    """Patch BotClient in the CLI with an async mock."""
    bot = MagicMock()
    bot.connect = AsyncMock()
    bot.disconnect = AsyncMock(return_value=False)
    bot.is_connected = True
    with patch("botlink.cli.BotClient", return_value=bot) as factory:
        bot.factory = factory
        yield bot


class TestOneShotCommands:
    """Tests for echo, mag and temp."""

    def test_echo(self, runner, fake_bot):
        """echo prints the robot's reply as JSON."""
        fake_bot.echo = AsyncMock(return_value="hello")

        result = runner.invoke(main, ["--port", "9000", "echo", "hello"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == "hello"
        fake_bot.echo.assert_awaited_once_with("hello")
        fake_bot.disconnect.assert_awaited_once()
        config = fake_bot.factory.call_args.args[0]
        assert isinstance(config, ClientConfig)
        assert config.port == 9000

    def test_mag(self, runner, fake_bot):
        """mag prints the magnetometer reading."""
        fake_bot.read_mag = AsyncMock(return_value={"heading": 10, "pitch": 0, "roll": 0})

        result = runner.invoke(main, ["mag"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["heading"] == 10

    def test_temp(self, runner, fake_bot):
        """temp prints the CPU temperature."""
        fake_bot.read_pi_temp = AsyncMock(return_value={"temp": 51.2})

        result = runner.invoke(main, ["temp"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"temp": 51.2}

    def test_timeout_exits_1(self, runner, fake_bot):
        """A timed-out request prints an error and exits 1."""
        fake_bot.read_mag = AsyncMock(side_effect=RequestTimeoutError("tok_1", 5.0))

        result = runner.invoke(main, ["mag"])

        assert result.exit_code == 1
        assert "timed out" in result.output
        fake_bot.disconnect.assert_awaited_once()

    def test_connect_failure_exits_1(self, runner, fake_bot):
        """A failed connection prints an error and exits 1."""
        fake_bot.connect.side_effect = BotConnectionError("Failed to connect")

        result = runner.invoke(main, ["mag"])

        assert result.exit_code == 1
        assert "Failed to connect" in result.output


class TestWatch:
    """Tests for the watch command."""

    def test_watch_mag(self, runner, fake_bot):
        """watch starts the stream, prints COUNT samples, then stops it."""
        listeners = []
        fake_bot.on = MagicMock(side_effect=lambda event, fn: listeners.append(fn) or MagicMock())

        async def start(interval):
            for heading in range(5):
                listeners[0]({"heading": heading})

        fake_bot.start_mag_stream = AsyncMock(side_effect=start)
        fake_bot.stop_mag_stream = AsyncMock()

        result = runner.invoke(main, ["watch", "magData", "--interval", "50", "-n", "3"])

        assert result.exit_code == 0, result.output
        lines = [json.loads(line) for line in result.output.splitlines()]
        assert lines == [{"heading": 0}, {"heading": 1}, {"heading": 2}]
        fake_bot.start_mag_stream.assert_awaited_once_with(50)
        fake_bot.stop_mag_stream.assert_awaited_once()
        assert fake_bot.on.call_args.args[0] == "magData"

    def test_watch_rejects_unknown_event(self, runner, fake_bot):
        """Only known stream events are accepted."""
        result = runner.invoke(main, ["watch", "sonarData"])

        assert result.exit_code == 2


class TestConfigCommand:
    """Tests for the config command."""

    def test_config_json(self, runner, monkeypatch):
        """config --json reflects environment and options."""
        monkeypatch.setenv("BOTLINK_HOST", "10.1.1.1")

        result = runner.invoke(main, ["--timeout", "2.5", "config", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["host"] == "10.1.1.1"
        assert data["request_timeout"] == 2.5

    def test_config_table(self, runner):
        """config prints a readable summary."""
        result = runner.invoke(main, ["--host", "robot.local", "--port", "1234", "config"])

        assert result.exit_code == 0, result.output
        assert "robot.local:1234" in result.output

    def test_invalid_env(self, runner, monkeypatch):
        """A bad BOTLINK_PORT is reported as a usage error."""
        monkeypatch.setenv("BOTLINK_PORT", "eighty")

        result = runner.invoke(main, ["config"])

        assert result.exit_code == 2
        assert "BOTLINK_PORT" in result.output
