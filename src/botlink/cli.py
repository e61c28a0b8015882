"""botlink CLI.

Diagnostic commands for checking a robot link from a terminal.

Usage:
    botlink echo "hello"                  # Round-trip arbitrary data
    botlink mag                           # Read the magnetometer once
    botlink temp                          # Read the CPU temperature once
    botlink watch magData --count 10      # Print streamed telemetry
    botlink config                        # Show effective configuration

Connection options (--host, --port, --timeout) fall back to BOTLINK_*
environment variables.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from typing import Any

import click

from .config import ClientConfig
from .errors import BotLinkError
from .sdk.client import STREAM_EVENTS, BotClient

# Stream event -> (start method, stop method); motor data streams unprompted
_STREAM_CONTROL: dict[str, tuple[str, str] | None] = {
    "magData": ("start_mag_stream", "stop_mag_stream"),
    "piTempData": ("start_pi_temp_stream", "stop_pi_temp_stream"),
    "motorData": None,
}


def _configure_logging(level: str) -> None:
    """Send log records to stderr so stdout stays clean for JSON output."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _run(config: ClientConfig, action: Callable[[BotClient], Awaitable[Any]]) -> Any:
    """Connect, run one action, disconnect; exit 1 on link errors."""

    async def session() -> Any:
        bot = BotClient(config)
        await bot.connect()
        try:
            return await action(bot)
        finally:
            await bot.disconnect()

    try:
        return asyncio.run(session())
    except BotLinkError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--host", default=None, help="Robot address [env: BOTLINK_HOST]")
@click.option("--port", type=int, default=None, help="Robot port [env: BOTLINK_PORT]")
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Seconds to wait for each response [env: BOTLINK_REQUEST_TIMEOUT]",
)
@click.option(
    "--log-level",
    envvar="BOTLINK_LOG_LEVEL",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level for stderr output",
)
@click.pass_context
def main(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    timeout: float | None,
    log_level: str,
) -> None:
    """botlink - talk to the robot over its control link."""
    _configure_logging(log_level)
    try:
        ctx.obj = ClientConfig.from_env(host=host, port=port, request_timeout=timeout)
    except ValueError as e:
        raise click.UsageError(str(e)) from e


@main.command("echo")
@click.argument("text")
@click.pass_obj
def echo_cmd(config: ClientConfig, text: str) -> None:
    """Send TEXT to the robot and print what comes back."""
    _echo_json(_run(config, lambda bot: bot.echo(text)))


@main.command("mag")
@click.pass_obj
def mag_cmd(config: ClientConfig) -> None:
    """Read heading, pitch and roll once."""
    _echo_json(_run(config, lambda bot: bot.read_mag()))


@main.command("temp")
@click.pass_obj
def temp_cmd(config: ClientConfig) -> None:
    """Read the robot's CPU temperature once."""
    _echo_json(_run(config, lambda bot: bot.read_pi_temp()))


@main.command("watch")
@click.argument("event", type=click.Choice(list(STREAM_EVENTS)))
@click.option("--interval", default=500, help="Milliseconds between samples")
@click.option("--count", "-n", default=10, help="Number of samples to print")
@click.pass_obj
def watch_cmd(config: ClientConfig, event: str, interval: int, count: int) -> None:
    """Print COUNT streamed EVENT samples, one JSON object per line.

    Examples:

        botlink watch magData --interval 100 --count 50

        botlink watch motorData
    """
    control = _STREAM_CONTROL[event]

    async def watch(bot: BotClient) -> None:
        samples: asyncio.Queue[Any] = asyncio.Queue()
        unsubscribe = bot.on(event, samples.put_nowait)
        try:
            if control:
                await getattr(bot, control[0])(interval)
            for _ in range(count):
                click.echo(json.dumps(await samples.get(), default=str))
        finally:
            unsubscribe()
            if control and bot.is_connected:
                await getattr(bot, control[1])()

    if count > 0:
        _run(config, watch)


@main.command("config")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def config_cmd(config: ClientConfig, output_json: bool) -> None:
    """Show the effective configuration."""
    data = asdict(config)
    if output_json:
        _echo_json(data)
        return

    click.echo("botlink Configuration")
    click.echo("-" * 40)
    click.echo(f"Robot:              {config.host}:{config.port}")
    click.echo(f"Request timeout:    {config.request_timeout:g}s")
    click.echo(f"Connect timeout:    {config.connect_timeout:g}s")
    click.echo(f"Strict mode:        {'on' if config.strict else 'off'}")


if __name__ == "__main__":
    main()
