"""napcat-runtime CLI.

Usage:
    napcat-runtime run --config bot.yaml              # Connect and host plugins
    napcat-runtime run --config bot.yaml --log-level DEBUG
    napcat-runtime check --config bot.yaml            # Handshake every endpoint
    napcat-runtime plugins --config bot.yaml          # List plugin directories
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from .config import BotConfig, load_config

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def configure_logging(level: str) -> None:
    """Send every log record to stderr with one handler."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(stderr_handler)
    root_logger.setLevel(level.upper())

    # websockets logs every frame at DEBUG
    logging.getLogger("websockets").setLevel(logging.INFO)


def _load(config_path: str) -> BotConfig:
    try:
        return load_config(config_path)
    except (OSError, ValueError) as e:
        click.echo(f"Invalid config {config_path}: {e}", err=True)
        sys.exit(1)


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    default="bot.yaml",
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Path to the YAML config file",
)


@click.group()
@click.version_option(package_name="napcat-runtime")
def main() -> None:
    """Host chat bot plugins on OneBot bridge connections."""


@main.command()
@config_option
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Override the configured log level",
)
def run(config_path: str, log_level: str | None) -> None:
    """Connect to every endpoint and run until they all close.

    Examples:

        napcat-runtime run --config bot.yaml
    """
    from .runtime import BridgeRuntime

    config = _load(config_path)
    configure_logging(log_level or config.log_level)

    runtime = BridgeRuntime(config)
    click.echo(f"Starting napcat-runtime with {len(config.connections)} endpoint(s)", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    try:
        asyncio.run(runtime.run())
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)
    except ConnectionError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@config_option
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
def check(config_path: str, output_format: str) -> None:
    """Connect to every endpoint, print its identity and disconnect."""
    from .registry import ConnectionRegistry

    config = _load(config_path)
    configure_logging("WARNING")

    async def probe() -> list[dict[str, object]]:
        registry = ConnectionRegistry()
        failed = await registry.connect_all(config.connections)
        failures = {c.label: str(e) for c, e in failed}
        results: list[dict[str, object]] = [
            {"endpoint": c.name, "self_id": c.self_id, "nickname": c.nickname, "ok": True}
            for c in registry.connections
        ]
        results.extend(
            {"endpoint": label, "error": error, "ok": False} for label, error in failures.items()
        )
        await registry.close_all()
        return results

    results = asyncio.run(probe())

    if output_format == FORMAT_JSON:
        click.echo(json.dumps(results, indent=2, ensure_ascii=False))
    else:
        for result in results:
            if result["ok"]:
                identity = f"{result['nickname']} ({result['self_id']})"
                click.echo(f"OK    {result['endpoint']}: {identity}")
            else:
                click.echo(f"FAIL  {result['endpoint']}: {result['error']}")

    if not all(result["ok"] for result in results):
        sys.exit(1)


@main.command()
@config_option
def plugins(config_path: str) -> None:
    """List plugins found in the plugins directory."""
    from .plugin import DirectoryLoader

    config = _load(config_path)
    root = config.plugins_path()
    names = DirectoryLoader(root).discover()

    if not names:
        click.echo(f"No plugins found in {root}")
        return

    click.echo(f"Plugins in {root}:")
    for name in names:
        marker = "*" if name in config.plugins else " "
        click.echo(f"  {marker} {name}")
    click.echo("\n* = enabled in config")


if __name__ == "__main__":
    main()
