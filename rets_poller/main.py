from __future__ import annotations

import json
import sys
from enum import Enum
from pathlib import Path
from typing import NoReturn, Optional

import typer

from rets_poller.config import PollerConfig, Settings, get_settings, load_config
from rets_poller.domain.errors import ConfigurationError
from rets_poller.domain.registry import register_queries
from rets_poller.domain.triggers import parse_trigger
from rets_poller.infrastructure.scheduler import build_trigger
from rets_poller.poller import RetsPoller
from rets_poller.reporter import print_tick_summary
from rets_poller.sinks import AbstractEventSink, ConsoleSink, JsonLinesSink
from rets_poller.utils.logging import configure_logging

app = typer.Typer(help="Poll MLS RETS queries on a schedule and emit records as events.")

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Poller config file (TOML or JSON). Defaults to $POLLER_CONFIG.",
)


class OutputFormat(str, Enum):
    console = "console"
    jsonl = "jsonl"


def _config_path(config: Optional[Path], settings: Settings) -> Path:
    return config or Path(settings.poller_config)


def _build_poller(config: PollerConfig, settings: Settings) -> RetsPoller:
    return RetsPoller(config, settings=settings)


def _build_sink(output: OutputFormat, output_path: Path) -> AbstractEventSink:
    if output is OutputFormat.jsonl:
        return JsonLinesSink(output_path)
    return ConsoleSink()


def _fail(exc: Exception) -> NoReturn:
    typer.echo(f"Configuration error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command()
def info(config: Optional[Path] = CONFIG_OPTION) -> None:
    """
    Show effective settings and the poller config (secrets redacted).
    """
    settings = get_settings()
    path = _config_path(config, settings)
    typer.echo(
        f"env={settings.app_env} log_level={settings.log_level} json_logs={settings.log_json} "
        f"http_timeout={settings.http_timeout_seconds}s login_retries={settings.login_retry_attempts}"
    )
    try:
        poller_config = load_config(path)
    except ConfigurationError as exc:
        _fail(exc)
    typer.echo(f"config={path}")
    typer.echo(json.dumps(poller_config.redacted(), indent=2, default=str))


@app.command()
def validate(config: Optional[Path] = CONFIG_OPTION) -> None:
    """
    Check the config file, schedule and query registry without polling.
    """
    settings = get_settings()
    path = _config_path(config, settings)
    try:
        poller_config = load_config(path)
        trigger = parse_trigger(poller_config.schedule)
        build_trigger(trigger)
        registry = register_queries(poller_config.queries)
    except ConfigurationError as exc:
        _fail(exc)
    typer.echo(
        f"OK: {len(registry)} queries ({', '.join(registry) or 'none'}), "
        f"schedule {trigger.kind}={trigger.value!r}"
    )


@app.command()
def run(
    config: Optional[Path] = CONFIG_OPTION,
    once: bool = typer.Option(
        False,
        "--once",
        help="Run a single tick immediately and exit, ignoring the schedule.",
    ),
    output: OutputFormat = typer.Option(
        OutputFormat.console,
        "--output",
        "-o",
        help="Where events go: pretty console output or a JSON-lines file.",
    ),
    output_path: Path = typer.Option(
        Path("events.jsonl"),
        "--output-path",
        help="File for --output jsonl.",
    ),
) -> None:
    """
    Poll on the configured schedule until interrupted (or once with --once).
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    path = _config_path(config, settings)

    try:
        poller_config = load_config(path)
    except ConfigurationError as exc:
        _fail(exc)

    poller = _build_poller(poller_config, settings)
    sink = _build_sink(output, output_path)
    try:
        if once:
            results = poller.run_once(sink)
            print_tick_summary(results)
            return
        poller.start(sink)
        while not poller.wait(timeout=1.0):
            pass
    except ConfigurationError as exc:
        _fail(exc)
    finally:
        poller.close()
        sink.close()


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
