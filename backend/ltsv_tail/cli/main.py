"""CLI entrypoint for ltsv-tail."""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from ltsv_tail.core.config import SAMPLE_CONFIG, Settings
from ltsv_tail.core.logging import configure_logging, get_logger
from ltsv_tail.core.metrics import serve_metrics
from ltsv_tail.encoding import ENCODERS
from ltsv_tail.ingest.sinks import StreamSink
from ltsv_tail.plugins import default_registry

app = typer.Typer(name="ltsv-tail", help="Tail LTSV log files and emit metric points")

logger = get_logger(__name__)


def _load_settings(config: Optional[Path]) -> Settings:
    try:
        return Settings.from_yaml(config)
    except (ValidationError, ValueError, OSError) as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2)


def _stream_sink(output_format: str) -> StreamSink:
    encoder = ENCODERS.get(output_format)
    if encoder is None:
        typer.echo(f"Unknown format {output_format!r}; choose from {', '.join(ENCODERS)}", err=True)
        raise typer.Exit(code=2)
    return StreamSink(sys.stdout, encoder)


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="Root log level"),
    plain_logs: bool = typer.Option(False, "--plain-logs", help="Human readable logs instead of JSON"),
) -> None:
    """Configure logging for every command."""
    configure_logging(log_level.upper(), use_json=not plain_logs)


@app.command()
def run(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML configuration file"),
    output_format: str = typer.Option("json", "--format", help="Output format: json or influx"),
    input_name: str = typer.Option("ltsv_log", "--input", help="Registered input to run"),
    metrics_port: Optional[int] = typer.Option(None, "--metrics-port", help="Serve Prometheus metrics on this port"),
) -> None:
    """Tail the configured file and print points until interrupted."""
    settings = _load_settings(config)
    sink = _stream_sink(output_format)
    try:
        tailer = default_registry().create(input_name, settings)
    except KeyError as exc:
        typer.echo(str(exc.args[0]), err=True)
        raise typer.Exit(code=2)
    if metrics_port is not None:
        serve_metrics(metrics_port)
    try:
        tailer.start(sink)
    except OSError as exc:
        typer.echo(f"Cannot open {settings.path}: {exc}", err=True)
        raise typer.Exit(code=1)
    try:
        while tailer.running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping")
    finally:
        tailer.stop()


@app.command()
def parse(
    path: Path = typer.Argument(..., help="LTSV file to decode once"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML configuration file"),
    output_format: str = typer.Option("json", "--format", help="Output format: json or influx"),
) -> None:
    """Decode every complete line of a file and print the points."""
    settings = _load_settings(config).model_copy(
        update={
            "path": path.expanduser(),
            "follow": False,
            "must_exist": True,
            "watch": False,
            "seek_offset": 0,
            "seek_whence": 0,
        }
    )
    sink = _stream_sink(output_format)
    tailer = default_registry().create("ltsv_log", settings)
    try:
        tailer.start(sink)
    except OSError as exc:
        typer.echo(f"Cannot open {path}: {exc}", err=True)
        raise typer.Exit(code=1)
    try:
        tailer.join()
    finally:
        tailer.stop()


@app.command("sample-config")
def sample_config() -> None:
    """Print a documented sample configuration."""
    typer.echo(SAMPLE_CONFIG, nl=False)


if __name__ == "__main__":
    app()
