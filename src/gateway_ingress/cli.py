"""Gateway Ingress CLI Entry Point.

Operator commands for inspecting a deployment's configuration before the
service is started with it.
"""

from __future__ import annotations

import json
import sys
from datetime import timedelta
from enum import StrEnum
from pathlib import Path
from typing import Optional

import structlog
import typer

from gateway_ingress.core.config import DEFAULT_ENV_PREFIX, Configuration, load
from gateway_ingress.durations import format_duration
from gateway_ingress.core.exceptions import ConfigurationError
from gateway_ingress.rpc.backoff import BackoffState, advance, initial_state

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)
log = structlog.get_logger()

app = typer.Typer(
    name="gateway-ingress",
    help="Gateway ingress configuration tools",
    no_args_is_help=True,
)


class BackoffChoice(StrEnum):
    RPC = "rpc"
    INITIALIZATION = "initialization"


def _load_or_exit(path: Path, env_prefix: str) -> Configuration:
    try:
        return load(path, env_prefix=env_prefix)
    except ConfigurationError as e:
        log.error("config_invalid", error_type=type(e).__name__, **e.context)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command("check-config")
def check_config(
    path: Path = typer.Argument(..., help="Path to the settings file"),
    env_prefix: str = typer.Option(DEFAULT_ENV_PREFIX, "--env-prefix", help="Environment override prefix"),
) -> None:
    """Load the configuration and print it with secrets masked."""
    config = _load_or_exit(path, env_prefix)
    typer.echo(json.dumps(config.redacted(), indent=2))


@app.command("show-backoff")
def show_backoff(
    path: Path = typer.Argument(..., help="Path to the settings file"),
    which: BackoffChoice = typer.Option(BackoffChoice.RPC, "--which", help="Backoff section to show"),
    attempts: int = typer.Option(8, "--attempts", min=1, help="Number of intervals to print"),
    env_prefix: str = typer.Option(DEFAULT_ENV_PREFIX, "--env-prefix", help="Environment override prefix"),
) -> None:
    """Print the retry schedule a backoff section produces.

    Intervals are cumulated as if each wait ran to completion, so the list
    stops where the time budget would run out.
    """
    config = _load_or_exit(path, env_prefix)
    spec = config.rpc_backoff if which is BackoffChoice.RPC else config.initialization_backoff

    state: BackoffState = initial_state(spec, 0.0)
    elapsed = timedelta(0)
    for attempt in range(1, attempts + 1):
        interval, state = advance(spec, state, elapsed.total_seconds(), rng=lambda: 0.5)
        if interval is None:
            typer.echo(f"{attempt}: give up (elapsed {format_duration(elapsed)})")
            return
        typer.echo(f"{attempt}: wait {format_duration(interval)}")
        elapsed += interval


def main(argv: Optional[list[str]] = None) -> None:
    app(args=argv)


if __name__ == "__main__":
    main()
