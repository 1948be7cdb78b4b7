# src/clusterize/cli/app.py
from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import List, Optional

import typer

from clusterize.config.loader import load_config, load_config_from_env
from clusterize.config.models import ClusterizeConfig
from clusterize.handler import handle as handle_invocation
from clusterize.logging.log import init_logging
from clusterize.observers.jsonfile import JsonFileObserver
from clusterize.observers.logger import LoggerObserver
from clusterize.service import ClusterizeService
from clusterize.state.factory import build_join_store
from clusterize.state.store import StateNotFound, StateStoreError


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Storage cluster bootstrap: join barrier and clusterization scripts")

ConfigOpt = typer.Option(
    None, "--config", "-c",
    help="cluster.yaml; without it the function-app environment variables are used",
)
VerboseOpt = typer.Option(False, "--verbose", "-v", help="DEBUG output on the console")
EventsOpt = typer.Option(None, "--events-file", help="Append lifecycle events as JSON lines")


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _load(config: Optional[Path]) -> ClusterizeConfig:
    try:
        return load_config(config) if config else load_config_from_env()
    except (OSError, ValueError) as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=2)


def _service(cfg: ClusterizeConfig, verbose: bool, events_file: Optional[Path]) -> ClusterizeService:
    logger, run_id, log_path = init_logging(verbose=verbose)
    observers: List = [LoggerObserver(logger)]
    if events_file:
        observers.append(JsonFileObserver(events_file))
    return ClusterizeService.from_config(cfg, observers=observers)


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command("init-state")
def init_state(config: Optional[Path] = ConfigOpt, verbose: bool = VerboseOpt):
    """Create the empty join record for the cluster (safe to re-run)."""
    cfg = _load(config)
    init_logging(verbose=verbose)
    try:
        state = build_join_store(cfg.state).create(cfg.state_key(), cfg.cluster.hosts_num)
    except StateStoreError as e:
        typer.echo(f"Failed to create join state: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(state.model_dump_json(indent=2))


@app.command("show-state")
def show_state(config: Optional[Path] = ConfigOpt):
    """Print the join record."""
    cfg = _load(config)
    try:
        state = build_join_store(cfg.state).read(cfg.state_key())
    except StateNotFound:
        typer.echo(f"No join state {cfg.state_key()}; run init-state first", err=True)
        raise typer.Exit(code=1)
    except StateStoreError as e:
        typer.echo(f"Failed to read join state: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(state.model_dump_json(indent=2))


@app.command()
def register(
    vm: str = typer.Argument(..., help="<instance-name>:<hostname> of the registering node"),
    config: Optional[Path] = ConfigOpt,
    verbose: bool = VerboseOpt,
    events_file: Optional[Path] = EventsOpt,
):
    """Register one node and print the script it has to run."""
    cfg = _load(config)
    typer.echo(_service(cfg, verbose, events_file).clusterize(vm), nl=False)


@app.command()
def handle(
    input_file: Optional[Path] = typer.Option(None, "--input", "-i", help="Invocation JSON; stdin when omitted"),
    config: Optional[Path] = ConfigOpt,
    verbose: bool = VerboseOpt,
    events_file: Optional[Path] = EventsOpt,
):
    """Answer one function-app invocation envelope (JSON in, JSON out)."""
    cfg = _load(config)
    raw = input_file.read_text() if input_file else sys.stdin.read()
    try:
        request = json.loads(raw)
    except ValueError:
        request = {}
    typer.echo(json.dumps(handle_invocation(request, _service(cfg, verbose, events_file))))


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: int = typer.Option(
        int(os.environ.get("FUNCTIONS_CUSTOMHANDLER_PORT", "8080")), "--port",
        help="Defaults to FUNCTIONS_CUSTOMHANDLER_PORT",
    ),
    config: Optional[Path] = ConfigOpt,
    verbose: bool = VerboseOpt,
    events_file: Optional[Path] = EventsOpt,
):
    """Run the HTTP custom handler."""
    import uvicorn
    from clusterize.server import create_app

    cfg = _load(config)
    uvicorn.run(create_app(_service(cfg, verbose, events_file)), host=host, port=port)


if __name__ == "__main__":
    app()
