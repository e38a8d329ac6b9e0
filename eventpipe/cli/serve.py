"""The ``serve`` command: run the management API."""

from __future__ import annotations

import typer

from eventpipe.core.config import PipelineConfig
from eventpipe.web.main import serve

from .utils import load_config


def register(app: typer.Typer) -> None:
    app.command("serve")(serve_command)


def run_server(config: PipelineConfig, *, reload: bool = False) -> None:
    """Hook used by :func:`serve_command` to launch uvicorn."""

    serve(config, reload=reload)


def serve_command(
    ctx: typer.Context,
    host: str | None = typer.Option(None, "--host", help="Bind address; defaults to the configured host."),
    port: int | None = typer.Option(None, "--port", help="Bind port; defaults to the configured port."),
    auto_start: bool = typer.Option(
        True,
        "--auto-start/--no-auto-start",
        help="Start the pipeline when the server starts.",
    ),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
) -> None:
    """Serve the pipeline management API."""

    config = load_config(ctx)
    api = config.api.model_copy(
        update={
            "host": host or config.api.host,
            "port": port or config.api.port,
            "auto_start": auto_start,
        }
    )
    run_server(config.model_copy(update={"api": api}), reload=reload)


__all__ = ["register", "run_server"]
