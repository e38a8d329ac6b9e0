"""Main entry point for the eventpipe command line interface."""

from __future__ import annotations

from pathlib import Path

import typer

from eventpipe.core.logging import configure_logging

from .formatters import create_formatter
from .serve import register as register_serve_command
from .warehouse import register as register_warehouse_commands


def create_app() -> typer.Typer:
    """Create a Typer application instance for eventpipe."""

    app = typer.Typer(add_completion=False, help="Event analytics pipeline command line interface")

    @app.callback()
    def main(
        ctx: typer.Context,
        format: str = typer.Option(
            "table",
            "--format",
            "-f",
            help="Output format (table or jsonl).",
            show_default=True,
        ),
        output: Path | None = typer.Option(
            None,
            "--output",
            "-o",
            help="Write output to a file instead of stdout.",
        ),
        config: Path | None = typer.Option(
            None,
            "--config",
            "-c",
            help="TOML configuration file (defaults to ./eventpipe.toml).",
        ),
        log_level: str = typer.Option(
            "WARNING",
            "--log-level",
            help="Logging level for stderr output.",
            show_default=True,
        ),
        no_color: bool = typer.Option(
            False,
            "--no-color",
            help="Disable colorized output for table format.",
        ),
    ) -> None:
        ctx.ensure_object(dict)
        normalized_format = format.strip().lower()
        try:
            create_formatter(normalized_format, no_color=no_color)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--format") from exc

        ctx.obj.update(
            {
                "format": normalized_format,
                "output_path": output,
                "config_path": config,
                "log_level": log_level.upper(),
                "no_color": no_color,
            }
        )
        configure_logging(log_level.upper())

    register_serve_command(app)
    register_warehouse_commands(app)
    return app


app = create_app()
