"""Web service launcher."""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from eventpipe.core.config import ConfigManager, PipelineConfig
from eventpipe.web.app import create_app


def serve(config: PipelineConfig | None = None, *, reload: bool = False) -> None:
    """Run the management API with uvicorn."""

    config = config or ConfigManager().get_config()
    if reload:
        uvicorn.run(
            "eventpipe.web.main:build_app",
            factory=True,
            host=config.api.host,
            port=config.api.port,
            reload=True,
        )
        return
    uvicorn.run(create_app(config=config), host=config.api.host, port=config.api.port, log_level="info")


def build_app() -> FastAPI:
    return create_app()


if __name__ == "__main__":
    serve()
