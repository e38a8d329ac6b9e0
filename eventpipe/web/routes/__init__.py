"""API routes."""

from eventpipe.web.routes.pipeline_routes import router as pipeline_router

__all__ = ["pipeline_router"]
