"""Management HTTP API."""

from eventpipe.web.app import create_app

__all__ = ["create_app"]
