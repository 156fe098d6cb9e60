"""API routes for the match analysis pipeline."""

from analyst.api import routes, websocket

__all__ = ["routes", "websocket"]
