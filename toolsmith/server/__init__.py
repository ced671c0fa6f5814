"""HTTP server exposing tools over FastAPI."""

from toolsmith.server.app import RequestIdMiddleware, ToolSet, create_app, serve

__all__ = ["RequestIdMiddleware", "ToolSet", "create_app", "serve"]
