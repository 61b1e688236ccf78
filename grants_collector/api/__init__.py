"""HTTP surface for triggering collection and reading its status."""

from .routes import create_app, router

__all__ = ["create_app", "router"]
