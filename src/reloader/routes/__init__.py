"""Routes of the reloader's own app."""
from reloader.routes import health, ws

__all__ = ["health", "ws"]
