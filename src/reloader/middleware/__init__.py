"""Middleware for host applications."""
from reloader.middleware.inject import LiveReloadMiddleware

__all__ = ["LiveReloadMiddleware"]
