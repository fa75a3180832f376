"""JSON HTTP API for the essay marking tool."""

from .app import create_app

__all__ = ['create_app']
