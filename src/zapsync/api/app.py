"""ASGI entry point."""

from .factory import create_app

app = create_app()
