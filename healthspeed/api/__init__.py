"""Local HTTP API consumed by the desktop UI."""

from .server import create_app
