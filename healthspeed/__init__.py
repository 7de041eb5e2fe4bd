"""Health & Speed Checker — desktop diagnostics engine."""

__version__ = "0.1.0"
