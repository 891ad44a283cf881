"""REPL Sessions - live interpreter sessions with structured evaluation results."""

__version__ = "0.1.0"
