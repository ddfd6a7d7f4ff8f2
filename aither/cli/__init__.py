"""Aither command line interface."""

from aither.cli.main import app, main

__all__ = ["app", "main"]
