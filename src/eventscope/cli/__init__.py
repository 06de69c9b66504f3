"""Command line interface for eventscope."""

from __future__ import annotations

__all__ = ["cli", "main"]

from eventscope.cli.main import cli, main
