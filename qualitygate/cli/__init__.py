"""qualitygate CLI — Typer-based command-line interface.

Provides the ``qualitygate`` command with subcommands for running the gate,
listing stages, auditing suppressions, and classifying captured logs.

All output uses Rich for formatted terminal display.
"""
