"""Clocked: a local cache and monthly roll-ups of Claude Code session activity."""

__version__ = "0.1.0"
