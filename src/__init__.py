"""Uni: a conversational agent with a persistent hybrid memory."""

__version__ = "0.2.0"
