"""Conversational agent built on the memory engine."""

from .autosave import AutosaveService
from .service import ChatResult, ChatService

__all__ = ["AutosaveService", "ChatResult", "ChatService"]
