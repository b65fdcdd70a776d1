"""Text generation: external chat provider with local fallback."""

from .chat_provider import ChatProvider, ChatResponse
from .fallback import FallbackGenerator, LocalResponder, random_variant
from .interface import GenerationError, GenerationResult, TextGenerator

__all__ = [
    "ChatProvider",
    "ChatResponse",
    "FallbackGenerator",
    "GenerationError",
    "GenerationResult",
    "LocalResponder",
    "TextGenerator",
    "random_variant",
]
