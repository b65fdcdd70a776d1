"""Bounded external generation with a local heuristic fallback."""

import asyncio
import random
import re
import time
from typing import Callable, Optional, Sequence

import structlog

from ..memory.models import MemoryContext, Message
from .interface import GenerationResult, TextGenerator

logger = structlog.get_logger()

VariantSelector = Callable[[Sequence[str]], str]


def random_variant(options: Sequence[str]) -> str:
    """Uniform random pick; the default selector."""
    return random.choice(options)


def first_variant(options: Sequence[str]) -> str:
    return options[0]


GREETING = re.compile(r"^(hi|hello|hey|yo|sup)[\s!.,]*$", re.I)
NAME_INTRO = re.compile(r"(?:my name is|i'm|i am|call me)\s+(\w+)", re.I)
QUESTION_START = re.compile(r"^(what|how|why|when|where|who|can|do|is|are)\b", re.I)

GREET_KNOWN = (
    "Hey {name}! We've chatted {count} times now. What's up?",
    "Good to see you again, {name}! That's {count} messages between us so far.",
)
GREET_UNKNOWN = (
    "Hello! I'm Uni. I learn and remember from our conversations. "
    "What's your name?",
    "Hi there! I'm Uni, and I remember what people teach me. "
    "What should I call you?",
)
NAME_KNOWN = (
    "Your name is {name}! We've chatted {count} times. I remember you.",
)
NAME_UNKNOWN = (
    "You haven't told me your name yet! What should I call you?",
)
NAME_ACK = (
    "Nice to meet you, {name}! I'll remember that. "
    "What would you like to talk about?",
    "Great to meet you, {name}! I'll keep that in mind.",
)
RELATED_SUFFIX = " I also know about related topics if you're curious."
UNKNOWN_QUESTION = (
    "Good question! I don't have that in my knowledge base yet. Want to teach "
    'me? Just say something like "X is Y" and I\'ll remember it!',
    "I don't know that one yet. If you explain it as \"X is Y\", "
    "I'll remember it for next time.",
)
DEFAULT_REPLY = (
    "Interesting! Tell me more, or teach me something by explaining a concept.",
    "Tell me more! You can also teach me a concept and I'll remember it.",
)


class LocalResponder:
    """Rule-based replies built from memory context alone."""

    def __init__(self, selector: Optional[VariantSelector] = None) -> None:
        self._select = selector or random_variant

    def respond(self, message: str, memory: MemoryContext) -> str:
        lower = message.lower().strip()
        name = memory.user_name
        count = memory.message_count

        if GREETING.match(lower):
            if name:
                return self._select(GREET_KNOWN).format(name=name, count=count)
            return self._select(GREET_UNKNOWN)

        if "my name" in lower and ("what" in lower or "know" in lower):
            if name:
                return self._select(NAME_KNOWN).format(name=name, count=count)
            return self._select(NAME_UNKNOWN)

        # Only acknowledge words the extractor accepted as this user's name
        intro = NAME_INTRO.search(message)
        if intro and name and intro.group(1).lower() == name.lower():
            return self._select(NAME_ACK).format(name=name)

        if memory.knowledge:
            entries = list(memory.knowledge.values())
            reply = entries[0].strip()
            if len(entries) > 1:
                reply += RELATED_SUFFIX
            return reply

        if QUESTION_START.match(lower):
            return self._select(UNKNOWN_QUESTION)

        return self._select(DEFAULT_REPLY)


class FallbackGenerator:
    """At most one external call per turn, local reply on any failure."""

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        responder: Optional[LocalResponder] = None,
        timeout: float = 30.0,
        max_tokens: int = 500,
    ) -> None:
        self._generator = generator
        self._responder = responder or LocalResponder()
        self._timeout = timeout
        self._max_tokens = max_tokens

    @property
    def external_enabled(self) -> bool:
        return self._generator is not None

    async def generate(
        self,
        system: str,
        history: Sequence[Message],
        message: str,
        memory: MemoryContext,
    ) -> GenerationResult:
        """Produce a reply; never raises."""
        if self._generator is None:
            return GenerationResult(
                content=self._responder.respond(message, memory),
                source="local",
                attempted=False,
            )

        messages = [{"role": m.role, "content": m.content} for m in history]
        start = time.monotonic()
        try:
            content = await asyncio.wait_for(
                self._generator.generate(system, messages, self._max_tokens),
                timeout=self._timeout,
            )
            return GenerationResult(
                content=content,
                source="external",
                attempted=True,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        except asyncio.TimeoutError:
            error = f"timed out after {self._timeout}s"
            logger.warning("Generation timed out", timeout=self._timeout)
        except Exception as exc:
            error = str(exc)
            logger.warning("Generation failed", error=error)

        return GenerationResult(
            content=self._responder.respond(message, memory),
            source="local",
            attempted=True,
            duration_ms=int((time.monotonic() - start) * 1000),
            error_message=error,
        )
