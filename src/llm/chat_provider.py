"""OpenAI-compatible chat provider for GPT, DeepSeek and other vendors.

Uses the openai SDK; any vendor exposing the chat completions API works
by pointing `base_url` at it.
"""

import time
from dataclasses import dataclass
from typing import Optional

import structlog
from openai import AsyncOpenAI

from .interface import GenerationError

logger = structlog.get_logger()


@dataclass
class ChatResponse:
    """Response from a chat completion."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int
    duration_ms: int


class ChatProvider:
    """OpenAI-compatible chat provider.

    Retries are disabled on the client: a failed turn falls back to the
    local responder instead of trying again.
    """

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        self.model = model

    @classmethod
    def from_settings(cls, settings: object) -> Optional["ChatProvider"]:
        """Build a provider, or None when no API key is configured."""
        api_key = getattr(settings, "openai_api_key_str", None)
        if not api_key:
            logger.warning("No API key configured, using local responder only")
            return None
        return cls(
            model=getattr(settings, "chat_model"),
            api_key=api_key,
            base_url=getattr(settings, "chat_base_url", None),
            timeout=getattr(settings, "generation_timeout", None),
        )

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: Optional[str] = None,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> ChatResponse:
        """Send chat completion request."""
        used_model = model or self.model
        start = time.monotonic()

        response = await self.client.chat.completions.create(
            model=used_model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )

        duration_ms = int((time.monotonic() - start) * 1000)
        choice = response.choices[0]
        usage = response.usage

        return ChatResponse(
            content=choice.message.content or "",
            model=response.model or used_model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            duration_ms=duration_ms,
        )

    async def generate(
        self,
        system: str,
        messages: list[dict[str, str]],
        max_tokens: int = 500,
    ) -> str:
        """Complete a transcript under a system prompt."""
        response = await self.chat(
            messages=[{"role": "system", "content": system}, *messages],
            max_tokens=max_tokens,
        )
        content = response.content.strip()
        if not content:
            raise GenerationError(f"Empty completion from {response.model}")
        logger.debug(
            "Completion received",
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            duration_ms=response.duration_ms,
        )
        return content
