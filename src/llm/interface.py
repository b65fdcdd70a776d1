"""Text generation interface and shared types.

The memory engine treats generation as a black box: a system prompt and
recent turns go in, text comes out, and any call may fail.
"""

from dataclasses import dataclass
from typing import Optional, Protocol


class GenerationError(Exception):
    """External generation produced no usable text."""


@dataclass
class GenerationResult:
    """Reply text plus how it was produced."""

    content: str
    source: str  # "external" | "local"
    attempted: bool  # an external call was made this turn
    duration_ms: int = 0
    error_message: Optional[str] = None

    @property
    def external_success(self) -> bool:
        return self.attempted and self.source == "external"


class TextGenerator(Protocol):
    """Anything that can complete a chat transcript."""

    async def generate(
        self,
        system: str,
        messages: list[dict[str, str]],
        max_tokens: int = 500,
    ) -> str:
        """Return completion text for `messages` under `system`.

        Raises on transport errors, non-success statuses and timeouts.
        """
        ...
