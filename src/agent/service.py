"""ChatService -- one conversational turn end to end."""

from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from ..llm.fallback import FallbackGenerator
from ..memory.engine import MemoryEngine
from ..memory.models import EngineStats, KnowledgeItem, TeachResult
from .autosave import AutosaveService

logger = structlog.get_logger()

PERSONA = """\
You are Uni, a friendly AI that learns and remembers.

PERSONALITY: Warm, curious, conversational. You remember users and reference \
past chats naturally. When you don't know something, you invite teaching. \
Keep responses concise (2-3 sentences usually)."""

INSTRUCTIONS = """\
INSTRUCTIONS: Be natural and conversational. Use knowledge when relevant. \
If the user teaches something, warmly acknowledge it."""


@dataclass
class ChatResult:
    """Reply for one user turn."""

    response: str
    learned_facts: List[str] = field(default_factory=list)
    stats: Optional[EngineStats] = None
    source: str = "local"


class ChatService:
    """Runs the per-turn pipeline around a MemoryEngine."""

    def __init__(
        self,
        engine: MemoryEngine,
        generator: Optional[FallbackGenerator] = None,
        autosave: Optional[AutosaveService] = None,
        history_window: int = 8,
        persist_every_turns: int = 5,
    ) -> None:
        self.engine = engine
        self._generator = generator or FallbackGenerator()
        self._autosave = autosave
        self._history_window = history_window
        self._persist_every_turns = persist_every_turns

    def build_system_prompt(self, context_text: str) -> str:
        return f"{PERSONA}\n\n{context_text}\n\n{INSTRUCTIONS}"

    async def chat(self, message: str, user_id: str = "anonymous") -> ChatResult:
        """Handle one user message and return the reply.

        The user's turn is recorded before generation starts, so a failed
        generation never loses it.
        """
        text = (message or "").strip()
        if not text:
            raise ValueError("Message required")

        ingest = self.engine.ingest(user_id, text)
        memory = self.engine.build_context(user_id, text)
        system = self.build_system_prompt(self.engine.format_for_prompt(memory))
        history = self.engine.conversations.recent_history(
            user_id, self._history_window
        )

        result = await self._generator.generate(system, history, text, memory)
        if result.attempted:
            self.engine.record_generation(result.external_success)
        self.engine.record_response(user_id, result.content)

        stats = self.engine.get_stats()
        if stats.total_turns % self._persist_every_turns == 0:
            self._request_save()

        logger.info(
            "Turn complete",
            user_id=user_id,
            source=result.source,
            learned=len(ingest.learned_facts),
            duration_ms=result.duration_ms,
        )
        return ChatResult(
            response=result.content,
            learned_facts=[fact.key for fact in ingest.learned_facts],
            stats=stats,
            source=result.source,
        )

    def teach(
        self, concept: str, definition: str, user_id: str = "anonymous"
    ) -> TeachResult:
        result = self.engine.teach(concept, definition, user_id)
        if result.success:
            self._request_save()
        return result

    def list_knowledge(self, limit: int = 50) -> List[KnowledgeItem]:
        return self.engine.list_knowledge(limit)

    def get_stats(self) -> EngineStats:
        return self.engine.get_stats()

    def _request_save(self) -> None:
        if self._autosave is not None:
            self._autosave.request_save()
        else:
            self.engine.persist()
