"""Memory engine: ingest utterances, recall context, persist state."""

from typing import Any, Dict, List, Optional

import structlog

from .conversation import DEFAULT_HISTORY_CAP, ConversationStore
from .exceptions import SnapshotError
from .extractor import FactExtractor
from .graph import FactGraph
from .models import (
    ConceptCandidate,
    EngineCounters,
    EngineStats,
    Extraction,
    Fact,
    IngestResult,
    KnowledgeItem,
    MemoryContext,
    Snapshot,
    TeachResult,
    epoch_millis,
)
from .seed import SeedData
from .snapshot import SnapshotStore
from .vectors import DEFAULT_DIMENSION, SimilarityIndex

logger = structlog.get_logger()

EXTRACTED_CONFIDENCE = 0.85
TAUGHT_CONFIDENCE = 0.95
BASE_CONFIDENCE = 1.0
MAX_CONTEXT_TOPICS = 5
KNOWLEDGE_PREVIEW_CHARS = 300


class MemoryEngine:
    """Owns the fact graph, similarity index and conversation store.

    All methods are synchronous and run to completion, so callers on a
    single event loop never observe a half-applied update.
    """

    def __init__(
        self,
        vector_dimension: int = DEFAULT_DIMENSION,
        history_cap: int = DEFAULT_HISTORY_CAP,
        search_top_k: int = 5,
        similarity_threshold: float = 0.2,
        teach_min_concept_length: int = 2,
        teach_min_definition_length: int = 5,
        snapshot_store: Optional[SnapshotStore] = None,
    ) -> None:
        self.search_top_k = search_top_k
        self.similarity_threshold = similarity_threshold
        self.teach_min_concept_length = teach_min_concept_length
        self.teach_min_definition_length = teach_min_definition_length
        self._store = snapshot_store

        self.graph = FactGraph()
        self.index = SimilarityIndex(vector_dimension)
        self.conversations = ConversationStore(history_cap)
        self.extractor = FactExtractor(known_concepts=lambda: self.graph.keys())

        self.birth_time = epoch_millis()
        self._counters = EngineCounters()
        self._users: Dict[str, None] = {}

    @classmethod
    def from_settings(cls, settings: Any) -> "MemoryEngine":
        """Build an engine from a Settings object."""
        return cls(
            vector_dimension=settings.vector_dimension,
            history_cap=settings.history_cap,
            search_top_k=settings.search_top_k,
            similarity_threshold=settings.similarity_threshold,
            teach_min_concept_length=settings.teach_min_concept_length,
            teach_min_definition_length=settings.teach_min_definition_length,
            snapshot_store=SnapshotStore(settings.snapshot_path),
        )

    # --- Seeding ---

    def load_seed(self, seed: SeedData) -> int:
        """Load curated facts; returns how many were added."""
        count = 0
        for category, concepts in seed.items():
            for name, definition in concepts.items():
                self.graph.upsert(
                    name,
                    definition,
                    category=category,
                    source="base",
                    confidence=BASE_CONFIDENCE,
                )
                self.index.insert(
                    f"base_{name}",
                    f"{name}: {definition}",
                    {"type": "base", "category": category, "concept": name},
                )
                count += 1
        logger.info("Seed knowledge loaded", concepts=count)
        return count

    # --- Per-turn pipeline ---

    def ingest(self, user_id: str, utterance: str) -> IngestResult:
        """Record a user utterance and learn whatever it teaches."""
        self._counters.total_turns += 1
        self._users[user_id] = None

        self.conversations.append_message(user_id, "user", utterance)

        try:
            extraction = self.extractor.extract(utterance)
        except Exception as exc:
            logger.warning("Extraction failed", user_id=user_id, error=str(exc))
            extraction = Extraction()
        if not extraction.is_empty:
            logger.debug(
                "Extracted",
                user_id=user_id,
                definition=bool(extraction.definition),
                identity=sorted(extraction.identity),
                topics=extraction.topics,
            )

        self._apply_identity(user_id, extraction)
        for topic in extraction.topics:
            self.conversations.add_topic(user_id, topic)

        learned: List[Fact] = []
        if extraction.definition:
            learned.append(self._learn(extraction.definition, user_id))

        return IngestResult(
            learned_facts=learned,
            stats=self.get_stats(),
            extraction=extraction,
        )

    def _apply_identity(self, user_id: str, extraction: Extraction) -> None:
        identity = extraction.identity
        if "name" in identity:
            self.conversations.set_name(user_id, identity["name"])
        for key in ("occupation", "location"):
            if key in identity:
                self.conversations.record_fact(user_id, key, identity[key])

    def _learn(self, candidate: ConceptCandidate, user_id: str) -> Fact:
        fact = self.graph.upsert(
            candidate.concept,
            candidate.definition,
            source=f"user:{user_id}",
            confidence=EXTRACTED_CONFIDENCE,
        )
        self.index.insert(
            f"concept_{fact.key}_{epoch_millis()}",
            f"{fact.key}: {candidate.definition}",
            {"type": "concept", "concept": fact.key},
        )
        self._counters.learning_events += 1
        logger.info("Learned concept", concept=fact.key, user_id=user_id)
        return fact

    def record_response(self, user_id: str, text: str) -> None:
        self.conversations.append_message(user_id, "assistant", text)

    def record_generation(self, success: bool) -> None:
        self._counters.external_calls += 1
        if success:
            self._counters.external_successes += 1

    # --- Recall ---

    def build_context(self, user_id: str, query: str) -> MemoryContext:
        """Collect what the engine knows that is relevant to `query`.

        Similarity hits above the threshold come first; keyword hits are
        only added for concepts not already present.
        """
        session = self.conversations.get_or_create(user_id)

        knowledge: Dict[str, str] = {}
        try:
            for hit in self.index.search(query, self.search_top_k):
                if hit.similarity <= self.similarity_threshold:
                    continue
                key = str(hit.metadata.get("concept") or hit.text.split(":")[0])
                knowledge.setdefault(key.strip().lower(), hit.text)

            for scored in self.graph.search(query, self.search_top_k):
                fact = scored.fact
                if fact.key not in knowledge:
                    knowledge[fact.key] = f"{fact.name}: {fact.definition}"
        except Exception as exc:
            logger.warning("Knowledge lookup failed", user_id=user_id, error=str(exc))

        return MemoryContext(
            user_name=session.name,
            message_count=session.message_count,
            topics=list(session.topics)[:MAX_CONTEXT_TOPICS],
            user_facts={
                key: entry.value
                for key, entry in session.facts.items()
                if key != "name"
            },
            knowledge=knowledge,
            total_concepts=len(self.graph),
        )

    def format_for_prompt(self, memory: MemoryContext) -> str:
        """Format memory context as text for system prompt injection."""
        lines = ["USER INFO:"]
        if memory.user_name:
            lines.append(f"- Name: {memory.user_name}")
        lines.append(f"- Messages exchanged: {memory.message_count}")
        if memory.topics:
            lines.append(f"- Topics discussed: {', '.join(memory.topics)}")
        for key, value in memory.user_facts.items():
            lines.append(f"- {key}: {value}")

        parts = ["\n".join(lines)]
        if memory.knowledge:
            knowledge_text = "\n".join(f"- {t}" for t in memory.knowledge.values())
            parts.append(f"RELEVANT KNOWLEDGE:\n{knowledge_text}")
        parts.append(f"Total knowledge: {memory.total_concepts} concepts.")

        return "\n\n".join(parts)

    # --- Direct teaching ---

    def teach(
        self, concept: str, definition: str, user_id: str = "anonymous"
    ) -> TeachResult:
        """Store a concept directly, skipping extraction heuristics."""
        key = (concept or "").strip().lower()
        text = (definition or "").strip()
        if len(key) < self.teach_min_concept_length:
            return TeachResult(success=False, error="Concept too short")
        if len(text) < self.teach_min_definition_length:
            return TeachResult(success=False, error="Definition too short")

        fact = self.graph.upsert(
            key, text, source=f"taught:{user_id}", confidence=TAUGHT_CONFIDENCE
        )
        self.index.insert(
            f"taught_{key}_{epoch_millis()}",
            f"{key}: {text}",
            {"type": "taught", "concept": key},
        )
        self._counters.learning_events += 1
        logger.info("Taught concept", concept=fact.key, user_id=user_id)

        return TeachResult(success=True, concept=key, total_concepts=len(self.graph))

    # --- Reporting ---

    def list_knowledge(self, limit: int = 50) -> List[KnowledgeItem]:
        """Known concepts, most frequently seen first."""
        items = [
            KnowledgeItem(
                concept=fact.key,
                definition=fact.definition[:KNOWLEDGE_PREVIEW_CHARS],
                category=fact.category,
                occurrences=fact.occurrences,
                source=fact.source,
                related_count=len(self.graph.find_related(fact.key, 3)),
            )
            for fact in self.graph.facts()
        ]
        items.sort(key=lambda item: item.occurrences, reverse=True)
        return items[: max(limit, 0)]

    def get_stats(self) -> EngineStats:
        return EngineStats(
            total_turns=self._counters.total_turns,
            unique_users=len(self._users),
            fact_count=len(self.graph),
            learning_events=self._counters.learning_events,
            vector_count=len(self.index),
            external_calls=self._counters.external_calls,
            external_successes=self._counters.external_successes,
        )

    # --- Persistence ---

    def snapshot(self) -> Snapshot:
        """Complete image of the current state."""
        counters = self._counters.model_copy()
        counters.unique_users = list(self._users)
        return Snapshot(
            birth_time=self.birth_time,
            facts=[f.model_copy() for f in self.graph.facts()],
            relationships=[r.model_copy() for r in self.graph.relationships()],
            vectors=[v.model_copy() for v in self.index.entries()],
            sessions=[s.to_record() for s in self.conversations.sessions()],
            counters=counters,
        )

    def apply_snapshot(self, snapshot: Snapshot) -> None:
        """Replace all state with `snapshot`.

        New stores are built first and swapped in together, so a failure
        part way leaves the current state untouched.
        """
        graph = FactGraph()
        graph.load(snapshot.facts, snapshot.relationships)
        index = SimilarityIndex(self.index.dimension)
        index.load(snapshot.vectors)
        conversations = ConversationStore(self.conversations.history_cap)
        conversations.load(snapshot.sessions)

        self.graph = graph
        self.index = index
        self.conversations = conversations
        self.birth_time = snapshot.birth_time
        self._counters = snapshot.counters.model_copy()
        self._users = dict.fromkeys(snapshot.counters.unique_users)

    def persist(self) -> bool:
        """Write the snapshot; failures are logged, never raised."""
        if self._store is None:
            logger.debug("No snapshot store configured, skipping persist")
            return False
        try:
            self._store.save(self.snapshot())
        except SnapshotError as exc:
            logger.error("Persist failed", error=str(exc), path=exc.path)
            return False
        except Exception as exc:
            logger.error("Persist failed", error=str(exc))
            return False

        logger.info(
            "Memory saved",
            facts=len(self.graph),
            vectors=len(self.index),
            users=len(self.conversations),
        )
        return True

    def restore(self) -> bool:
        """Load the stored snapshot, keeping current state on failure."""
        if self._store is None:
            return False
        if not self._store.exists():
            logger.info("Fresh start", reason="no snapshot", path=str(self._store.path))
            return False
        try:
            snapshot = self._store.load()
            self.apply_snapshot(snapshot)
        except SnapshotError as exc:
            logger.info("Fresh start", reason=str(exc), path=exc.path)
            return False
        except Exception as exc:
            logger.warning("Snapshot restore failed, fresh start", error=str(exc))
            return False

        logger.info(
            "Memory restored",
            facts=len(self.graph),
            relationships=len(self.graph.relationships()),
            vectors=len(self.index),
            users=len(self.conversations),
        )
        return True
