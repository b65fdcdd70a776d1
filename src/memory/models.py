"""Memory data models.

Persisted records are pydantic models so the snapshot has a validated
schema. Per-call results are plain dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

SNAPSHOT_VERSION = 1


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def epoch_millis(moment: Optional[datetime] = None) -> int:
    """Milliseconds since the epoch for `moment` (default: now)."""
    return int((moment or utcnow()).timestamp() * 1000)


# === Persisted records ===


class Fact(BaseModel):
    """A named concept with a definition and provenance."""

    name: str
    definition: str
    category: str = "general"
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    occurrences: int = Field(1, ge=1)
    source: str = "unknown"  # base, user:<id>, taught:<id>
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> str:
        return self.name.lower()


class Relationship(BaseModel):
    """A directed, typed, weighted edge between two facts."""

    source: str
    target: str
    type: str = "mentions"
    strength: float = Field(0.5, ge=0.0, le=1.0)

    @property
    def key(self) -> str:
        return relationship_key(self.source, self.target)


def relationship_key(source: str, target: str) -> str:
    """Composite key for an edge, case-folded on both ends."""
    return f"{source.lower()}->{target.lower()}"


class VectorEntry(BaseModel):
    """A stored text projection."""

    id: str
    vector: List[float]
    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class Message(BaseModel):
    """One line of conversation history."""

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class UserFactEntry(BaseModel):
    """A value learned about a user, e.g. occupation."""

    value: str
    learned_at: datetime = Field(default_factory=utcnow)


class SessionRecord(BaseModel):
    """Serialized form of a user session.

    Topics and facts are flattened to ordered lists so insertion order
    survives the round trip.
    """

    user_id: str
    name: Optional[str] = None
    first_seen: datetime
    last_seen: datetime
    message_count: int = 0
    history: List[Message] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)
    facts: List[Tuple[str, UserFactEntry]] = Field(default_factory=list)


class EngineCounters(BaseModel):
    """Aggregate counters carried across restarts."""

    total_turns: int = 0
    unique_users: List[str] = Field(default_factory=list)
    learning_events: int = 0
    external_calls: int = 0
    external_successes: int = 0


class Snapshot(BaseModel):
    """Complete persisted image of the memory engine."""

    version: Literal[1] = SNAPSHOT_VERSION
    birth_time: int  # epoch millis
    facts: List[Fact] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)
    vectors: List[VectorEntry] = Field(default_factory=list)
    sessions: List[SessionRecord] = Field(default_factory=list)
    counters: EngineCounters = Field(default_factory=EngineCounters)


# === Live state ===


@dataclass
class UserSession:
    """Per-user conversational state."""

    user_id: str
    first_seen: datetime
    last_seen: datetime
    name: Optional[str] = None
    message_count: int = 0
    history: List[Message] = field(default_factory=list)
    # dict keys keep insertion order, values unused
    topics: Dict[str, None] = field(default_factory=dict)
    facts: Dict[str, UserFactEntry] = field(default_factory=dict)

    def to_record(self) -> SessionRecord:
        return SessionRecord(
            user_id=self.user_id,
            name=self.name,
            first_seen=self.first_seen,
            last_seen=self.last_seen,
            message_count=self.message_count,
            history=[m.model_copy() for m in self.history],
            topics=list(self.topics),
            facts=[(k, v.model_copy()) for k, v in self.facts.items()],
        )

    @classmethod
    def from_record(cls, record: SessionRecord) -> "UserSession":
        return cls(
            user_id=record.user_id,
            name=record.name,
            first_seen=record.first_seen,
            last_seen=record.last_seen,
            message_count=record.message_count,
            history=list(record.history),
            topics=dict.fromkeys(record.topics),
            facts=dict(record.facts),
        )


# === Call results ===


@dataclass
class ConceptCandidate:
    """A concept/definition pair found in an utterance."""

    concept: str
    definition: str


@dataclass
class Extraction:
    """Everything the extractor found in one utterance."""

    definition: Optional[ConceptCandidate] = None
    identity: Dict[str, str] = field(default_factory=dict)
    topics: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.definition is None and not self.identity and not self.topics


@dataclass
class SearchHit:
    """A similarity index match."""

    id: str
    text: str
    metadata: Dict[str, Any]
    similarity: float


@dataclass
class ScoredFact:
    """A fact graph keyword match."""

    fact: Fact
    score: int


@dataclass
class RelatedFact:
    """A fact reached through a relationship edge."""

    fact: Fact
    relation: str
    strength: float


@dataclass
class EngineStats:
    """Point-in-time statistics for the engine."""

    total_turns: int
    unique_users: int
    fact_count: int
    learning_events: int
    vector_count: int
    external_calls: int
    external_successes: int


@dataclass
class IngestResult:
    """Outcome of ingesting one user utterance."""

    learned_facts: List[Fact]
    stats: EngineStats
    extraction: Extraction

    @property
    def learned(self) -> bool:
        return bool(self.learned_facts)


@dataclass
class TeachResult:
    """Outcome of a direct teach call."""

    success: bool
    concept: Optional[str] = None
    total_concepts: Optional[int] = None
    error: Optional[str] = None


@dataclass
class KnowledgeItem:
    """Listing row for the knowledge overview."""

    concept: str
    definition: str
    category: str
    occurrences: int
    source: str
    related_count: int


@dataclass
class MemoryContext:
    """Aggregated memory context for prompt injection."""

    user_name: Optional[str] = None
    message_count: int = 0
    topics: List[str] = field(default_factory=list)
    user_facts: Dict[str, str] = field(default_factory=dict)
    knowledge: Dict[str, str] = field(default_factory=dict)
    total_concepts: int = 0
