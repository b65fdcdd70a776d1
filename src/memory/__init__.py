"""Hybrid knowledge memory: fact graph, similarity index, conversations."""

from .conversation import ConversationStore
from .engine import MemoryEngine
from .exceptions import MemoryEngineError, SnapshotError
from .extractor import FactExtractor
from .graph import FactGraph
from .models import EngineStats, Fact, MemoryContext, Relationship, TeachResult
from .seed import load_seed_file
from .snapshot import SnapshotStore
from .vectors import SimilarityIndex

__all__ = [
    "ConversationStore",
    "EngineStats",
    "Fact",
    "FactExtractor",
    "FactGraph",
    "MemoryContext",
    "MemoryEngine",
    "MemoryEngineError",
    "Relationship",
    "SimilarityIndex",
    "SnapshotError",
    "SnapshotStore",
    "TeachResult",
    "load_seed_file",
]
