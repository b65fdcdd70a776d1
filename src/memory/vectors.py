"""Deterministic text projection and nearest-neighbour search.

Vectors are a repeatable hash-based projection, not a learned embedding:
similar texts score high only when they share tokens.
"""

import math
import re
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import structlog

from .models import SearchHit, VectorEntry, utcnow

logger = structlog.get_logger()

DEFAULT_DIMENSION = 384

_NON_WORD = re.compile(r"[^A-Za-z0-9_\s]")


def tokenize(text: str) -> List[str]:
    """Lowercase words longer than two characters, punctuation stripped."""
    cleaned = _NON_WORD.sub(" ", text.lower())
    return [w for w in cleaned.split() if len(w) > 2]


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def hash_token(token: str) -> int:
    """djb2 string hash: seed 5381, ``h * 33 + code``, absolute value.

    The shift is truncated to a signed 32-bit integer before the add, so
    long tokens stay in a bounded range and hashes are stable across runs.
    """
    h = 5381
    for ch in token:
        h = _to_int32(_to_int32(h) << 5) + h + ord(ch)
    return abs(h)


def project(text: str, dimension: int = DEFAULT_DIMENSION) -> np.ndarray:
    """Project text onto a fixed-size unit vector.

    Empty or all-short-word text yields the zero vector.
    """
    tokens = tokenize(text)
    vector = np.zeros(dimension, dtype=np.float64)
    if not tokens:
        return vector

    weight = 1.0 / math.sqrt(len(tokens))
    positions = np.arange(1, dimension + 1, dtype=np.float64)
    for token in tokens:
        vector += np.sin(hash_token(token) * positions * 0.001) * weight

    magnitude = float(np.linalg.norm(vector))
    if magnitude > 0:
        vector /= magnitude
    return vector


def cosine_similarity(a: Any, b: Any) -> float:
    """Cosine similarity; 0.0 for mismatched dimensions or zero vectors."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        return 0.0
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb)) or 1.0
    return float(np.dot(va, vb)) / denom


class SimilarityIndex:
    """In-memory vector store keyed by opaque string ids."""

    def __init__(self, dimension: int = DEFAULT_DIMENSION) -> None:
        self.dimension = dimension
        self._entries: Dict[str, VectorEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._entries

    def project(self, text: str) -> np.ndarray:
        return project(text, self.dimension)

    def insert(
        self,
        entry_id: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> VectorEntry:
        """Store a projection of `text`, replacing any entry with the same id."""
        entry = VectorEntry(
            id=entry_id,
            vector=self.project(text).tolist(),
            text=text,
            metadata=dict(metadata or {}),
            created_at=utcnow(),
        )
        self._entries[entry_id] = entry
        return entry

    def get(self, entry_id: str) -> Optional[VectorEntry]:
        return self._entries.get(entry_id)

    def search(self, query: str, k: int = 5) -> List[SearchHit]:
        """Return up to `k` entries most similar to `query`.

        Results are ordered by similarity, descending; equal scores keep
        insertion order. Scores are clamped to [0, 1].
        """
        if k <= 0 or not self._entries:
            return []

        query_vector = self.project(query)
        hits = [
            SearchHit(
                id=entry.id,
                text=entry.text,
                metadata=entry.metadata,
                similarity=min(
                    1.0, max(0.0, cosine_similarity(query_vector, entry.vector))
                ),
            )
            for entry in self._entries.values()
        ]
        # sorted() is stable, so ties stay in insertion order
        hits = sorted(hits, key=lambda h: h.similarity, reverse=True)
        return hits[:k]

    def entries(self) -> List[VectorEntry]:
        return list(self._entries.values())

    def load(self, entries: Iterable[VectorEntry]) -> None:
        """Replace the index contents with previously stored entries."""
        self._entries = {}
        foreign = 0
        for entry in entries:
            if len(entry.vector) != self.dimension:
                foreign += 1
            self._entries[entry.id] = entry
        if foreign:
            logger.warning(
                "Loaded vectors with foreign dimension",
                count=foreign,
                dimension=self.dimension,
            )
