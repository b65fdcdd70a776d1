"""Fact store with discovered relationships."""

from typing import Dict, Iterable, List, Optional

import structlog

from .models import Fact, RelatedFact, Relationship, ScoredFact, utcnow

logger = structlog.get_logger()

MENTIONS = "mentions"
MENTION_STRENGTH = 0.8


class FactGraph:
    """Concepts keyed by lowercase name plus a weighted edge map.

    Edges are derived from definitions: when a definition contains the
    name of another stored concept, a ``mentions`` edge is recorded from
    the defined concept to the mentioned one. Matching is a plain
    substring test with no word-boundary check, so short names can match
    inside longer words.
    """

    def __init__(self) -> None:
        self._facts: Dict[str, Fact] = {}
        self._edges: Dict[str, Relationship] = {}

    def __len__(self) -> int:
        return len(self._facts)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._facts

    def upsert(
        self,
        name: str,
        definition: str,
        category: Optional[str] = None,
        source: Optional[str] = None,
        confidence: Optional[float] = None,
    ) -> Fact:
        """Create or update a fact and re-derive its outgoing edges.

        Re-adding a known name bumps `occurrences` and overwrites the
        definition and metadata; `created_at` is preserved.
        """
        key = name.lower()
        existing = self._facts.get(key)
        now = utcnow()

        fact = Fact(
            name=name,
            definition=definition,
            category=category or "general",
            source=source or "unknown",
            confidence=confidence if confidence is not None else 0.5,
            occurrences=(existing.occurrences + 1) if existing else 1,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self._facts[key] = fact
        self._rediscover(key, definition)
        return fact

    def get(self, name: str) -> Optional[Fact]:
        return self._facts.get(name.lower())

    def add_relationship(
        self,
        source: str,
        target: str,
        rel_type: str,
        strength: float = 0.5,
    ) -> Relationship:
        edge = Relationship(
            source=source.lower(),
            target=target.lower(),
            type=rel_type,
            strength=strength,
        )
        self._edges[edge.key] = edge
        return edge

    def _rediscover(self, key: str, definition: str) -> None:
        # Edges from a superseded definition must not survive the update
        stale = [
            k
            for k, edge in self._edges.items()
            if edge.source == key and edge.type == MENTIONS
        ]
        for k in stale:
            del self._edges[k]

        text = definition.lower()
        for other in self._facts:
            if other != key and other in text:
                self.add_relationship(key, other, MENTIONS, MENTION_STRENGTH)

    def find_related(self, name: str, limit: int = 5) -> List[RelatedFact]:
        """Facts linked to `name` in either direction, strongest first."""
        key = name.lower()
        best: Dict[str, RelatedFact] = {}
        for edge in self._edges.values():
            if edge.source == key:
                other = edge.target
            elif edge.target == key:
                other = edge.source
            else:
                continue
            if other == key:
                continue
            fact = self._facts.get(other)
            if fact is None:
                continue
            current = best.get(other)
            if current is None or edge.strength > current.strength:
                best[other] = RelatedFact(
                    fact=fact, relation=edge.type, strength=edge.strength
                )

        related = sorted(best.values(), key=lambda r: r.strength, reverse=True)
        return related[:limit]

    def search(self, query: str, limit: int = 10) -> List[ScoredFact]:
        """Keyword search over names and definitions.

        Scores: +10 name contains the whole query, +5 definition contains
        it, then +3 / +1 for each query word longer than two characters
        found in the name / definition.
        """
        query_lower = query.lower().strip()
        if not query_lower:
            return []
        words = [w for w in query_lower.split() if len(w) > 2]

        results: List[ScoredFact] = []
        for key, fact in self._facts.items():
            definition = fact.definition.lower()
            score = 0
            if query_lower in key:
                score += 10
            if query_lower in definition:
                score += 5
            for word in words:
                if word in key:
                    score += 3
                if word in definition:
                    score += 1
            if score > 0:
                results.append(ScoredFact(fact=fact, score=score))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def facts(self) -> List[Fact]:
        return list(self._facts.values())

    def relationships(self) -> List[Relationship]:
        return list(self._edges.values())

    def keys(self) -> List[str]:
        return list(self._facts)

    def load(
        self,
        facts: Iterable[Fact],
        relationships: Iterable[Relationship],
    ) -> None:
        """Replace the graph with stored facts and edges as-is."""
        self._facts = {fact.key: fact for fact in facts}
        self._edges = {edge.key: edge for edge in relationships}
        logger.debug(
            "Fact graph loaded",
            facts=len(self._facts),
            relationships=len(self._edges),
        )
