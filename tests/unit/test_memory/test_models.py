"""Test memory data models — persisted records and session serialization."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from src.memory.models import (
    SNAPSHOT_VERSION,
    EngineCounters,
    Extraction,
    Fact,
    Message,
    Relationship,
    Snapshot,
    UserFactEntry,
    UserSession,
    epoch_millis,
    relationship_key,
)

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestFact:
    """Test Fact model."""

    def test_defaults(self) -> None:
        """Test Fact defaults for optional fields."""
        fact = Fact(name="Gravity", definition="a force")
        assert fact.key == "gravity"
        assert fact.category == "general"
        assert fact.confidence == 0.5
        assert fact.occurrences == 1
        assert fact.source == "unknown"

    def test_confidence_bounds(self) -> None:
        """Test confidence outside [0, 1] is rejected."""
        with pytest.raises(ValidationError):
            Fact(name="x", definition="y", confidence=1.5)


class TestRelationship:
    """Test Relationship model."""

    def test_key(self) -> None:
        """Test the composite key is case-folded on both ends."""
        edge = Relationship(source="Orbit", target="Gravity", strength=0.8)
        assert edge.key == "orbit->gravity"
        assert relationship_key("A", "b") == "a->b"


class TestUserSession:
    """Test session record conversion."""

    def test_round_trip_preserves_order(self) -> None:
        """Test topics and facts keep insertion order through a record."""
        session = UserSession(user_id="u1", first_seen=T0, last_seen=T0, name="Alice")
        session.topics = dict.fromkeys(["zeta", "alpha", "mid"])
        session.facts = {
            "occupation": UserFactEntry(value="teacher", learned_at=T0),
            "location": UserFactEntry(value="Oslo", learned_at=T0),
        }
        session.history = [Message(role="user", content="hi", timestamp=T0)]

        record = session.to_record()
        assert record.topics == ["zeta", "alpha", "mid"]
        assert [k for k, _ in record.facts] == ["occupation", "location"]

        restored = UserSession.from_record(record)
        assert restored == session

    def test_record_survives_json(self) -> None:
        """Test flattened fact pairs validate back from JSON."""
        session = UserSession(user_id="u1", first_seen=T0, last_seen=T0)
        session.facts = {"location": UserFactEntry(value="Oslo", learned_at=T0)}
        snapshot = Snapshot(birth_time=1, sessions=[session.to_record()])

        loaded = Snapshot.model_validate_json(snapshot.model_dump_json())
        assert UserSession.from_record(loaded.sessions[0]) == session


class TestSnapshot:
    """Test Snapshot model."""

    def test_version(self) -> None:
        """Test the snapshot carries the current schema version."""
        assert Snapshot(birth_time=0).version == SNAPSHOT_VERSION

    def test_unknown_version_rejected(self) -> None:
        """Test documents from another schema version fail validation."""
        with pytest.raises(ValidationError):
            Snapshot.model_validate({"version": 99, "birth_time": 0})

    def test_json_round_trip(self) -> None:
        """Test a populated snapshot survives JSON serialization unchanged."""
        snapshot = Snapshot(
            birth_time=epoch_millis(T0),
            facts=[Fact(name="gravity", definition="a force", created_at=T0, updated_at=T0)],
            relationships=[Relationship(source="orbit", target="gravity", strength=0.8)],
            counters=EngineCounters(total_turns=3, unique_users=["u1", "u2"]),
        )
        assert Snapshot.model_validate_json(snapshot.model_dump_json()) == snapshot


class TestExtraction:
    """Test Extraction helper."""

    def test_is_empty(self) -> None:
        """Test is_empty reflects all three slots."""
        assert Extraction().is_empty
        assert not Extraction(topics=["gravity"]).is_empty
        assert not Extraction(identity={"name": "Alice"}).is_empty


def test_epoch_millis() -> None:
    """Test epoch_millis converts aware datetimes to milliseconds."""
    assert epoch_millis(datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)) == 1000
