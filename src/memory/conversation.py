"""Per-user conversation state: bounded history, known facts, topics."""

from typing import Dict, Iterable, List, Optional

import structlog

from .models import Message, SessionRecord, UserFactEntry, UserSession, utcnow

logger = structlog.get_logger()

DEFAULT_HISTORY_CAP = 50


class ConversationStore:
    """Sessions keyed by opaque user id.

    Every accessor that goes through `get_or_create` refreshes
    `last_seen`, reads included.
    """

    def __init__(self, history_cap: int = DEFAULT_HISTORY_CAP) -> None:
        if history_cap < 1:
            raise ValueError("history_cap must be at least 1")
        self.history_cap = history_cap
        self._sessions: Dict[str, UserSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._sessions

    def get(self, user_id: str) -> Optional[UserSession]:
        """Look up a session without creating it or touching `last_seen`."""
        return self._sessions.get(user_id)

    def get_or_create(self, user_id: str) -> UserSession:
        now = utcnow()
        session = self._sessions.get(user_id)
        if session is None:
            session = UserSession(user_id=user_id, first_seen=now, last_seen=now)
            self._sessions[user_id] = session
            logger.debug("New user session", user_id=user_id)
        session.last_seen = now
        return session

    def append_message(self, user_id: str, role: str, content: str) -> Message:
        session = self.get_or_create(user_id)
        message = Message(role=role, content=content, timestamp=utcnow())
        session.history.append(message)
        overflow = len(session.history) - self.history_cap
        if overflow > 0:
            del session.history[:overflow]
        session.message_count += 1
        return message

    def recent_history(self, user_id: str, limit: int = 10) -> List[Message]:
        """Last `limit` messages, oldest first."""
        history = self.get_or_create(user_id).history
        if limit <= 0:
            return []
        return list(history[-limit:])

    def set_name(self, user_id: str, name: str) -> None:
        self.get_or_create(user_id).name = name

    def record_fact(self, user_id: str, key: str, value: str) -> None:
        self.get_or_create(user_id).facts[key] = UserFactEntry(
            value=value, learned_at=utcnow()
        )

    def add_topic(self, user_id: str, topic: str) -> None:
        self.get_or_create(user_id).topics[topic.lower()] = None

    def sessions(self) -> List[UserSession]:
        return list(self._sessions.values())

    def load(self, records: Iterable[SessionRecord]) -> None:
        """Replace all sessions with deserialized records.

        Histories longer than the current cap are trimmed to the newest
        entries.
        """
        self._sessions = {}
        for record in records:
            session = UserSession.from_record(record)
            if len(session.history) > self.history_cap:
                session.history = session.history[-self.history_cap :]
            self._sessions[session.user_id] = session
