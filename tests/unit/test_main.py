"""Tests for the console command handler and service wiring."""

from unittest.mock import patch

import pytest

from src.agent.service import ChatService
from src.config import Settings
from src.llm.fallback import FallbackGenerator, LocalResponder, first_variant
from src.main import HELP, build_service, handle_command
from src.memory.engine import MemoryEngine
from src.memory.snapshot import SnapshotStore


@pytest.fixture
def service(tmp_path) -> ChatService:
    engine = MemoryEngine(
        vector_dimension=64, snapshot_store=SnapshotStore(tmp_path / "brain.json")
    )
    generator = FallbackGenerator(responder=LocalResponder(first_variant))
    return ChatService(engine, generator=generator)


class TestHandleCommand:
    """Tests for console commands."""

    async def test_teach(self, service: ChatService) -> None:
        """/teach stores a concept."""
        reply = await handle_command(
            service, "/teach AI = a field of computer science", "u"
        )
        assert reply == "Learned 'ai' (1 concepts)"

    async def test_teach_usage(self, service: ChatService) -> None:
        """/teach without '=' prints usage."""
        reply = await handle_command(service, "/teach ai", "u")
        assert reply.startswith("Usage:")

    async def test_teach_rejected(self, service: ChatService) -> None:
        """/teach reports validation errors."""
        reply = await handle_command(service, "/teach ab = shrt", "u")
        assert reply == "Not learned: Definition too short"

    async def test_knowledge(self, service: ChatService) -> None:
        """/knowledge lists taught concepts."""
        service.teach("gravity", "a force that attracts mass")
        reply = await handle_command(service, "/knowledge 5", "u")
        assert reply.startswith("gravity [general, x1, taught:anonymous]")

    async def test_stats(self, service: ChatService) -> None:
        """/stats prints every counter."""
        reply = await handle_command(service, "/stats", "u")
        assert "total_turns: 0" in reply
        assert "fact_count: 0" in reply

    async def test_save(self, tmp_path, service: ChatService) -> None:
        """/save writes the snapshot."""
        assert await handle_command(service, "/save", "u") == "Saved"
        assert (tmp_path / "brain.json").exists()

    async def test_help(self, service: ChatService) -> None:
        """/help prints the command list."""
        assert await handle_command(service, "/help", "u") == HELP

    async def test_prefixed_word_is_chat(self, service: ChatService) -> None:
        """Longer words starting with a command name are chat messages."""
        await handle_command(
            service, "/teacher gravity = a force that attracts mass", "u"
        )
        await handle_command(service, "/knowledgebase", "u")

        assert "gravity" not in service.engine.graph
        assert service.get_stats().total_turns == 2

    async def test_chat_reports_learning(self, service: ChatService) -> None:
        """Plain lines are chat turns and learned concepts are shown."""
        reply = await handle_command(
            service, "gravity is a force that attracts mass", "u"
        )
        assert reply.endswith("(learned: gravity)")


class TestBuildService:
    """Tests for wiring from settings."""

    def test_seeded_without_provider(self, tmp_path, monkeypatch) -> None:
        """Seed knowledge loads and no provider is built without a key."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        settings = Settings(_env_file=None, snapshot_path=tmp_path / "brain.json")

        service, autosave = build_service(settings)

        assert "gravity" in service.engine.graph
        assert not service._generator.external_enabled
        assert service._generator._generator is None
        assert not autosave.running

    def test_restores_snapshot_over_seed(self, tmp_path, monkeypatch) -> None:
        """A saved snapshot replaces the seeded state."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        settings = Settings(_env_file=None, snapshot_path=tmp_path / "brain.json")
        first, _ = build_service(settings)
        first.teach("tardigrade", "a tiny resilient animal")
        first.engine.persist()

        second, _ = build_service(settings)
        assert "tardigrade" in second.engine.graph

    def test_missing_seed_file_is_logged(self, tmp_path, monkeypatch) -> None:
        """A broken seed path leaves an empty but working engine."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        settings = Settings(
            _env_file=None,
            snapshot_path=tmp_path / "brain.json",
            seed_path=tmp_path / "nope.json",
        )
        with patch("src.main.logger") as mock_logger:
            service, _ = build_service(settings)

        assert len(service.engine.graph) == 0
        mock_logger.error.assert_called_once()

    def test_provider_built_when_key_set(self, tmp_path, monkeypatch) -> None:
        """A configured API key enables external generation."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        settings = Settings(_env_file=None, snapshot_path=tmp_path / "brain.json")

        with patch("src.main.ChatProvider") as mock_provider:
            service, _ = build_service(settings)

        mock_provider.from_settings.assert_called_once_with(settings)
        assert service._generator.external_enabled
