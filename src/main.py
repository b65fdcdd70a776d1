"""Console entry point: chat with the agent from a terminal."""

import asyncio
from typing import Optional

import structlog

from .agent import AutosaveService, ChatService
from .config import Settings, configure_logging
from .llm import ChatProvider, FallbackGenerator, LocalResponder
from .memory import MemoryEngine, MemoryEngineError, load_seed_file

logger = structlog.get_logger()

HELP = """\
Commands:
  /teach <concept> = <definition>   teach a concept directly
  /knowledge [limit]                list known concepts
  /stats                            show engine statistics
  /save                             write the snapshot now
  /quit                             save and exit
Anything else is sent as a chat message."""


def build_service(settings: Settings) -> tuple[ChatService, AutosaveService]:
    """Wire engine, generator and autosave from settings."""
    engine = MemoryEngine.from_settings(settings)
    try:
        engine.load_seed(load_seed_file(settings.seed_path))
    except MemoryEngineError as exc:
        logger.error("Seed knowledge unavailable", error=str(exc))
    engine.restore()

    provider = None
    if settings.generation_enabled:
        provider = ChatProvider.from_settings(settings)
    else:
        logger.info("No API key configured, replies are local only")
    generator = FallbackGenerator(
        generator=provider,
        responder=LocalResponder(),
        timeout=settings.generation_timeout,
        max_tokens=settings.generation_max_tokens,
    )
    autosave = AutosaveService(engine, interval=settings.persist_interval)
    service = ChatService(
        engine,
        generator=generator,
        autosave=autosave,
        history_window=settings.history_window,
        persist_every_turns=settings.persist_every_turns,
    )
    logger.info(
        "Agent ready",
        concepts=len(engine.graph),
        external_generation=generator.external_enabled,
    )
    return service, autosave


async def handle_command(service: ChatService, line: str, user_id: str) -> str:
    """Execute one console line and return the text to print."""
    command, _, rest = line.partition(" ")
    rest = rest.strip()

    if command == "/teach":
        concept, sep, definition = rest.partition("=")
        if not sep:
            return "Usage: /teach <concept> = <definition>"
        result = service.teach(concept, definition, user_id)
        if not result.success:
            return f"Not learned: {result.error}"
        return f"Learned '{result.concept}' ({result.total_concepts} concepts)"

    if command == "/knowledge":
        limit = int(rest) if rest.isdigit() else 20
        rows = service.list_knowledge(limit)
        return "\n".join(
            f"{r.concept} [{r.category}, x{r.occurrences}, {r.source}]: {r.definition}"
            for r in rows
        )

    if command == "/stats":
        stats = service.get_stats()
        return "\n".join(f"{k}: {v}" for k, v in vars(stats).items())

    if command == "/save":
        return "Saved" if service.engine.persist() else "Save failed"

    if command == "/help":
        return HELP

    result = await service.chat(line, user_id)
    if result.learned_facts:
        return f"{result.response}\n(learned: {', '.join(result.learned_facts)})"
    return result.response


async def main(settings: Optional[Settings] = None, user_id: str = "console") -> None:
    settings = settings or Settings()
    configure_logging(settings.log_level, settings.log_json)

    service, autosave = build_service(settings)
    await autosave.start()
    print(HELP)
    try:
        while True:
            try:
                line = (await asyncio.to_thread(input, "> ")).strip()
            except EOFError:
                break
            if not line:
                continue
            if line == "/quit":
                break
            print(await handle_command(service, line, user_id))
    finally:
        await autosave.stop()
        service.engine.persist()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
