"""Seed knowledge loading.

Seed files are JSON objects of ``{category: {concept: definition}}``.
"""

import json
from pathlib import Path
from typing import Dict, Optional, Union

import structlog

from .exceptions import MemoryEngineError

logger = structlog.get_logger()

DEFAULT_SEED_PATH = Path(__file__).parent / "data" / "seed_knowledge.json"

SeedData = Dict[str, Dict[str, str]]


def load_seed_file(path: Optional[Union[str, Path]] = None) -> SeedData:
    """Read and shape-check a seed file (default: the bundled one)."""
    seed_path = Path(path) if path else DEFAULT_SEED_PATH
    try:
        data = json.loads(seed_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise MemoryEngineError(f"Cannot load seed file {seed_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise MemoryEngineError(f"Seed file {seed_path} must hold a JSON object")

    seed: SeedData = {}
    for category, concepts in data.items():
        if not isinstance(concepts, dict):
            logger.warning("Skipping malformed seed category", category=category)
            continue
        seed[str(category)] = {
            str(name): str(definition)
            for name, definition in concepts.items()
            if isinstance(definition, str) and definition.strip()
        }
    return seed
