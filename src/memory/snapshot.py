"""JSON snapshot file with crash-safe writes."""

import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from .exceptions import SnapshotError
from .models import Snapshot

logger = structlog.get_logger()


class SnapshotStore:
    """Reads and writes one snapshot document at a fixed path.

    Writes go to a temp file in the same directory and are moved into
    place with `os.replace`, so readers see either the old or the new
    document, never a partial one.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, snapshot: Snapshot) -> None:
        payload = snapshot.model_dump_json(indent=2)
        temp_path: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=f".{self.path.stem}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
            temp_path = None
        except OSError as exc:
            raise SnapshotError(
                f"Failed to write snapshot: {exc}", str(self.path)
            ) from exc
        finally:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.unlink(temp_path)
                except OSError:
                    logger.warning("Could not remove temp snapshot", path=temp_path)

        logger.debug("Snapshot written", path=str(self.path), bytes=len(payload))

    def load(self) -> Snapshot:
        """Read and validate the snapshot.

        Raises:
            SnapshotError: missing file, unreadable file, or invalid schema.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise SnapshotError("Snapshot not found", str(self.path)) from exc
        except OSError as exc:
            raise SnapshotError(
                f"Failed to read snapshot: {exc}", str(self.path)
            ) from exc

        try:
            return Snapshot.model_validate_json(raw)
        except ValidationError as exc:
            raise SnapshotError(
                f"Invalid snapshot: {exc.error_count()} error(s)", str(self.path)
            ) from exc
