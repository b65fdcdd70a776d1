"""Memory engine exceptions."""


class MemoryEngineError(Exception):
    """Base memory engine error."""


class SnapshotError(MemoryEngineError):
    """Snapshot could not be read, parsed or written."""

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path
