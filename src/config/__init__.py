"""Configuration and logging setup."""

from .logging import configure_logging
from .settings import Settings

__all__ = ["Settings", "configure_logging"]
