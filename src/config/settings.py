"""Application settings loaded from environment variables and `.env`."""

from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the memory engine and its host."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Memory engine
    vector_dimension: int = Field(384, ge=8, description="Projection size")
    history_cap: int = Field(50, ge=1, description="Messages kept per user")
    search_top_k: int = Field(5, ge=1, description="Default search breadth")
    similarity_threshold: float = Field(0.2, ge=0.0, le=1.0)
    teach_min_concept_length: int = Field(2, ge=1)
    teach_min_definition_length: int = Field(5, ge=1)
    seed_path: Optional[Path] = Field(
        None, description="JSON file of {category: {concept: definition}}"
    )

    # Persistence
    snapshot_path: Path = Field(Path("uni_brain.json"))
    persist_interval: float = Field(120.0, gt=0, description="Seconds between saves")
    persist_every_turns: int = Field(5, ge=1)

    # Generation
    chat_model: str = "gpt-4o-mini"
    chat_base_url: Optional[str] = None
    openai_api_key: Optional[SecretStr] = None
    generation_timeout: float = Field(30.0, gt=0)
    generation_max_tokens: int = Field(500, ge=1)
    history_window: int = Field(8, ge=1, description="Messages sent to the model")

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and check the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @property
    def openai_api_key_str(self) -> Optional[str]:
        """API key as a plain string, or None when unset."""
        if self.openai_api_key is None:
            return None
        return self.openai_api_key.get_secret_value() or None

    @property
    def generation_enabled(self) -> bool:
        """True when an external generation backend is configured."""
        return bool(self.openai_api_key_str)
