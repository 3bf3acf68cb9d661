"""Centralized configuration for palette-search using Pydantic Settings."""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Every value has a working default, so ``Settings()`` with an empty
    environment yields an in-memory engine with no persisted history.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Ranking
    default_max_results: int = Field(default=50, ge=0, description="Result limit when a search sets none")
    fuzzy_matching_enabled: bool = Field(default=True, description="Enable the typo-tolerant scoring tier")
    history_bonus_weight: float = Field(
        default=0.25, ge=0.0, description="Multiplier k in the relative history bonus k * ln(1 + selection_count)"
    )
    history_bonus_cap: float = Field(
        default=0.5,
        ge=0.0,
        le=0.6,
        description="Upper bound of the relative history bonus; scores grow by at most this fraction",
    )

    # Result cache
    search_cache_max_size: int = Field(default=50, ge=1, description="Maximum cached result sets")
    search_cache_ttl_seconds: float = Field(
        default=300.0, ge=0.0, description="Lifetime of a cached result set in seconds (0 disables expiry)"
    )

    # History
    history_file: str = Field(default="", description="JSON file for selection history (empty keeps it in memory)")
    history_recency_half_life_hours: float = Field(
        default=168.0, gt=0.0, description="Half-life of the recency weight used for recent suggestions"
    )
    query_history_max_size: int = Field(default=50, ge=1, description="Maximum remembered past queries")

    # Corpus
    index_file: str = Field(default="", description="JSON index file loaded at startup (empty starts with no records)")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    @model_validator(mode="after")
    def _check_history_bonus(self) -> "Settings":
        if self.history_bonus_weight > 0 and self.history_bonus_cap < self.history_bonus_weight:
            raise ValueError(
                "HISTORY_BONUS_CAP must be at least HISTORY_BONUS_WEIGHT so repeated selections still rank higher"
            )
        return self

    def get_history_path(self) -> Path | None:
        if not self.history_file.strip():
            return None
        return Path(self.history_file.strip()).expanduser()

    def get_index_path(self) -> Path | None:
        if not self.index_file.strip():
            return None
        return Path(self.index_file.strip()).expanduser()
