"""Process-level settings for ff1agent, loaded from env / .env.

These are runtime knobs that do not belong in the user's config.json
(log level, where history and state live).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FF1Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FF1_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- logging ---
    log_level: str = "INFO"

    # --- file-system paths ---
    state_dir: Path = Field(default_factory=lambda: Path.home() / ".ff1")

    # --- http ---
    http_timeout: float = 30.0

    @property
    def history_file(self) -> Path:
        return self.state_dir / "history" / "chat_history"


@lru_cache
def get_settings() -> FF1Settings:
    s = FF1Settings()
    s.state_dir.mkdir(parents=True, exist_ok=True)
    return s
