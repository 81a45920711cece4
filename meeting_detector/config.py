"""Detector configuration using Pydantic Settings v2.

Values come from keyword arguments, then ``MEETING_DETECTOR_*`` environment
variables, then a .env file in the working directory.
"""

from __future__ import annotations

import functools

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SOURCE_PATH = "./meeting-detect.sh"
DEFAULT_SUPPRESSION_WINDOW_MS = 60_000
DEFAULT_EVICTION_WINDOW_MS = 120_000
DEFAULT_COOLDOWN_SECONDS = 10.0


class DetectorSettings(BaseSettings):
    """Meeting detector settings."""

    model_config = SettingsConfigDict(
        env_prefix="MEETING_DETECTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Source ───────────────────────────────────────────────────
    source_path: str = DEFAULT_SOURCE_PATH
    debug: bool = False
    log_level: str = "INFO"

    # ── Downstream dedup ─────────────────────────────────────────
    suppression_window_ms: int = DEFAULT_SUPPRESSION_WINDOW_MS
    eviction_window_ms: int = DEFAULT_EVICTION_WINDOW_MS

    # ── Upstream cooldown ────────────────────────────────────────
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS

    @field_validator("suppression_window_ms", "eviction_window_ms")
    @classmethod
    def _non_negative_window(cls, v: int) -> int:
        if v < 0:
            raise ValueError("dedup windows must be >= 0 ms")
        return v

    @field_validator("cooldown_seconds")
    @classmethod
    def _non_negative_cooldown(cls, v: float) -> float:
        if v < 0:
            raise ValueError("cooldown_seconds must be >= 0")
        return v

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def _eviction_covers_suppression(self) -> DetectorSettings:
        if self.eviction_window_ms < 2 * self.suppression_window_ms:
            raise ValueError(
                "eviction_window_ms must be at least twice suppression_window_ms "
                f"(got {self.eviction_window_ms} < 2 * {self.suppression_window_ms})"
            )
        return self


@functools.lru_cache(maxsize=1)
def get_settings() -> DetectorSettings:
    """Return the cached process-wide settings."""
    return DetectorSettings()
