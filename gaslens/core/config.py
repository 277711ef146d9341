"""Core configuration for the gaslens engine."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GASLENS_",
        case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "gaslens"
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # ── Severity boundaries ──────────────────────────────────────────────
    severity_warning_threshold: int = Field(default=1_000, ge=0)
    severity_high_threshold: int = Field(default=5_000, ge=0)
    severity_critical_threshold: int = Field(default=20_000, ge=0)

    # ── Pattern detection ────────────────────────────────────────────────
    storage_in_loop_min_opcodes: int = Field(default=5, ge=0)

    # ── Bytecode decoder ─────────────────────────────────────────────────
    bytecode_max_instructions: int = Field(default=100_000, gt=0)

    # ── Execution traces ─────────────────────────────────────────────────
    trace_max_entries: int = Field(default=1_000_000, gt=0)

    # ── State reconstruction ─────────────────────────────────────────────
    state_max_snapshots: int = Field(default=1_000, gt=0)
    state_sstore_key_on_top: bool = False


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
