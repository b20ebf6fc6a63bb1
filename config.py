"""
Centralised settings loader (pydantic-settings).

Core classes never import this module; the API wiring reads `settings`
and passes values into constructors.
"""

from __future__ import annotations
from functools import lru_cache
from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings


# ------------------------------------------------------------------ #
#  Master settings model
# ------------------------------------------------------------------ #
class _Settings(BaseSettings):
    # ─── runtime / DB ────────────────────────────────────────────────
    env_name: str = Field("local", env="ENV_NAME")
    database_url: str | None = Field(None, env="DATABASE_URL")

    # ─── score cache ─────────────────────────────────────────────────
    score_cache_backend: str = Field("memory", env="SCORE_CACHE_BACKEND")  # memory|redis|none
    redis_url: str | None = Field(None, env="REDIS_URL")
    trending_cache_ttls: Dict[str, int] = Field(
        default_factory=lambda: {"1h": 60, "6h": 180, "24h": 300, "7d": 900},
        env="TRENDING_CACHE_TTLS",
    )
    popular_cache_ttl: int = Field(900, env="POPULAR_CACHE_TTL")
    viral_cache_ttl: int = Field(120, env="VIRAL_CACHE_TTL")
    default_cache_ttl: int = Field(300, env="DEFAULT_CACHE_TTL")

    # ─── engine knobs ────────────────────────────────────────────────
    preference_history_limit: int = Field(20, env="PREFERENCE_HISTORY_LIMIT")
    optimizer_max_iterations: int = Field(50, env="OPTIMIZER_MAX_ITERATIONS")
    constraint_tolerance: float = Field(0.10, env="CONSTRAINT_TOLERANCE")

    # allow other teammates’ env-vars without crashing
    model_config = {"extra": "ignore", "env_file": ".env", "env_file_encoding": "utf-8"}


# ------------------------------------------------------------------ #
#  Cached singleton accessor
# ------------------------------------------------------------------ #
@lru_cache
def _cached() -> _Settings:  # pragma: no cover
    return _Settings()  # type: ignore[call-arg]


settings: _Settings = _cached()
