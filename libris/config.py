"""Application settings loaded from environment variables and `.env`."""

from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogBackend(str, Enum):
    MEMORY = "memory"
    SQL = "sql"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LIBRIS_",
        env_file=str(Path(__file__).resolve().parents[1] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Infrastructure ─────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./libris.db"
    log_backend: LogBackend = LogBackend.MEMORY
    cors_origins: list[str] = ["*"]
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    # ── Auth (token decoding only) ─────────────────
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60

    # ── Profile builder ────────────────────────────
    profile_lookback_days: int = 90
    decay_half_life_days: float = 30.0
    kind_weights: dict[str, float] = Field(
        default_factory=lambda: {"borrow": 3.0, "bookmark": 2.0, "view": 1.0}
    )

    # ── Candidate generators ───────────────────────
    fanout_limit: int = 50
    generator_timeout_seconds: float = 2.0
    collaborative_max_neighbors: int = 50
    content_group_weights: dict[str, float] = Field(
        default_factory=lambda: {
            "category": 0.35,
            "tag": 0.30,
            "author": 0.20,
            "format": 0.10,
            "publisher": 0.05,
        }
    )
    popularity_window_days: int = 30
    trending_recent_days: int = 7
    trending_baseline_days: int = 30
    trending_min_ratio: float = 1.5

    # ── Blender ────────────────────────────────────
    strategy_weights: dict[str, float] = Field(
        default_factory=lambda: {
            "collaborative": 0.30,
            "content": 0.30,
            "popularity": 0.20,
            "engagement": 0.20,
        }
    )
    diversity_cap: float = 0.4
    author_diversity_cap: float = 0.3
    # Readers whose profile diversity exceeds this get one fewer slot per category and author.
    diverse_reader_threshold: float = 0.7
    default_limit: int = 10
    max_limit: int = 20

    # ── Rate limiting: action -> (max requests, period seconds) ──
    rate_limits: dict[str, tuple[int, float]] = Field(
        default_factory=lambda: {
            "recommendations": (20, 60.0),
            "tracking": (100, 60.0),
        }
    )
    rate_limit_purge_interval: int = 1000


settings = Settings()
