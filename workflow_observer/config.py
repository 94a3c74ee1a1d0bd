"""Simplified configuration management."""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


def _load_env_file() -> None:
    """Load .env from root directory if present."""
    env_path = Path(__file__).parent.parent / ".env"
    if not env_path.is_file():
        return
    try:
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("#") and "=" in stripped:
                key, value = stripped.split("=", 1)
                key, value = key.strip(), value.strip().strip("'\"")
                if key and value and key not in os.environ:
                    os.environ[key] = value
    except OSError:
        pass


_load_env_file()


DEFAULT_APP_NAME = "Workflow Observer"
DEFAULT_APP_VERSION = "0.1.0"
DEFAULT_REASONING_MODEL = "gemini-2.5-flash"


def _env_int(name: str, fallback: int) -> int:
    try:
        return int(os.getenv(name, str(fallback)))
    except (TypeError, ValueError):
        return fallback


def _env_float(name: str, fallback: float) -> float:
    try:
        return float(os.getenv(name, str(fallback)))
    except (TypeError, ValueError):
        return fallback


def _get_port() -> int:
    port = os.getenv("OBSERVER_PORT")
    if port:
        try:
            return int(port)
        except ValueError:
            pass
    return 8002


class TokenBudget(BaseModel):
    """Per-tier budgets in approximate token units (one unit ~ 4 characters)."""

    session: int = Field(default=500, ge=0)
    historical: int = Field(default=1000, ge=0)
    baseline: int = Field(default=500, ge=0)

    @property
    def total(self) -> int:
        return self.session + self.historical + self.baseline


class ObservationConfig(BaseModel):
    """Tunable thresholds for task detection, questioning and summarization."""

    screenshot_interval_seconds: int = Field(default=10, ge=1)
    max_questions_per_hour: int = Field(default=_env_int("OBSERVER_MAX_QUESTIONS_PER_HOUR", 5), ge=0)
    min_time_between_questions_seconds: int = Field(default=300, ge=0)
    confidence_threshold: float = Field(default=_env_float("OBSERVER_CONFIDENCE_THRESHOLD", 0.7), ge=0.0, le=1.0)
    idle_threshold_seconds: int = Field(default=300, ge=1)
    min_task_duration_seconds: int = Field(default=60, ge=0)
    app_switch_debounce_seconds: int = Field(default=30, ge=0)

    # Task detection extras
    immediate_buffer_size: int = Field(default=6, ge=1)
    merge_gap_seconds: int = Field(default=120, ge=0)
    resume_window_seconds: int = Field(default=1800, ge=0)
    exception_dwell_seconds: int = Field(default=300, ge=0)
    context_change_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    context_change_min_observations: int = Field(default=3, ge=1)

    # Sampling and summarisation
    analysis_interval: int = Field(default=3, ge=1)
    summary_interval_seconds: int = Field(default=300, ge=1)
    duplicate_similarity_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    token_budget: TokenBudget = Field(default_factory=TokenBudget)


class Settings(BaseModel):
    """Application settings with lightweight env fallbacks."""

    # App metadata
    app_name: str = Field(default=DEFAULT_APP_NAME)
    app_version: str = Field(default=DEFAULT_APP_VERSION)

    # Server runtime
    server_host: str = Field(default=os.getenv("OBSERVER_HOST", "127.0.0.1"))
    server_port: int = Field(default_factory=_get_port)
    cors_allow_origins_raw: str = Field(default=os.getenv("OBSERVER_CORS_ALLOW_ORIGINS", "*"))
    enable_docs: bool = Field(default=os.getenv("OBSERVER_ENABLE_DOCS", "1") != "0")
    docs_url: Optional[str] = Field(default=os.getenv("OBSERVER_DOCS_URL", "/docs"))

    # Reasoning collaborator
    reasoning_api_key: Optional[str] = Field(default=os.getenv("REASONING_API_KEY"))
    reasoning_base_url: str = Field(
        default=os.getenv("REASONING_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai")
    )
    confusion_model: str = Field(default=os.getenv("CONFUSION_MODEL", DEFAULT_REASONING_MODEL))
    context_change_model: str = Field(default=os.getenv("CONTEXT_CHANGE_MODEL", DEFAULT_REASONING_MODEL))
    summarizer_model: str = Field(default=os.getenv("SUMMARIZER_MODEL", DEFAULT_REASONING_MODEL))
    reasoning_timeout_seconds: float = Field(default=_env_float("REASONING_TIMEOUT_SECONDS", 60.0), gt=0)

    # Storage
    data_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("OBSERVER_DATA_DIR", str(Path(__file__).resolve().parent.parent / "data")))
    )
    user_timezone: str = Field(default=os.getenv("OBSERVER_TIMEZONE", "UTC"))

    observation: ObservationConfig = Field(default_factory=ObservationConfig)

    @property
    def cors_allow_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if self.cors_allow_origins_raw.strip() in {"", "*"}:
            return ["*"]
        return [origin.strip() for origin in self.cors_allow_origins_raw.split(",") if origin.strip()]

    @property
    def resolved_docs_url(self) -> Optional[str]:
        """Return documentation URL when docs are enabled."""
        return (self.docs_url or "/docs") if self.enable_docs else None

    @property
    def reasoning_enabled(self) -> bool:
        """Flag indicating a reasoning collaborator is configured."""
        return bool((self.reasoning_api_key or "").strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


__all__ = ["ObservationConfig", "Settings", "TokenBudget", "get_settings"]
