from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class ApiConfig(BaseModel):
    """Connection settings for the remote tutoring service."""

    base_url: str = Field("http://localhost:4000", description="Root URL of the tutoring API.")
    timeout_seconds: float = Field(60.0, gt=0, description="Per-request client timeout.")
    token_env: str = Field(
        "ADAPTIVE_TUTOR_TOKEN", description="Environment variable holding the bearer token."
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalize the base URL so endpoint paths can be appended directly."""
        return value.rstrip("/")


class CacheConfig(BaseModel):
    """Where resolved topics and content are cached between runs."""

    backend: str = Field("file", description="file or memory.")
    path: Path = Field(Path("data/cache/learning_cache.json"))

    @field_validator("backend")
    @classmethod
    def known_backend(cls, value: str) -> str:
        if value not in {"file", "memory"}:
            raise ValueError("cache backend must be 'file' or 'memory'")
        return value


class TopicsConfig(BaseModel):
    """Topic generation controls."""

    count: int = Field(10, ge=1, le=50)


class QuizConfig(BaseModel):
    """Quiz generation, grading, and persistence controls."""

    num_questions: int = Field(5, ge=1, le=50)
    difficulty: str = Field("medium")
    excels_threshold: float = Field(80.0, ge=0, le=100)
    save_attempts: int = Field(3, ge=1, description="Tries before a quiz save is given up.")
    retry_backoff_seconds: float = Field(0.5, ge=0)


class LoggingConfig(BaseModel):
    """Controls for client logging output and format."""

    level: str = Field("INFO")
    json_output: bool = Field(False, alias="json")

    model_config = {"populate_by_name": True}


class Settings(BaseModel):
    """Top-level client configuration aggregating all sub-settings."""

    project_name: str = Field("Adaptive Tutor")
    api: ApiConfig = Field(default_factory=ApiConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    topics: TopicsConfig = Field(default_factory=TopicsConfig)
    quiz: QuizConfig = Field(default_factory=QuizConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
