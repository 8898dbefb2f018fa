from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


PROJECT_ROOT = Path(__file__).resolve().parents[3]
ENV_PATH = PROJECT_ROOT / ".env"

# Load environment variables as early as possible so Settings picks them up.
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Wellness Coach API"
    app_version: str = "0.1.0"
    docs_url: str = "/docs"
    log_level: str = "INFO"

    database_url: str = f"sqlite:///{(PROJECT_ROOT / 'wellcoach.db').as_posix()}"
    database_echo: bool = False

    vector_backend: Literal["redis", "memory"] = "redis"
    redis_url: str = "redis://localhost:6379"
    embedding_dimension: int = 384
    hnsw_m: int = 16
    hnsw_ef_construction: int = 200

    embedding_backend: Literal["http", "hash"] = "http"
    embed_url: str = "http://localhost:8001/embed"
    embed_timeout: float = 15.0

    ollama_url: str = "http://127.0.0.1:11434"
    ollama_model: str = "llama3.1"
    llm_timeout: float = 100.0
    llm_max_tokens: int = 500
    llm_temperature: float = 0.7

    # Cosine distance, lower is closer. A hit needs distance <= threshold.
    cache_distance_threshold: float = 0.10
    cache_distance_threshold_with_context: float = 0.08
    cache_top_k: int = 3

    recommend_default_limit: int = 10
    recommend_max_limit: int = 20

    auth_user_header: str = "X-User-Id"

    insights_max_stored: int = 50


@lru_cache
def get_settings() -> Settings:
    return Settings()
