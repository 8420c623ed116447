"""Application configuration and .env loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized runtime configuration."""

    reranker_model_id: str | None = Field(
        default=None, validation_alias="RERANKER_MODEL_ID"
    )
    reranker_cache_dir: str = Field(
        default="models", validation_alias="RERANKER_CACHE_DIR"
    )
    reranker_device: str | None = Field(default=None, validation_alias="RERANKER_DEVICE")
    reranker_max_length: int = Field(default=512, validation_alias="RERANKER_MAX_LENGTH")
    reranker_batch_size: int = Field(default=128, validation_alias="RERANKER_BATCH_SIZE")
    reranker_top_k: int = Field(default=4, validation_alias="RERANKER_TOP_K")

    hf_token: str | None = Field(default=None, validation_alias="HF_TOKEN")

    log_level: str = Field(default="WARNING", validation_alias="CROSSRANK_LOG_LEVEL")

    benchmark_seed: int | None = Field(default=None, validation_alias="BENCHMARK_SEED")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once from .env/environment."""
    return Settings()


__all__ = ["Settings", "get_settings"]
