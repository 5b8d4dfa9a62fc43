"""Centralized configuration via pydantic-settings. Secrets and overrides from env / .env."""

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


CONFIG_DIR_NAME = ".mevtrace"
DB_FILE_NAME = "mevtrace.duckdb"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MEVTRACE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Blockchain RPC (shared with other EVM tooling, so no prefix)
    eth_rpc_url: str | None = Field(default=None, validation_alias="ETH_RPC_URL")

    # Local cache
    config_dir: Path = Field(default_factory=lambda: Path.home() / CONFIG_DIR_NAME)
    db_download_url: str = "https://mevtrace.s3.amazonaws.com/mevtrace.duckdb"
    db_download_timeout: float = 60.0
    db_max_connections: int = 8

    # Background resolvers
    resolver_queue_size: int = 10_000

    @property
    def db_path(self) -> Path:
        return self.config_dir / DB_FILE_NAME

    def chain_cache_dir(self, cache_directory_name: str) -> Path:
        """Per-chain cache directory, named by ``ChainIdentity.cache_directory_name``."""
        return self.config_dir / cache_directory_name


@lru_cache
def get_settings() -> Settings:
    return Settings()
