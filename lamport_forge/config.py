"""
Configuration settings for the Lamport forger.
Uses pydantic-settings for environment variable management.
"""

import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lamport_forge.crypto import validate_hash_algorithm, validate_message_bits


class Settings(BaseSettings):
    """Application configuration from LAMPORT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LAMPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Lamport Forge"
    app_version: str = "1.0.0"
    debug: bool = False

    # Scheme
    hash_algorithm: str = Field(default="sha256", description="sha256/sha3-256/blake2s")
    message_bits: int = Field(default=256, description="Message width in bits")

    # Forgery search
    forge_prefix: str = Field(default="forge; ", description="Fixed start of every forged message")
    forge_marker: str = Field(default="forge", description="Substring a forged message must contain")
    suffix_length: int = Field(default=8, ge=1)
    max_iterations: int = Field(default=1_000_000_000, ge=1)
    workers: int = Field(default_factory=lambda: max(1, os.cpu_count() or 1), ge=1)
    poll_interval_seconds: float = Field(default=0.5, gt=0)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)

    # Leak aggregation
    strict_consistency: bool = False

    # Logging
    log_level: str = "INFO"

    @field_validator('hash_algorithm')
    @classmethod
    def check_hash_algorithm(cls, v: str) -> str:
        return validate_hash_algorithm(v.lower())

    @field_validator('message_bits')
    @classmethod
    def check_message_bits(cls, v: int) -> int:
        return validate_message_bits(v)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
