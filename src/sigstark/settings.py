"""
Settings Module

Environment-driven configuration (SIGSTARK_* variables), validated once
and converted to StarkParams.
"""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .field import STARK_GENERATOR, STARK_PRIME
from .params import StarkParams


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = 'DEBUG'
    INFO = 'INFO'
    WARNING = 'WARNING'
    ERROR = 'ERROR'
    CRITICAL = 'CRITICAL'


class StarkSettings(BaseSettings):
    """Proof system configuration."""

    model_config = SettingsConfigDict(env_prefix='SIGSTARK_')

    field_prime: int = STARK_PRIME
    field_generator: int = STARK_GENERATOR
    blowup_factor: int = Field(default=4, ge=2)
    fri_round_budget: int = Field(default=3, ge=1)
    num_queries: int = Field(default=8, ge=1)
    hash_name: str = 'shake256'
    domain_offset: Optional[int] = None
    max_workers: Optional[int] = Field(default=None, ge=1)

    log_level: LogLevel = LogLevel.WARNING
    json_logs: bool = False

    def to_params(self) -> StarkParams:
        """
        Proof parameters from these settings.

        Raises:
            ConfigurationError: the values do not form a usable parameter set
        """
        return StarkParams(
            field_prime=self.field_prime,
            field_generator=self.field_generator,
            blowup_factor=self.blowup_factor,
            fri_round_budget=self.fri_round_budget,
            num_queries=self.num_queries,
            hash_name=self.hash_name,
            domain_offset=self.domain_offset,
            max_workers=self.max_workers,
        )


def load_settings() -> StarkSettings:
    """
    Read settings from the environment.

    Raises:
        ConfigurationError: an environment value fails validation
    """
    try:
        return StarkSettings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid SIGSTARK_* settings: {exc}") from exc


@lru_cache
def get_settings() -> StarkSettings:
    """Cached settings instance."""
    return load_settings()


@lru_cache
def get_params() -> StarkParams:
    """Cached parameters derived from the environment."""
    return get_settings().to_params()
