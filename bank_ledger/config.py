"""
Configuration Management Module

Environment-based configuration (BANK_* variables or a .env file) using
pydantic-settings. Invalid values fail at startup rather than on first use.
"""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings
from typing import Optional


SUPPORTED_DATABASE_SCHEMES = ("memory://", "sqlite://", "postgresql://", "postgres://")


class LedgerConfig(BaseSettings):
    """Bank ledger configuration"""

    # Database configuration
    database_url: str = "sqlite:///bank_ledger.db"  # memory://, sqlite:///path or postgresql://...
    database_pool_min: int = 1
    database_pool_max: int = 10
    sqlite_timeout_seconds: float = 30.0
    lock_timeout_seconds: Optional[float] = 30.0  # None waits forever

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Security configuration
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Account number generation
    account_number_length: int = 10
    account_number_max_attempts: int = 10

    class Config:
        env_prefix = "BANK_"
        env_file = ".env"
        case_sensitive = False

    @field_validator("database_url")
    @classmethod
    def check_database_url(cls, value: str) -> str:
        if not value.startswith(SUPPORTED_DATABASE_SCHEMES):
            raise ValueError(f"Unsupported database URL: {value}")
        return value

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return value

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value

    @field_validator("account_number_length")
    @classmethod
    def check_account_number_length(cls, value: int) -> int:
        if value < 2:
            raise ValueError("account_number_length must be at least 2")
        return value

    @field_validator("account_number_max_attempts", "database_pool_min")
    @classmethod
    def check_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @model_validator(mode="after")
    def check_pool_bounds(self) -> 'LedgerConfig':
        if self.database_pool_max < self.database_pool_min:
            raise ValueError("database_pool_max must not be less than database_pool_min")
        return self


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
