"""
Service configuration settings.

Settings are read from the environment (and an optional ``.env`` file) once
and handed explicitly to the components that need them.
"""

import ipaddress
from typing import List, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings

PROFILES = ("debug", "release")


class Settings(BaseSettings):
    """Dusty Shelf configuration settings."""

    # API Settings
    api_title: str = "Dusty Shelf API"
    api_version: str = "1.0.0"
    api_description: str = "A private API for keeping books on the Dusty Shelf"

    # Server Settings
    host_address: str = "0.0.0.0"
    port_number: int = Field(default=8080, ge=1, le=65535)
    workers: int = Field(default=10, ge=1)
    dusty_profile: str = "release"

    # Database Settings
    database_url: str
    db_pool_size: int = 32
    db_pool_timeout: float = 5.0
    create_schema: bool = True

    # Security Settings
    jwt_secret: str
    json_limit_bytes: int = Field(default=102400, ge=1)

    # CORS Settings
    cors_origins: List[str] = ["*"]

    # Demo payload served by /config
    config_name: str = "etch1000"
    config_age: int = Field(default=25, ge=0, le=255)

    # Logging (profile decides when unset)
    log_level: Optional[str] = None
    log_format: Optional[str] = None
    log_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    @validator('jwt_secret')
    def validate_jwt_secret(cls, v):
        """Refuse to start with an empty signing secret."""
        if not v.strip():
            raise ValueError('JWT_SECRET must not be empty')
        return v

    @validator('database_url')
    def validate_database_url(cls, v):
        if not v.strip():
            raise ValueError('DATABASE_URL must not be empty')
        return v

    @validator('host_address')
    def validate_host_address(cls, v):
        """Only literal IPv4 or IPv6 addresses are accepted."""
        try:
            ipaddress.ip_address(v)
        except ValueError:
            raise ValueError(f'Could not parse HOST_ADDRESS {v!r} (only IPv4 or IPv6 allowed)')
        return v

    @validator('dusty_profile')
    def validate_profile(cls, v):
        if v.lower() not in PROFILES:
            raise ValueError(f'Expected profile set using DUSTY_PROFILE, use one of: {list(PROFILES)}')
        return v.lower()

    @validator('db_pool_size')
    def validate_pool_size(cls, v):
        if v < 1 or v > 256:
            raise ValueError('db_pool_size must be between 1 and 256')
        return v

    @validator('db_pool_timeout')
    def validate_pool_timeout(cls, v):
        if v <= 0:
            raise ValueError('db_pool_timeout must be positive')
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        if v is None:
            return v
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @validator('log_format')
    def validate_log_format(cls, v):
        if v is None:
            return v
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    def is_debug(self) -> bool:
        """Check if running with the debug profile."""
        return self.dusty_profile == "debug"

    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level
        return "DEBUG" if self.is_debug() else "WARNING"

    def effective_log_format(self) -> str:
        if self.log_format:
            return self.log_format
        return "console" if self.is_debug() else "json"

    def graceful_shutdown_timeout(self) -> Optional[int]:
        """Seconds uvicorn waits for in-flight requests on shutdown."""
        return 1 if self.is_debug() else None
