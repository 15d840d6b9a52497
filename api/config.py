"""
API configuration settings.
"""

from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "BookStack API"
    api_version: str = "1.0.0"
    api_description: str = "REST backend for user authentication and a per-user book catalog"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Database Settings
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "bookstack"

    # Token Settings (secrets have no default: the service refuses to boot without them)
    access_token_secret: str
    refresh_token_secret: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 3

    # Refresh Cookie Settings
    refresh_cookie_name: str = "refreshToken"
    cookie_secure: bool = True
    cookie_samesite: str = "none"
    cookie_path: str = "/"
    cookie_domain: Optional[str] = None

    # CORS Settings
    cors_origins: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }

    @field_validator("access_token_secret", "refresh_token_secret")
    @classmethod
    def validate_secret(cls, v):
        """Reject empty signing secrets."""
        if not v.strip():
            raise ValueError("token secrets must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    @field_validator("cookie_samesite")
    @classmethod
    def validate_samesite(cls, v):
        if v.lower() not in ("lax", "strict", "none"):
            raise ValueError("cookie_samesite must be one of: lax, strict, none")
        return v.lower()

    @property
    def refresh_cookie_max_age(self) -> int:
        """Refresh cookie lifetime in seconds, matching the refresh token."""
        return self.refresh_token_expire_days * 24 * 60 * 60
