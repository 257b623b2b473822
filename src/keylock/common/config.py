"""Keylock configuration via pydantic-settings."""

import warnings
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "secret_key": "insecure-dev-key-change-me",
    "admin_password": "admin123",
}


class KeylockSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="KEYLOCK_")

    environment: str = "development"
    secret_key: str = "insecure-dev-key-change-me"

    # Administrator credentials exchanged for a signed token at /api/admin/auth
    admin_username: str = "admin"
    admin_password: str = "admin123"
    admin_token_max_age: int = 8 * 3600  # seconds

    # Storage
    storage_backend: Literal["json", "sql", "memory"] = "json"
    data_file: str = "./data/licenses.json"
    db_url: str = "sqlite+aiosqlite:///./data/keylock.db"

    # Key format: PREFIX-XXXXXXXX-XXXXXXXX-XXXXXXXX
    key_prefix: str = "MUSIC"
    key_groups: int = 3
    key_group_bytes: int = 4

    # Distribution metadata written on first start
    default_version: str = "1.0.0"
    default_update_message: str = "Update available"

    # API
    api_title: str = "Keylock"
    api_version: str = "0.1.0"
    api_prefix: str = ""
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = ["*"]

    log_level: str = "INFO"

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"KEYLOCK_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure defaults: set KEYLOCK_SECRET_KEY and "
                "KEYLOCK_ADMIN_PASSWORD for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> KeylockSettings:
    settings = KeylockSettings()
    settings.validate_for_production()
    return settings
