"""
Settings.

``AppConfig`` reads the Supabase credentials, the credential policy, the
phone-code lifetime and the logging setup from the process environment,
falling back to a ``.env`` file and then to the defaults below.  Pass the
instance to constructors; ``get_config()`` exists for the entry point and
the logger factory.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Settings for the session flow, its stores and its logs."""

    # --- Supabase (identity provider + profile store) ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Profile store ---
    PROFILES_TABLE: str = "users"
    SQLITE_PATH: str = "sessionflow_local.db"

    # --- Credential policy ---
    MIN_PASSWORD_LENGTH: int = Field(default=6, ge=1)

    # Lifetime of a phone verification handle in seconds.  0 disables the
    # local check and leaves expiry entirely to the provider.
    PHONE_HANDLE_TTL_S: int = Field(default=3600, ge=0)

    # Report unknown accounts as bad credentials on sign-in.
    MASK_ACCOUNT_NOT_FOUND: bool = False

    # --- Landing screen ---
    FALLBACK_DISPLAY_NAME: str = "User"

    # --- Logging ---
    LOG_FILE: str = "sessionflow.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_offline(self) -> "AppConfig":
        """Warn once at load time when every auth call is bound to fail."""
        if not self.SUPABASE_URL or not self.SUPABASE_ANON_KEY.get_secret_value():
            source = ".env" if Path(".env").exists() else "the environment (no .env file)"
            logging.getLogger("sessionflow.config").warning(
                "SUPABASE_URL / SUPABASE_ANON_KEY missing from %s; "
                "running offline.",
                source,
            )
        return self


_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Process-wide ``AppConfig``, built on first use."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
