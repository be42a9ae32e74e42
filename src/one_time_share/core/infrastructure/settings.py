"""
Settings module for one_time_share.
Single source of configuration.

Load order (later wins):
1. Defaults from code
2. JSON config file (APP_CONFIG_FILE, default ``app-config.json``) if it exists
3. ENV variables
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

from one_time_share.utils.exceptions import ConfigError

DEFAULT_CONFIG_FILE = "app-config.json"

# JSON config keys (as in app-config.json) -> Settings attribute
_FILE_KEYS: dict[str, str] = {
    "Port": "PORT",
    "Host": "HOST",
    "DatabasePath": "DATABASE_PATH",
    "ForceUnprotectedHttp": "FORCE_UNPROTECTED_HTTP",
    "CertPath": "CERT_PATH",
    "KeyPath": "KEY_PATH",
    "DefaultRetentionLimitMinutes": "DEFAULT_RETENTION_LIMIT_MINUTES",
    "DefaultMaxMessageSizeBytes": "DEFAULT_MAX_MESSAGE_SIZE_BYTES",
    "DefaultMessageCreationLimitMinutes": "DEFAULT_MESSAGE_CREATION_LIMIT_MINUTES",
    "JanitorIntervalSec": "JANITOR_INTERVAL_SEC",
    "DefaultIdentityToken": "DEFAULT_IDENTITY_TOKEN",
    "LogLevel": "LOG_LEVEL",
}


# ============= HELPERS =============

def _get_env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _get_bool(name: str, default: bool = False) -> bool:
    val = _get_env(name, str(default))
    return val.lower() in ("1", "true", "yes", "on")


def _get_int(name: str, default: int = 0) -> int:
    val = _get_env(name)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {val!r}") from None


def _get_float(name: str, default: float = 0.0) -> float:
    val = _get_env(name)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {val!r}") from None


def _read_config_file(path: Path) -> dict[str, Any]:
    """Read app-config.json. Unknown keys are an error, as are malformed values."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"error while reading config file {str(path)!r}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"config file {str(path)!r} must contain a JSON object")

    unknown = sorted(set(raw) - set(_FILE_KEYS))
    if unknown:
        raise ConfigError(f"unknown fields in config file: {', '.join(unknown)}")
    return {_FILE_KEYS[k]: v for k, v in raw.items()}


# ============= SETTINGS =============

@dataclass
class Settings:
    """Process configuration. Limits use 0 for "unlimited"."""

    PORT: int = 8080
    HOST: str = "0.0.0.0"
    DATABASE_PATH: str = "./data/one-time-share.sqlite3"

    FORCE_UNPROTECTED_HTTP: bool = False
    CERT_PATH: str = ""
    KEY_PATH: str = ""

    # limits of the identity that serves the '/' page
    DEFAULT_IDENTITY_TOKEN: str = "default"
    DEFAULT_RETENTION_LIMIT_MINUTES: int = 1440
    DEFAULT_MAX_MESSAGE_SIZE_BYTES: int = 10240
    DEFAULT_MESSAGE_CREATION_LIMIT_MINUTES: int = 0

    JANITOR_INTERVAL_SEC: float = 60.0
    LOG_LEVEL: str = "INFO"

    def validate(self) -> None:
        if not (0 < self.PORT < 65536):
            raise ConfigError(f"PORT must be in 1..65535, got {self.PORT}")
        if not self.DATABASE_PATH:
            raise ConfigError("DATABASE_PATH is required")
        if not self.DEFAULT_IDENTITY_TOKEN:
            raise ConfigError("DEFAULT_IDENTITY_TOKEN is required")
        for name in (
            "DEFAULT_RETENTION_LIMIT_MINUTES",
            "DEFAULT_MAX_MESSAGE_SIZE_BYTES",
            "DEFAULT_MESSAGE_CREATION_LIMIT_MINUTES",
        ):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0")
        if self.JANITOR_INTERVAL_SEC <= 0:
            raise ConfigError("JANITOR_INTERVAL_SEC must be > 0")
        if not self.FORCE_UNPROTECTED_HTTP and not (self.CERT_PATH and self.KEY_PATH):
            raise ConfigError("CERT_PATH and KEY_PATH are required unless FORCE_UNPROTECTED_HTTP is set")

    @classmethod
    def load(cls, config_file: Optional[str] = None) -> "Settings":
        """Load settings from code defaults, the JSON config file and ENV, then validate."""
        values: dict[str, Any] = {}

        path = Path(config_file or _get_env("APP_CONFIG_FILE", DEFAULT_CONFIG_FILE))
        if path.is_file():
            values.update(_read_config_file(path))
        elif config_file:
            raise ConfigError(f"config file not found: {config_file}")

        settings = cls(**values)
        for f in fields(cls):
            if not _get_env(f.name):
                continue
            if isinstance(f.default, bool):
                setattr(settings, f.name, _get_bool(f.name))
            elif isinstance(f.default, int):
                setattr(settings, f.name, _get_int(f.name))
            elif isinstance(f.default, float):
                setattr(settings, f.name, _get_float(f.name))
            else:
                setattr(settings, f.name, _get_env(f.name))

        settings._coerce()
        settings.validate()
        return settings

    def _coerce(self) -> None:
        """Config file values come untyped from JSON."""
        for f in fields(self):
            value = getattr(self, f.name)
            try:
                if isinstance(f.default, bool):
                    if not isinstance(value, bool):
                        raise ValueError(value)
                elif isinstance(f.default, int):
                    if isinstance(value, bool):
                        raise ValueError(value)
                    setattr(self, f.name, int(value))
                elif isinstance(f.default, float):
                    setattr(self, f.name, float(value))
                else:
                    setattr(self, f.name, str(value))
            except (TypeError, ValueError):
                raise ConfigError(f"invalid value for {f.name}: {value!r}") from None


# ============= SINGLETON =============

_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the process-wide settings instance"""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.load()
    return _settings_instance


def reload_settings() -> Settings:
    """Reload settings (tests)"""
    global _settings_instance
    _settings_instance = None
    return get_settings()


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "Settings",
    "get_settings",
    "reload_settings",
]
