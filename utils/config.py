"""Configuration management for the viviendas inventory.

Settings come from environment variables; every variable has a default so
the service runs out of the box against an in-memory store.
"""

import json
import os as _os
from pathlib import Path
from typing import Any, Dict, Optional

BACKENDS = ("memory", "sqlite", "supabase")


def _env_bool(name: str, default: bool) -> bool:
    raw = _os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Base configuration class for organizing application settings."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary.

        Secrets (attributes ending in ``_key``) are masked.
        """
        out = {}
        for k, v in self.__dict__.items():
            if k.startswith("_"):
                continue
            if k.endswith("_key") and v:
                v = "***"
            out[k] = str(v) if isinstance(v, Path) else v
        return out

    def save_json(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    Environment variables:
        APP_BACKEND: Storage backend, "memory", "sqlite" or "supabase"
            (default: memory)
        APP_DB_PATH: SQLite database file (default: viviendas.sqlite)
        SUPABASE_URL: Base URL of the Supabase project (supabase backend and
            notifications)
        SUPABASE_ANON_KEY: Anon/public API key sent as ``apikey`` and bearer
        NOTIFY_ENABLED: Send status-change emails (default: true when
            SUPABASE_URL is set)
        NOTIFY_URL: Override for the notification endpoint (default:
            <SUPABASE_URL>/functions/v1/sendStatusEmail)
        APP_PORT: API server port (default: 8000)
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        IMPORT_LEDGER_PATH: JSONL file receiving one line per import run
            (default: import_runs/run_ledger.jsonl, empty disables)
        HTTP_TIMEOUT: Seconds before a backend or notification request
            times out (default: 10)
    """

    def __init__(self) -> None:
        self.backend = _os.getenv("APP_BACKEND", "memory").strip().lower()
        self.db_path = Path(_os.getenv("APP_DB_PATH", "viviendas.sqlite"))
        self.supabase_url: Optional[str] = (
            _os.getenv("SUPABASE_URL", "").strip().rstrip("/") or None
        )
        self.supabase_key: Optional[str] = (
            _os.getenv("SUPABASE_ANON_KEY", "").strip() or None
        )
        self.notify_enabled = _env_bool("NOTIFY_ENABLED", self.supabase_url is not None)
        self.notify_url: Optional[str] = _os.getenv("NOTIFY_URL", "").strip() or (
            f"{self.supabase_url}/functions/v1/sendStatusEmail"
            if self.supabase_url else None
        )
        self.api_port = int(_os.getenv("APP_PORT", "8000"))
        self.api_host = _os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = _os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = _os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )
        raw_ledger = _os.getenv("IMPORT_LEDGER_PATH", "import_runs/run_ledger.jsonl")
        self.ledger_path: Optional[Path] = Path(raw_ledger) if raw_ledger.strip() else None
        self.http_timeout = float(_os.getenv("HTTP_TIMEOUT", "10"))

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()
