"""Application configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path


def _default_data_root() -> Path:
    """Return the platform specific directory used for persistent data."""

    override = os.environ.get("VITASPORT_DATA_DIR")
    if override:
        return Path(override).expanduser()
    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home()))
        return base / "VitaSport"
    return Path.home() / ".vitasport"


def _path_from_env(name: str, default_name: str) -> Path:
    override = os.environ.get(name)
    if override:
        return Path(override).expanduser()
    return _default_data_root() / default_name


def _default_database_path() -> Path:
    """Resolve the database path taking overrides into account."""

    return _path_from_env("VITASPORT_DB", "vitasport.db")


def _default_reports_dir() -> Path:
    """Resolve the directory CSV reports are written to."""

    return _path_from_env("VITASPORT_REPORTS_DIR", "reports")


def _default_log_dir() -> Path:
    return _path_from_env("VITASPORT_LOG_DIR", "logs")


@dataclass(slots=True)
class Settings:
    """Runtime configuration loaded from environment variables."""

    app_name: str = field(default_factory=lambda: os.environ.get("VITASPORT_APP_NAME", "VitaSport Admin"))
    host: str = field(default_factory=lambda: os.environ.get("VITASPORT_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.environ.get("VITASPORT_PORT", "8000")))
    reload: bool = field(default_factory=lambda: os.environ.get("VITASPORT_RELOAD", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.environ.get("VITASPORT_LOG_LEVEL", "info"))
    data_dir: Path = field(default_factory=_default_data_root)
    database_path: Path = field(default_factory=_default_database_path)
    reports_dir: Path = field(default_factory=_default_reports_dir)
    log_dir: Path = field(default_factory=_default_log_dir)
    busy_timeout: float = field(default_factory=lambda: float(os.environ.get("VITASPORT_BUSY_TIMEOUT", "5.0")))
    lock_timeout: float = field(default_factory=lambda: float(os.environ.get("VITASPORT_LOCK_TIMEOUT", "30.0")))
    max_page_size: int = field(default_factory=lambda: int(os.environ.get("VITASPORT_MAX_PAGE_SIZE", "200")))
    low_stock_threshold: int = field(default_factory=lambda: int(os.environ.get("VITASPORT_LOW_STOCK", "5")))

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_path}"

    def ensure_storage(self) -> None:
        """Ensure that the database, report and log directories exist."""

        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    settings = Settings()
    settings.ensure_storage()
    return settings
