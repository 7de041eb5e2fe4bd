from __future__ import annotations

import os
from pathlib import Path

from pydantic_settings import BaseSettings


def _default_data_dir() -> Path:
    base = os.environ.get("APPDATA") or os.environ.get("HOME") or "."
    return Path(base) / "HealthSpeedChecker"


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "HSPC_",
        "extra": "ignore",
    }

    # Persisted state (scan history db + license file)
    data_dir: Path = _default_data_dir()
    db_filename: str = "app.db"
    license_filename: str = "license.json"

    # Logging
    log_level: str = "INFO"

    # Automation scheduler
    automation_interval_seconds: int = 3600

    # Hard deadline for external processes run by fixes
    fix_timeout_seconds: int = 60

    # Checker pool size (1 = run checkers sequentially)
    scan_workers: int = 1

    # Network checker probes
    network_probe_url: str = "https://www.cloudflare.com/cdn-cgi/trace"
    network_probe_host: str = "example.com"
    network_timeout_seconds: float = 5.0

    # Local API
    api_host: str = "127.0.0.1"
    api_port: int = 8765

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename

    @property
    def license_path(self) -> Path:
        return self.data_dir / self.license_filename


settings = Settings()
