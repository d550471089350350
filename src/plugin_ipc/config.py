"""Config file management for plugin-ipc.

Files live under ~/.plugin-ipc/:
  config.json  — host URL, request timeout and logging settings
  logs/        — rotating log files written by ``log_setup``
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

APP_DIR = Path.home() / ".plugin-ipc"
CONFIG_FILE = APP_DIR / "config.json"


class Config(BaseModel):
    host_url: str = "ws://127.0.0.1:18090"
    # Seconds to wait for a command response; None waits forever.
    request_timeout: Optional[float] = Field(default=30.0, gt=0)
    log_level: str = "INFO"
    log_dir: Path = Field(default_factory=lambda: APP_DIR / "logs")


def ensure_app_dir(app_dir: Path = APP_DIR) -> Path:
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def load_config(path: Path | None = None) -> Config:
    path = path or CONFIG_FILE
    if path.exists():
        return Config.model_validate_json(path.read_text(encoding="utf-8"))
    return Config()


def save_config(config: Config, path: Path | None = None) -> None:
    path = path or CONFIG_FILE
    ensure_app_dir(path.parent)
    path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
