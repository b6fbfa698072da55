from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .settings import (
    get_float_setting,
    get_int_setting,
    get_str_setting,
    load_settings,
    resolve_path_setting,
)

DATA_DIR_ENV = "LLMSCHAT_DATA_DIR"
DB_PATH_ENV = "LLMSCHAT_DB_PATH"
DB_FILENAME = "chat.db"


def _app_root() -> Path:
    # PyInstaller 実行時は実行ファイルの隣を、通常時はリポジトリ直下をルートとする
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class AppPaths:
    root: Path
    data_dir: Path
    log_dir: Path

    @classmethod
    def from_root(cls, root: Path) -> "AppPaths":
        override = os.getenv(DATA_DIR_ENV)
        data_dir = Path(override).expanduser().resolve() if override else root / "data"
        return cls(root=root, data_dir=data_dir, log_dir=data_dir / "logs")

    def ensure(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)


@dataclass
class AppConfig:
    root: Path = field(default_factory=_app_root)
    settings: dict[str, Any] = field(default_factory=dict)
    paths: AppPaths = field(init=False)

    def __post_init__(self) -> None:
        if not self.settings:
            self.settings = load_settings(self.root)
        self.paths = AppPaths.from_root(self.root)

    @property
    def database_path(self) -> Path:
        env_override = os.getenv(DB_PATH_ENV)
        if env_override:
            return Path(env_override).expanduser().resolve()
        configured = resolve_path_setting(self.settings, "database.path", self.root)
        return configured or self.paths.data_dir / DB_FILENAME

    @property
    def window_title(self) -> str:
        return get_str_setting(self.settings, "app.window_title", "AI Chat")

    @property
    def greeting(self) -> str:
        return get_str_setting(self.settings, "app.greeting", "How can I help you today?")

    @property
    def temperature(self) -> float:
        return get_float_setting(self.settings, "llm.temperature", 0.7, minimum=0.0)

    @property
    def max_tokens(self) -> int:
        return get_int_setting(self.settings, "llm.max_tokens", 1024, minimum=1)

    @property
    def request_timeout(self) -> float:
        return get_float_setting(self.settings, "llm.request_timeout", 60.0, minimum=1.0)

    @property
    def stream_queue_size(self) -> int:
        return get_int_setting(self.settings, "stream.queue_size", 64, minimum=1)

    @property
    def stream_poll_interval(self) -> float:
        return get_float_setting(self.settings, "stream.poll_interval", 0.1, minimum=0.01)

    @property
    def max_workers(self) -> int:
        return get_int_setting(self.settings, "chat.max_workers", 4, minimum=1)

    @property
    def log_level(self) -> str:
        level = get_str_setting(self.settings, "logging.level", "INFO").strip().upper()
        # 不明なレベル名は basicConfig が ValueError にするので INFO に戻す
        return level if isinstance(logging.getLevelName(level), int) else "INFO"
