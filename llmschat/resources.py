from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

THEME_DIR = ("llmschat", "themes")
THEME_SUFFIX = ".qss"


@lru_cache(maxsize=1)
def bundle_root() -> Path:
    """Directory holding the ``llmschat`` package, in a checkout or a frozen build."""

    # PyInstaller の onefile 実行時は _MEIPASS に展開される
    unpacked = getattr(sys, "_MEIPASS", None)
    if unpacked:
        return Path(unpacked).resolve()
    return Path(__file__).resolve().parent.parent


def resource_path(*relative_parts: str) -> Path:
    return bundle_root().joinpath(*relative_parts)


def theme_path(name: str) -> Path:
    return resource_path(*THEME_DIR, f"{name}{THEME_SUFFIX}")


def available_themes() -> list[str]:
    directory = resource_path(*THEME_DIR)
    if not directory.is_dir():
        return []
    return sorted(path.stem for path in directory.glob(f"*{THEME_SUFFIX}"))
