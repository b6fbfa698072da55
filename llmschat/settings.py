"""JSON settings file next to the app, layered over built-in defaults.

Keys are addressed with dotted paths such as ``"llm.temperature"``. A missing
or malformed file falls back to the defaults; typed getters return the
default whenever a stored value has the wrong type.
"""

from __future__ import annotations

import json
import logging
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "llmschat_settings.json"

DEFAULT_SETTINGS: dict[str, Any] = {
    "app": {
        "window_title": "AI Chat",
        "greeting": "How can I help you today?",
    },
    "llm": {
        "temperature": 0.7,
        "max_tokens": 1024,
        "request_timeout": 60.0,
    },
    "stream": {
        "queue_size": 64,
        "poll_interval": 0.1,
    },
    "chat": {
        "max_workers": 4,
    },
    "database": {
        "path": None,
    },
    "logging": {
        "level": "INFO",
    },
}


def settings_path(root: Path) -> Path:
    return root / SETTINGS_FILENAME


def load_settings(root: Path) -> dict[str, Any]:
    path = settings_path(root)
    if not path.is_file():
        return deepcopy(DEFAULT_SETTINGS)

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return deepcopy(DEFAULT_SETTINGS)

    if not isinstance(payload, Mapping):
        logger.warning("Settings file %s must contain a JSON object", path)
        return deepcopy(DEFAULT_SETTINGS)

    unknown = sorted(set(payload) - set(DEFAULT_SETTINGS))
    if unknown:
        logger.warning("Unknown settings sections ignored by the app: %s", ", ".join(unknown))
    return _deep_merge(DEFAULT_SETTINGS, payload)


def get_setting(settings: Mapping[str, Any], dotted_key: str, default: Any = None) -> Any:
    node: Any = settings
    for part in dotted_key.split("."):
        if not isinstance(node, Mapping):
            return default
        node = node.get(part, default)
    return node


def get_int_setting(
    settings: Mapping[str, Any],
    dotted_key: str,
    default: int,
    minimum: int | None = None,
) -> int:
    raw = get_setting(settings, dotted_key, default)
    # bool は int のサブクラスなので明示的に除外する
    value = raw if isinstance(raw, int) and not isinstance(raw, bool) else default
    if minimum is not None and value < minimum:
        return minimum
    return value


def get_float_setting(
    settings: Mapping[str, Any],
    dotted_key: str,
    default: float,
    minimum: float | None = None,
) -> float:
    raw = get_setting(settings, dotted_key, default)
    value = float(raw) if isinstance(raw, (int, float)) and not isinstance(raw, bool) else default
    if minimum is not None and value < minimum:
        return minimum
    return value


def get_str_setting(settings: Mapping[str, Any], dotted_key: str, default: str) -> str:
    raw = get_setting(settings, dotted_key, default)
    return raw if isinstance(raw, str) and raw.strip() else default


def resolve_path_setting(settings: Mapping[str, Any], dotted_key: str, root: Path) -> Path | None:
    """Relative paths are taken from ``root``; blank values mean "not set"."""

    raw = get_str_setting(settings, dotted_key, "")
    if not raw:
        return None
    path = Path(raw).expanduser()
    return (path if path.is_absolute() else root / path).resolve()


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(dict(base))
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged
