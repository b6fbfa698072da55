from __future__ import annotations

import logging

from PySide6.QtWidgets import QApplication

from ..resources import available_themes, theme_path

logger = logging.getLogger(__name__)

DEFAULT_THEME = "dracula"


def apply_theme(app: QApplication, name: str = DEFAULT_THEME) -> bool:
    path = theme_path(name)
    if not path.is_file():
        logger.warning("Theme %r not found (available: %s)", name, ", ".join(available_themes()) or "none")
        return False
    app.setStyleSheet(path.read_text(encoding="utf-8"))
    logger.info("Applied theme %s", name)
    return True
