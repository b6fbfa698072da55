from __future__ import annotations

import logging

from PySide6.QtWidgets import (
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QLineEdit,
    QMessageBox,
    QVBoxLayout,
    QWidget,
)
from sqlalchemy.exc import SQLAlchemyError

from ..providers import is_supported
from ..storage.catalog import CatalogStore

logger = logging.getLogger(__name__)


class SettingsDialog(QDialog):
    """Edit the single settings profile: name, provider, model and API key."""

    def __init__(self, catalog: CatalogStore, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Settings")
        self.resize(400, 250)
        self._catalog = catalog

        self._name_edit = QLineEdit(self)
        self._name_edit.setPlaceholderText("Enter your name")

        self._provider_combo = QComboBox(self)
        for provider in catalog.providers():
            label = provider.name if is_supported(provider.name) else f"{provider.name} (unsupported)"
            self._provider_combo.addItem(label, provider.id)
        self._provider_combo.currentIndexChanged.connect(self._load_models)

        self._model_combo = QComboBox(self)

        self._api_key_edit = QLineEdit(self)
        self._api_key_edit.setEchoMode(QLineEdit.Password)
        self._api_key_edit.setPlaceholderText("Enter your API key")

        form = QFormLayout()
        form.addRow("Name", self._name_edit)
        form.addRow("Provider", self._provider_combo)
        form.addRow("Model", self._model_combo)
        form.addRow("API Key", self._api_key_edit)

        buttons = QDialogButtonBox(QDialogButtonBox.Save | QDialogButtonBox.Cancel, self)
        buttons.accepted.connect(self._save)
        buttons.rejected.connect(self.reject)

        layout = QVBoxLayout()
        layout.addLayout(form)
        layout.addWidget(buttons)
        self.setLayout(layout)

        self._load_current()

    def _load_current(self) -> None:
        settings = self._catalog.get_settings()
        if settings is None:
            self._load_models()
            return
        self._name_edit.setText(settings.display_name)
        self._api_key_edit.setText(settings.api_key or "")
        index = self._provider_combo.findData(settings.provider_id)
        if index >= 0:
            self._provider_combo.setCurrentIndex(index)
        self._load_models()
        model_index = self._model_combo.findData(settings.model_id)
        if model_index >= 0:
            self._model_combo.setCurrentIndex(model_index)

    def _load_models(self) -> None:
        self._model_combo.clear()
        provider_id = self._provider_combo.currentData()
        if provider_id is None:
            return
        for model in self._catalog.models_for_provider(provider_id):
            self._model_combo.addItem(model.name, model.id)

    def _save(self) -> None:
        provider_id = self._provider_combo.currentData()
        model_id = self._model_combo.currentData()
        if provider_id is None or model_id is None:
            QMessageBox.critical(self, "Settings", "Please select a model")
            return
        try:
            self._catalog.save_settings(
                self._name_edit.text().strip(),
                provider_id,
                model_id,
                self._api_key_edit.text().strip(),
            )
        except SQLAlchemyError as exc:
            logger.exception("Failed to save settings")
            QMessageBox.critical(self, "Settings", f"Failed to save settings: {exc}")
            return
        QMessageBox.information(self, "Success", "Settings saved")
        self.accept()
