import logging
import threading
from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError

from spoilr.config.models import AppSettings
from spoilr.templates.presets import PresetManager, PresetStore


class SettingsStore(Protocol):
    def load(self) -> AppSettings: ...
    def save(self, settings: AppSettings) -> None: ...


class AppContext:
    """Process-wide state shared by the orchestrator and the template commands.

    Settings are loaded once and replaced atomically on update; readers always
    see a complete AppSettings record.
    """

    def __init__(self, settings_store: SettingsStore, preset_store: PresetStore, presets: Optional[PresetManager] = None):
        self.settings_store = settings_store
        self.presets = presets or PresetManager(preset_store)
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._settings = settings_store.load()

    @property
    def settings(self) -> AppSettings:
        with self._lock:
            return self._settings

    def update_settings(self, changes: Dict[str, Any]) -> AppSettings:
        """Validates and persists a partial update; raises pydantic's ValidationError."""
        unknown = set(changes) - set(AppSettings.model_fields)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        with self._lock:
            merged = {**self._settings.model_dump(), **changes}
            try:
                updated = AppSettings(**merged)
            except PydanticValidationError:
                self.logger.warning(f"Rejected settings update: {sorted(changes)}")
                raise
            self.settings_store.save(updated)
            self._settings = updated
        self.logger.info(f"Settings updated: {', '.join(sorted(changes))}")
        return updated
