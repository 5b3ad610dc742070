"""Template presets and the current-preset pointer.

Built-in presets are never written to the store unless edited: editing one
stores an override under the same id, so ``get_default_template()`` can always
restore the shipped text and deleting the override brings the built-in back.
"""

import logging
import threading
import uuid
from typing import Dict, List, Optional, Protocol

from spoilr.config.models import TemplatePreset
from spoilr.domain.errors import BuiltinPresetError, UnknownPresetError

DEFAULT_PRESET_ID = "default-pl"

DEFAULT_TEMPLATE = """[spoiler="%FILE_NAME% | %FILE_SIZE%"]
File: %FILE_NAME%
Size: %FILE_SIZE%
Duration: %DURATION%
Video: %VIDEO_CODEC% / %VIDEO_FPS% FPS / %WIDTH%x%HEIGHT% / %VIDEO_BIT_RATE%
Audio: %AUDIO_CODEC% / %AUDIO_SAMPLE_RATE% / %AUDIO_CHANNELS% / %AUDIO_BIT_RATE%

%CONTACT_SHEET_FP%

%SCREENSHOTS_FP%
[/spoiler]"""

EMP_TEMPLATE = """[spoiler=%FILE_NAME% | %FILE_SIZE%]
File: %FILE_NAME%
Size: %FILE_SIZE%
Duration: %DURATION%
Video: %VIDEO_CODEC% / %VIDEO_FPS% FPS / %WIDTH%x%HEIGHT% / %VIDEO_BIT_RATE%
Audio: %AUDIO_CODEC% / %AUDIO_SAMPLE_RATE% / %AUDIO_CHANNELS% / %AUDIO_BIT_RATE%

%CONTACT_SHEET_HAM%

%SCREENSHOTS_HAM%
[/spoiler]"""

BUILTIN_PRESETS: List[TemplatePreset] = [
    TemplatePreset(id=DEFAULT_PRESET_ID, name="PL Default", template=DEFAULT_TEMPLATE),
    TemplatePreset(id="default-emp", name="EMP Default", template=EMP_TEMPLATE),
]


class PresetStore(Protocol):
    def load_all(self) -> List[TemplatePreset]: ...
    def save(self, preset: TemplatePreset) -> None: ...
    def delete(self, preset_id: str) -> bool: ...
    def load_current_id(self) -> Optional[str]: ...
    def save_current_id(self, preset_id: str) -> None: ...


class PresetManager:
    """Owns preset CRUD and the process-wide current preset id."""

    def __init__(self, store: PresetStore, default_id: str = DEFAULT_PRESET_ID):
        self.store = store
        self.default_id = default_id
        self.logger = logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._builtins: Dict[str, TemplatePreset] = {p.id: p for p in BUILTIN_PRESETS}

    def _stored(self) -> Dict[str, TemplatePreset]:
        return {p.id: p for p in self.store.load_all()}

    def list_presets(self) -> List[TemplatePreset]:
        """Built-ins first (with overrides applied), then user presets in save order."""
        with self._lock:
            stored = self._stored()
            presets = [stored.get(pid, builtin) for pid, builtin in self._builtins.items()]
            presets.extend(p for pid, p in stored.items() if pid not in self._builtins)
            return [p.model_copy() for p in presets]

    def get(self, preset_id: str) -> TemplatePreset:
        for preset in self.list_presets():
            if preset.id == preset_id:
                return preset
        raise UnknownPresetError(preset_id)

    def current_id(self) -> str:
        with self._lock:
            current = self.store.load_current_id()
            if current and any(p.id == current for p in self.list_presets()):
                return current
            return self.default_id

    def current_template(self) -> str:
        with self._lock:
            return self.get(self.current_id()).template

    def default_template(self) -> str:
        return self._builtins[self.default_id].template

    def set_current(self, preset_id: str) -> None:
        with self._lock:
            self.get(preset_id)
            self.store.save_current_id(preset_id)
            self.logger.info(f"Current template preset: {preset_id}")

    def set_template(self, template: str) -> TemplatePreset:
        """Replaces the current preset's text; a built-in gets a stored override."""
        with self._lock:
            preset = self.get(self.current_id())
            updated = preset.model_copy(update={"template": template})
            self.store.save(updated)
            return updated

    def save(self, name: str, template: str) -> TemplatePreset:
        if not name.strip():
            raise ValueError("preset name cannot be empty")
        if not template.strip():
            raise ValueError("template cannot be empty")
        preset = TemplatePreset(id=str(uuid.uuid4()), name=name, template=template)
        with self._lock:
            self.store.save(preset)
        self.logger.info(f"Saved template preset {preset.name!r} ({preset.id})")
        return preset

    def delete(self, preset_id: str) -> None:
        with self._lock:
            was_current = self.current_id() == preset_id
            if not self.store.delete(preset_id):
                if preset_id in self._builtins:
                    raise BuiltinPresetError(preset_id)
                raise UnknownPresetError(preset_id)
            if was_current:
                self.store.save_current_id(self.default_id)
            self.logger.info(f"Deleted template preset {preset_id}")
