import logging
import threading
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from pydantic import ValidationError

from .models import AppSettings, SpoilrConfig, TemplatePreset

CONFIG_FILENAME = "spoilr.config"
APP_NAME = "spoilr"

_logger = logging.getLogger(__name__)


def default_config_path(cwd: Optional[Path] = None) -> Path:
    """Portable config next to the working directory wins over the user config dir."""
    portable = (cwd or Path.cwd()) / CONFIG_FILENAME
    if portable.exists():
        return portable
    return Path(typer.get_app_dir(APP_NAME)) / CONFIG_FILENAME


def parse_settings(data: Dict[str, Any]) -> AppSettings:
    """Builds AppSettings, resetting individually invalid values to their defaults."""
    try:
        return AppSettings(**data)
    except ValidationError as e:
        invalid = {err["loc"][0] for err in e.errors() if err.get("loc")}
        _logger.warning(f"Invalid settings reset to defaults: {', '.join(sorted(map(str, invalid)))}")
        cleaned = {k: v for k, v in data.items() if k not in invalid}
        return AppSettings(**cleaned)


def load_config(config_path: Path) -> SpoilrConfig:
    """Loads the YAML config file. A missing or empty file yields defaults."""
    if not config_path.exists():
        return SpoilrConfig()

    with open(config_path, 'r', encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        _logger.warning(f"Config file {config_path} is not a mapping; using defaults")
        return SpoilrConfig()

    presets: List[TemplatePreset] = []
    for raw in data.get("template_presets") or []:
        try:
            presets.append(TemplatePreset(**raw))
        except (ValidationError, TypeError) as e:
            _logger.warning(f"Skipping invalid template preset {raw!r}: {e}")

    return SpoilrConfig(
        settings=parse_settings(data.get("settings") or {}),
        template_presets=presets,
        current_preset_id=data.get("current_preset_id"),
    )


class ConfigFile:
    """Thread-safe read-modify-write access to the YAML config file."""

    def __init__(self, path: Path):
        self.path = path
        self.lock = threading.RLock()
        self._config: Optional[SpoilrConfig] = None

    def read(self) -> SpoilrConfig:
        with self.lock:
            if self._config is None:
                self._config = load_config(self.path)
            return self._config.model_copy(deep=True)

    def write(self, config: SpoilrConfig) -> None:
        with self.lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            data = config.model_dump(mode="json")
            tmp_path = self.path.with_suffix(".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
            tmp_path.replace(self.path)
            self._config = config.model_copy(deep=True)


class YamlSettingsStore:
    """SettingsStore backed by the `settings` section of the config file."""

    def __init__(self, config_file: ConfigFile):
        self.config_file = config_file

    def load(self) -> AppSettings:
        return self.config_file.read().settings

    def save(self, settings: AppSettings) -> None:
        with self.config_file.lock:
            config = self.config_file.read()
            config.settings = settings
            self.config_file.write(config)


class YamlPresetStore:
    """PresetStore backed by `template_presets` and `current_preset_id`."""

    def __init__(self, config_file: ConfigFile):
        self.config_file = config_file

    def load_all(self) -> List[TemplatePreset]:
        return self.config_file.read().template_presets

    def save(self, preset: TemplatePreset) -> None:
        with self.config_file.lock:
            config = self.config_file.read()
            for i, existing in enumerate(config.template_presets):
                if existing.id == preset.id:
                    config.template_presets[i] = preset
                    break
            else:
                config.template_presets.append(preset)
            self.config_file.write(config)

    def delete(self, preset_id: str) -> bool:
        with self.config_file.lock:
            config = self.config_file.read()
            kept = [p for p in config.template_presets if p.id != preset_id]
            if len(kept) == len(config.template_presets):
                return False
            config.template_presets = kept
            self.config_file.write(config)
            return True

    def load_current_id(self) -> Optional[str]:
        return self.config_file.read().current_preset_id

    def save_current_id(self, preset_id: str) -> None:
        with self.config_file.lock:
            config = self.config_file.read()
            config.current_preset_id = preset_id
            self.config_file.write(config)
