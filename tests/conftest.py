import threading
import time
import pytest
from pathlib import Path
from typing import Dict, List, Optional

from spoilr.config.models import AppSettings, TemplatePreset
from spoilr.domain.errors import UploadError
from spoilr.domain.models import (
    CONTACT_SHEET,
    GeneratedMedia,
    ImageHost,
    MediaMetadata,
    UploadResult,
    screenshot_variant,
)
from spoilr.infrastructure.event_bus import EventBus
from spoilr.pipeline.context import AppContext
from spoilr.pipeline.orchestrator import Orchestrator

# ============================================================================
# In-memory stores
# ============================================================================


class InMemorySettingsStore:
    def __init__(self, settings: Optional[AppSettings] = None):
        self.settings = settings or AppSettings()
        self.saved: List[AppSettings] = []

    def load(self) -> AppSettings:
        return self.settings

    def save(self, settings: AppSettings) -> None:
        self.settings = settings
        self.saved.append(settings)


class InMemoryPresetStore:
    def __init__(self):
        self.presets: Dict[str, TemplatePreset] = {}
        self.current_id: Optional[str] = None

    def load_all(self) -> List[TemplatePreset]:
        return list(self.presets.values())

    def save(self, preset: TemplatePreset) -> None:
        self.presets[preset.id] = preset

    def delete(self, preset_id: str) -> bool:
        return self.presets.pop(preset_id, None) is not None

    def load_current_id(self) -> Optional[str]:
        return self.current_id

    def save_current_id(self, preset_id: str) -> None:
        self.current_id = preset_id


# ============================================================================
# Fake collaborators
# ============================================================================


class ConcurrencyTracker:
    """Counts how many calls are inside a section at once."""

    def __init__(self):
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.calls = 0

    def __enter__(self):
        with self._lock:
            self.active += 1
            self.calls += 1
            self.max_active = max(self.max_active, self.active)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        with self._lock:
            self.active -= 1
        return False


class FakeProbe:
    def __init__(
        self,
        duration: float = 120.0,
        failures: Optional[Dict[str, Exception]] = None,
        gate: Optional[threading.Event] = None,
    ):
        self.duration = duration
        self.failures = failures or {}
        self.gate = gate
        self.started = threading.Event()
        self.calls: List[Path] = []

    def analyze(self, path: Path) -> MediaMetadata:
        self.calls.append(path)
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=10)
        if path.name in self.failures:
            raise self.failures[path.name]
        return MediaMetadata(
            duration=self.duration,
            width=1920,
            height=1080,
            bit_rate=5_000_000,
            video_codec="h264",
            video_bit_rate=4_000_000,
            video_fps=23.976,
            video_fps_fractional="24000/1001",
            audio_codec="aac",
            audio_bit_rate=128_000,
            audio_sample_rate=48000,
            audio_channels=2,
            raw={"general": {"format_name": "mov,mp4"}, "video": {"profile": "High"}, "audio": {}},
        )


class FakeGenerator:
    """Writes small placeholder images into the request's output directory."""

    def __init__(
        self,
        delay: float = 0.0,
        gate: Optional[threading.Event] = None,
        contact_sheet_fails: bool = False,
        error: Optional[Exception] = None,
    ):
        self.delay = delay
        self.gate = gate
        self.contact_sheet_fails = contact_sheet_fails
        self.error = error
        self.requests = []
        self.tracker = ConcurrencyTracker()
        self.started = threading.Event()

    def generate(self, request) -> GeneratedMedia:
        with self.tracker:
            self.requests.append(request)
            self.started.set()
            if self.gate is not None:
                self.gate.wait(timeout=10)
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error

            request.output_dir.mkdir(parents=True, exist_ok=True)
            media = GeneratedMedia()
            if request.contact_sheet:
                if self.contact_sheet_fails:
                    media.warnings.append("Contact sheet generation failed: mtn exited with 1")
                else:
                    path = request.output_dir / f"{request.file_path.stem}_s.jpg"
                    path.write_bytes(b"sheet")
                    media.images[CONTACT_SHEET] = path
            for index in range(1, request.screenshot_count + 1):
                path = request.output_dir / f"screenshot_{index}.jpg"
                path.write_bytes(b"shot")
                media.images[screenshot_variant(index)] = path
            return media


class FakeUploader:
    def __init__(
        self,
        host: ImageHost,
        fail: bool = False,
        prepare_error: Optional[Exception] = None,
        gate: Optional[threading.Event] = None,
        delay: float = 0.0,
        album_url: Optional[str] = None,
    ):
        self.host = host
        self.fail = fail
        self.prepare_error = prepare_error
        self.gate = gate
        self.delay = delay
        self.album_url = album_url
        self.prepared_with: List[dict] = []
        self.requests = []
        self.tracker = ConcurrencyTracker()
        self.started = threading.Event()

    def prepare(self, credentials) -> None:
        self.prepared_with.append(dict(credentials))
        if self.prepare_error is not None:
            raise self.prepare_error

    def upload(self, request) -> UploadResult:
        with self.tracker:
            self.requests.append(request)
            self.started.set()
            if self.gate is not None:
                self.gate.wait(timeout=10)
            if self.delay:
                time.sleep(self.delay)
            if self.fail:
                raise UploadError(self.host.value, "HTTP 503")
            return UploadResult(
                url=f"[img]https://{self.host.value}.test/{request.file_name}[/img]",
                big_url=f"https://{self.host.value}.test/big/{request.file_name}",
                album_url=self.album_url,
            )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()


@pytest.fixture
def settings_store():
    return InMemorySettingsStore()


@pytest.fixture
def preset_store():
    return InMemoryPresetStore()


@pytest.fixture
def context(settings_store, preset_store):
    return AppContext(settings_store, preset_store)


@pytest.fixture
def video_files(tmp_path):
    """Three small files with video extensions."""
    input_dir = tmp_path / "input"
    input_dir.mkdir()
    files = []
    for name in ("a.mp4", "b.mkv", "c.avi"):
        f = input_dir / name
        f.write_bytes(b"dummy video content " * 100)
        files.append(f)
    return files


@pytest.fixture
def make_orchestrator(event_bus, tmp_path):
    """Factory: make_orchestrator(settings=..., uploaders=..., probe=..., generator=...)."""
    def factory(
        settings: Optional[AppSettings] = None,
        uploaders: Optional[Dict[ImageHost, FakeUploader]] = None,
        probe: Optional[FakeProbe] = None,
        generator: Optional[FakeGenerator] = None,
        preset_store: Optional[InMemoryPresetStore] = None,
    ) -> Orchestrator:
        context = AppContext(InMemorySettingsStore(settings), preset_store or InMemoryPresetStore())
        if uploaders is None:
            uploaders = {ImageHost.FASTPIC: FakeUploader(ImageHost.FASTPIC)}
        return Orchestrator(
            context=context,
            event_bus=event_bus,
            media_probe=probe or FakeProbe(),
            screenshot_generator=generator or FakeGenerator(),
            uploaders=uploaders,
        )
    return factory


def run_to_completion(orchestrator: Orchestrator, timeout: float = 10.0) -> None:
    orchestrator.start_processing()
    assert orchestrator.wait(timeout=timeout), "batch did not finish in time"


@pytest.fixture
def run_batch():
    return run_to_completion


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
