from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ProcessingState(str, Enum):
    PENDING = "pending"
    ANALYZING_MEDIA = "analyzing_media"
    WAITING_FOR_SCREENSHOT_SLOT = "waiting_for_screenshot_slot"
    GENERATING_SCREENSHOTS = "generating_screenshots"
    WAITING_FOR_UPLOAD_SLOT = "waiting_for_upload_slot"
    UPLOADING_SCREENSHOTS = "uploading_screenshots"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingState.COMPLETED, ProcessingState.ERROR)

    @property
    def is_in_flight(self) -> bool:
        return not self.is_terminal and self is not ProcessingState.PENDING


class ImageHost(str, Enum):
    FASTPIC = "fastpic"
    IMGBOX = "imgbox"
    HAMSTER = "hamster"

    @property
    def token_suffix(self) -> str:
        """Suffix used by template tokens, e.g. %SCREENSHOTS_FP%."""
        return _TOKEN_SUFFIXES[self]

    @property
    def artifact_prefix(self) -> str:
        return _ARTIFACT_PREFIXES[self]


_TOKEN_SUFFIXES = {ImageHost.FASTPIC: "FP", ImageHost.IMGBOX: "IB", ImageHost.HAMSTER: "HAM"}
_ARTIFACT_PREFIXES = {ImageHost.FASTPIC: "fastpic", ImageHost.IMGBOX: "imgbox", ImageHost.HAMSTER: "ham"}

# Variant names of generated media; screenshots are numbered screenshot-01, screenshot-02, ...
CONTACT_SHEET = "contactsheet"
SCREENSHOT = "screenshot"


def screenshot_variant(index: int) -> str:
    return f"{SCREENSHOT}-{index:02d}"


def artifact_key(host: ImageHost, variant: str, big: bool = False) -> str:
    key = f"{host.artifact_prefix}-{variant}"
    return f"{key}-big" if big else key


def album_key(host: ImageHost) -> str:
    return f"{host.artifact_prefix}-album"


class MediaMetadata(BaseModel):
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    bit_rate: Optional[int] = None
    video_codec: Optional[str] = None
    video_bit_rate: Optional[int] = None
    video_fps: Optional[float] = None
    video_fps_fractional: Optional[str] = None
    audio_codec: Optional[str] = None
    audio_bit_rate: Optional[int] = None
    audio_sample_rate: Optional[int] = None
    audio_channels: Optional[int] = None
    # Raw ffprobe fields keyed by section ("general", "video", "audio")
    raw: Dict[str, Dict[str, str]] = Field(default_factory=dict)


class Movie(BaseModel):
    id: str
    file_name: str
    file_path: Path
    file_size: int = 0
    metadata: Optional[MediaMetadata] = None
    processing_state: ProcessingState = ProcessingState.PENDING
    processing_error: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    artifacts: Dict[str, str] = Field(default_factory=dict)
    order_index: int = 0

    def reset(self) -> None:
        self.processing_state = ProcessingState.PENDING
        self.processing_error = None
        self.errors = []
        self.artifacts = {}


class AppState(BaseModel):
    """Immutable snapshot of the orchestrator published to subscribers."""
    model_config = ConfigDict(frozen=True)

    processing: bool = False
    movies: List[Movie] = Field(default_factory=list)
    revision: int = 0


class GenerationRequest(BaseModel):
    file_path: Path
    output_dir: Path
    duration: Optional[float] = None
    screenshot_count: int = 0
    quality: int = 2
    tool_args: str = ""
    contact_sheet: bool = False
    timeout_s: Optional[float] = None


class GeneratedMedia(BaseModel):
    """Local images keyed by variant, in generation order, plus non-fatal warnings."""
    images: Dict[str, Path] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)

    @property
    def contact_sheet(self) -> Optional[Path]:
        return self.images.get(CONTACT_SHEET)

    @property
    def screenshots(self) -> List[Path]:
        return [path for variant, path in self.images.items() if variant.startswith(f"{SCREENSHOT}-")]


class UploadRequest(BaseModel):
    path: Path
    file_name: str
    miniature_size: int
    credentials: Dict[str, str] = Field(default_factory=dict)


class UploadResult(BaseModel):
    url: str
    big_url: Optional[str] = None
    album_url: Optional[str] = None
