from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from spoilr.domain.models import ImageHost

DEFAULT_MTN_ARGS = "-b 2 -w 1200 -c 4 -r 4 -g 0 -k 1C1C1C -L 4:2 -F F0FFFF:10"
DEFAULT_VIDEO_EXTENSIONS = [
    ".mp4", ".mkv", ".avi", ".mov", ".wmv", ".m4v", ".ts", ".m2ts", ".webm", ".flv", ".mpg", ".mpeg",
]


class AppSettings(BaseModel):
    """Process-wide settings. Replaced as a whole, never mutated in place."""
    screenshot_count: int = Field(default=6, ge=1, le=20)
    image_miniature_size: int = Field(default=350, ge=100, le=800)
    screenshot_quality: int = Field(default=2, ge=1, le=31)  # ffmpeg -q:v scale
    max_concurrent_screenshots: int = Field(default=3, ge=1)
    max_concurrent_uploads: int = Field(default=2, ge=1)
    fastpic_sid: str = ""
    hamster_email: str = ""
    hamster_password: str = ""
    mtn_args: str = DEFAULT_MTN_ARGS
    save_media_directory: Optional[str] = None
    screenshot_spacer: str = " "
    video_extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_VIDEO_EXTENSIONS))
    tool_timeout_s: Optional[float] = Field(default=None, gt=0)

    @field_validator("mtn_args")
    @classmethod
    def default_empty_mtn_args(cls, v: str) -> str:
        return v if v.strip() else DEFAULT_MTN_ARGS

    @field_validator("save_media_directory")
    @classmethod
    def empty_directory_is_disabled(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v

    @field_validator("video_extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        return [(ext if ext.startswith(".") else f".{ext}").lower() for ext in v if ext]

    def credentials_for(self, host: ImageHost) -> Dict[str, str]:
        if host is ImageHost.FASTPIC:
            return {"sid": self.fastpic_sid}
        if host is ImageHost.HAMSTER:
            return {"email": self.hamster_email, "password": self.hamster_password}
        return {}

    def has_credentials(self, host: ImageHost) -> bool:
        """Fastpic and Imgbox accept anonymous uploads; Hamster needs a login."""
        if host is ImageHost.HAMSTER:
            return bool(self.hamster_email and self.hamster_password)
        return True


class TemplatePreset(BaseModel):
    id: str
    name: str
    template: str


class SpoilrConfig(BaseModel):
    """On-disk layout of the config file."""
    settings: AppSettings = Field(default_factory=AppSettings)
    template_presets: List[TemplatePreset] = Field(default_factory=list)
    current_preset_id: Optional[str] = None
