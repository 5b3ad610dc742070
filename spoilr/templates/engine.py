"""Template rendering for spoiler posts.

Templates are plain text with ``%TOKEN%`` placeholders drawn from a closed set
(file info, video/audio metadata, per-host contact sheets and screenshots) plus
the raw probe families ``%General@key%``, ``%Video@key%`` and ``%Audio@key%``.

Rendering is a single left-to-right pass over the template:
- recognised tokens are replaced, absent values render as an empty string;
- anything else between percent signs is left untouched;
- substituted values are never scanned again, so a URL or file name that
  happens to contain ``%FILE_NAME%`` is emitted as-is.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List

from spoilr.domain.models import (
    CONTACT_SHEET,
    SCREENSHOT,
    ImageHost,
    MediaMetadata,
    Movie,
    artifact_key,
)
from spoilr.templates.formatting import (
    format_bit_rate,
    format_channels,
    format_duration,
    format_file_size,
    format_fps,
    format_sample_rate,
)

DEFAULT_SPACER = " "

_RAW_SECTIONS = {"General": "general", "Video": "video", "Audio": "audio"}


def _int_text(value) -> str:
    return str(value) if value else ""


def _text(value) -> str:
    return value or ""


_METADATA_TOKENS: Dict[str, Callable[[MediaMetadata], str]] = {
    "DURATION": lambda m: format_duration(m.duration),
    "WIDTH": lambda m: _int_text(m.width),
    "HEIGHT": lambda m: _int_text(m.height),
    "BIT_RATE": lambda m: format_bit_rate(m.bit_rate),
    "VIDEO_BIT_RATE": lambda m: format_bit_rate(m.video_bit_rate),
    "VIDEO_CODEC": lambda m: _text(m.video_codec),
    "VIDEO_FPS": lambda m: format_fps(m.video_fps),
    "VIDEO_FPS_FRACTIONAL": lambda m: _text(m.video_fps_fractional),
    "AUDIO_BIT_RATE": lambda m: format_bit_rate(m.audio_bit_rate),
    "AUDIO_CODEC": lambda m: _text(m.audio_codec),
    "AUDIO_SAMPLE_RATE": lambda m: format_sample_rate(m.audio_sample_rate),
    "AUDIO_CHANNELS": lambda m: format_channels(m.audio_channels),
}

FILE_TOKENS = ("FILE_NAME", "FILE_SIZE")


def host_tokens(host: ImageHost) -> List[str]:
    s = host.token_suffix
    return [
        f"CONTACT_SHEET_{s}",
        f"CONTACT_SHEET_{s}_BIG",
        f"SCREENSHOTS_{s}",
        f"SCREENSHOTS_{s}_SPACED",
        f"SCREENSHOTS_{s}_BIG",
        f"SCREENSHOTS_{s}_BIG_SPACED",
    ]


TOKENS: FrozenSet[str] = frozenset(
    [*FILE_TOKENS, *_METADATA_TOKENS]
    + [token for host in ImageHost for token in host_tokens(host)]
)

_TOKEN_RE = re.compile(
    r"%(?:(?P<token>" + "|".join(sorted(TOKENS, key=len, reverse=True)) + r")"
    r"|(?P<section>General|Video|Audio)@(?P<key>[^%\s]+))%"
)


@dataclass(frozen=True)
class TemplateRequirements:
    """Which media each host needs for a given template."""
    contact_sheet_hosts: FrozenSet[ImageHost] = field(default_factory=frozenset)
    screenshot_hosts: FrozenSet[ImageHost] = field(default_factory=frozenset)

    @property
    def hosts(self) -> FrozenSet[ImageHost]:
        return self.contact_sheet_hosts | self.screenshot_hosts

    @property
    def needs_contact_sheet(self) -> bool:
        return bool(self.contact_sheet_hosts)

    @property
    def needs_screenshots(self) -> bool:
        return bool(self.screenshot_hosts)


def required_uploads(template: str) -> TemplateRequirements:
    contact_sheet = set()
    screenshots = set()
    used = {m.group("token") for m in _TOKEN_RE.finditer(template) if m.group("token")}
    for host in ImageHost:
        s = host.token_suffix
        if {f"CONTACT_SHEET_{s}", f"CONTACT_SHEET_{s}_BIG"} & used:
            contact_sheet.add(host)
        if any(token.startswith(f"SCREENSHOTS_{s}") and token in used for token in host_tokens(host)):
            screenshots.add(host)
    return TemplateRequirements(frozenset(contact_sheet), frozenset(screenshots))


def _screenshot_urls(artifacts: Dict[str, str], host: ImageHost, big: bool) -> List[str]:
    pattern = re.compile(
        re.escape(f"{host.artifact_prefix}-{SCREENSHOT}-") + r"\d+" + ("-big" if big else "") + "$"
    )
    return [url for key, url in artifacts.items() if url and pattern.match(key)]


def _host_value(movie: Movie, token: str, spacer: str) -> str:
    for host in ImageHost:
        s = host.token_suffix
        if token == f"CONTACT_SHEET_{s}":
            return movie.artifacts.get(artifact_key(host, CONTACT_SHEET), "")
        if token == f"CONTACT_SHEET_{s}_BIG":
            return movie.artifacts.get(artifact_key(host, CONTACT_SHEET, big=True), "")
        if token == f"SCREENSHOTS_{s}":
            return "".join(_screenshot_urls(movie.artifacts, host, big=False))
        if token == f"SCREENSHOTS_{s}_SPACED":
            return spacer.join(_screenshot_urls(movie.artifacts, host, big=False))
        if token == f"SCREENSHOTS_{s}_BIG":
            return "".join(_screenshot_urls(movie.artifacts, host, big=True))
        if token == f"SCREENSHOTS_{s}_BIG_SPACED":
            return spacer.join(_screenshot_urls(movie.artifacts, host, big=True))
    return ""


def _token_value(movie: Movie, token: str, spacer: str) -> str:
    if token == "FILE_NAME":
        return movie.file_name
    if token == "FILE_SIZE":
        return format_file_size(movie.file_size)
    if token in _METADATA_TOKENS:
        return _METADATA_TOKENS[token](movie.metadata) if movie.metadata else ""
    return _host_value(movie, token, spacer)


def render(movie: Movie, template: str, spacer: str = DEFAULT_SPACER) -> str:
    """Renders template for one movie. Never raises for an incomplete movie."""
    def substitute(match: "re.Match[str]") -> str:
        token = match.group("token")
        if token:
            return _token_value(movie, token, spacer)
        if movie.metadata is None:
            return ""
        section = movie.metadata.raw.get(_RAW_SECTIONS[match.group("section")], {})
        return section.get(match.group("key"), "")

    return _TOKEN_RE.sub(substitute, template)
