import subprocess
import json
from pathlib import Path
from typing import Dict, Any, Optional

from spoilr.domain.errors import AnalysisError
from spoilr.domain.models import MediaMetadata

# Share of the container bitrate assumed for a stream that reports none
VIDEO_BITRATE_SHARE = 0.8
AUDIO_BITRATE_SHARE = 0.1


class FFprobeMediaProbe:
    """Wrapper around ffprobe to extract the metadata used by templates."""

    def __init__(self, binary: str = "ffprobe", timeout_s: Optional[float] = None):
        self.binary = binary
        self.timeout_s = timeout_s

    @staticmethod
    def _to_float(value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @classmethod
    def _to_int(cls, value: Any) -> Optional[int]:
        number = cls._to_float(value)
        return int(number) if number > 0 else None

    @classmethod
    def _parse_duration_tag(cls, value: Any) -> float:
        if value is None:
            return 0.0
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            pass
        if ":" in text:
            parts = text.split(":")
            if len(parts) in (2, 3):
                try:
                    parts_f = [float(p) for p in parts]
                except ValueError:
                    return 0.0
                if len(parts_f) == 2:
                    minutes, seconds = parts_f
                    return minutes * 60 + seconds
                hours, minutes, seconds = parts_f
                return hours * 3600 + minutes * 60 + seconds
        return 0.0

    @classmethod
    def parse_frame_rate(cls, value: Optional[str]) -> float:
        if not value or value == "0/0":
            return 0.0
        if "/" not in value:
            return cls._to_float(value)
        num_text, den_text = value.split("/", 1)
        den = cls._to_float(den_text)
        if den == 0:
            return 0.0
        return cls._to_float(num_text) / den

    @staticmethod
    def _stream_bit_rate(stream: Dict[str, Any]) -> Optional[str]:
        bit_rate = stream.get("bit_rate")
        if bit_rate:
            return str(bit_rate)
        # Matroska muxers store the rate in a BPS tag instead
        tags = stream.get("tags") or {}
        bps = tags.get("BPS") or tags.get("BPS-eng")
        return str(bps) if bps else None

    def run_ffprobe(self, file_path: Path) -> Dict[str, Any]:
        cmd = [
            self.binary,
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            "-show_format",
            str(file_path)
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout_s)
        except subprocess.TimeoutExpired:
            raise AnalysisError(f"ffprobe timed out after {self.timeout_s}s for {file_path.name}")
        except OSError as e:
            raise AnalysisError(f"ffprobe could not be started: {e}")
        if result.returncode != 0:
            raise AnalysisError(f"ffprobe failed for {file_path.name}: {result.stderr.strip()}")
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise AnalysisError(f"Failed to parse ffprobe output for {file_path.name}: {e}")

    def analyze(self, file_path: Path) -> MediaMetadata:
        """Executes ffprobe and maps its JSON output onto MediaMetadata."""
        data = self.run_ffprobe(file_path)
        streams = data.get("streams", [])

        video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
        if not video_stream:
            raise AnalysisError(f"No video stream found in {file_path.name}")
        audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)

        fmt = data.get("format", {}) or {}
        general = {k: str(v) for k, v in fmt.items() if k in ("duration", "size", "bit_rate", "format_name")}
        video = self._stream_fields(video_stream, ("codec_name", "width", "height", "duration", "r_frame_rate", "avg_frame_rate", "pix_fmt"))
        audio = self._stream_fields(audio_stream, ("codec_name", "duration", "sample_rate", "channels", "channel_layout")) if audio_stream else {}

        duration = self._to_float(fmt.get("duration"))
        if duration <= 0:
            tags = fmt.get("tags", {}) or {}
            duration = self._parse_duration_tag(tags.get("DURATION") or tags.get("duration"))
        if duration <= 0:
            duration = self._to_float(video_stream.get("duration"))
        if duration <= 0:
            tags = video_stream.get("tags", {}) or {}
            duration = self._parse_duration_tag(tags.get("DURATION") or tags.get("duration"))

        overall = self._to_int(fmt.get("bit_rate"))
        video_bit_rate = self._to_int(self._stream_bit_rate(video_stream))
        if video_bit_rate:
            video["bit_rate"] = str(video_bit_rate)
        elif overall:
            video_bit_rate = int(overall * VIDEO_BITRATE_SHARE)

        audio_bit_rate = self._to_int(self._stream_bit_rate(audio_stream)) if audio_stream else None
        if audio_bit_rate:
            audio["bit_rate"] = str(audio_bit_rate)
        elif overall:
            audio_bit_rate = int(overall * AUDIO_BITRATE_SHARE)

        r_frame_rate = video_stream.get("r_frame_rate")
        fps = self.parse_frame_rate(r_frame_rate)
        if fps > 0:
            video["fps_decimal"] = f"{fps:.3f}"

        return MediaMetadata(
            duration=duration if duration > 0 else None,
            width=self._to_int(video_stream.get("width")),
            height=self._to_int(video_stream.get("height")),
            bit_rate=overall,
            video_codec=video_stream.get("codec_name"),
            video_bit_rate=video_bit_rate,
            video_fps=round(fps, 3) if fps > 0 else None,
            video_fps_fractional=r_frame_rate if fps > 0 else None,
            audio_codec=audio_stream.get("codec_name") if audio_stream else None,
            audio_bit_rate=audio_bit_rate,
            audio_sample_rate=self._to_int(audio_stream.get("sample_rate")) if audio_stream else None,
            audio_channels=self._to_int(audio_stream.get("channels")) if audio_stream else None,
            raw={"general": general, "video": video, "audio": audio},
        )

    @staticmethod
    def _stream_fields(stream: Dict[str, Any], keys) -> Dict[str, str]:
        return {key: str(stream[key]) for key in keys if stream.get(key) not in (None, "")}
