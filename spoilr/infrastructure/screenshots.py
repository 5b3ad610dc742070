import logging
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from spoilr.domain.errors import GenerationError
from spoilr.domain.models import CONTACT_SHEET, GeneratedMedia, GenerationRequest, screenshot_variant


class MtnScreenshotGenerator:
    """Contact sheets via mtn (Movie Thumbnailer), single frames via ffmpeg.

    A missing mtn binary or a single failing frame is reported as a warning;
    the caller decides whether what was produced is enough.
    """

    def __init__(self, mtn_binary: str = "mtn", ffmpeg_binary: str = "ffmpeg"):
        self.mtn_binary = mtn_binary
        self.ffmpeg_binary = ffmpeg_binary
        self.logger = logging.getLogger(__name__)

    def mtn_available(self) -> bool:
        return shutil.which(self.mtn_binary) is not None

    @staticmethod
    def parse_tool_args(args: str) -> List[str]:
        """Splits the user argument string, honouring double quotes."""
        try:
            return shlex.split(args)
        except ValueError as e:
            raise GenerationError(f"Invalid mtn arguments {args!r}: {e}")

    def build_contact_sheet_command(self, request: GenerationRequest) -> List[str]:
        return [
            self.mtn_binary,
            *self.parse_tool_args(request.tool_args),
            "-O", str(request.output_dir),
            str(request.file_path),
        ]

    def build_screenshot_command(self, request: GenerationRequest, timestamp: float, output_path: Path) -> List[str]:
        return [
            self.ffmpeg_binary,
            "-ss", f"{timestamp:.2f}",
            "-i", str(request.file_path),
            "-vframes", "1",
            "-q:v", str(request.quality),
            "-y",
            str(output_path),
        ]

    @staticmethod
    def screenshot_timestamps(duration: float, count: int) -> List[float]:
        """Evenly spaced timestamps that skip the very first and last frame."""
        interval = duration / (count + 1)
        return [interval * (i + 1) for i in range(count)]

    def generate(self, request: GenerationRequest) -> GeneratedMedia:
        request.output_dir.mkdir(parents=True, exist_ok=True)
        media = GeneratedMedia()

        if request.contact_sheet:
            if not self.mtn_available():
                media.warnings.append(
                    "MTN (Movie Thumbnailer) is not installed or not found in PATH; contact sheet skipped"
                )
            else:
                try:
                    media.images[CONTACT_SHEET] = self._generate_contact_sheet(request)
                except GenerationError as e:
                    media.warnings.append(f"Contact sheet generation failed: {e}")
                    self.logger.warning(f"Contact sheet failed for {request.file_path.name}: {e}")

        if request.screenshot_count > 0:
            if not request.duration:
                media.warnings.append("Duration unknown; screenshots skipped")
            else:
                timestamps = self.screenshot_timestamps(request.duration, request.screenshot_count)
                for index, timestamp in enumerate(timestamps, start=1):
                    output_path = request.output_dir / f"screenshot_{index}.jpg"
                    try:
                        self._run(self.build_screenshot_command(request, timestamp, output_path), request.timeout_s)
                    except GenerationError as e:
                        media.warnings.append(f"Screenshot {index} generation failed: {e}")
                        continue
                    if output_path.exists():
                        media.images[screenshot_variant(index)] = output_path
                    else:
                        media.warnings.append(f"Screenshot {index} was not written")

        return media

    def _generate_contact_sheet(self, request: GenerationRequest) -> Path:
        output = self._run(self.build_contact_sheet_command(request), request.timeout_s)
        found = self._find_contact_sheet(request.output_dir, request.file_path.stem)
        if found is None:
            if output:
                self.logger.debug(f"mtn output for {request.file_path.name}: {output}")
            raise GenerationError(f"contact sheet not found after generation - no .jpg files in {request.output_dir}")
        return found

    @staticmethod
    def _find_contact_sheet(output_dir: Path, video_stem: str) -> Optional[Path]:
        jpgs = sorted(p for p in output_dir.iterdir() if p.is_file() and p.suffix.lower() == ".jpg")
        for path in jpgs:
            if path.name.startswith(video_stem):
                return path
        # Single frames share the directory as screenshot_N.jpg
        others = [p for p in jpgs if not p.name.startswith("screenshot_")]
        return others[0] if others else None

    def _run(self, cmd: List[str], timeout_s: Optional[float]) -> str:
        self.logger.debug(f"TOOL_CMD: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout_s)
        except subprocess.TimeoutExpired:
            raise GenerationError(f"{Path(cmd[0]).name} timed out after {timeout_s}s")
        except OSError as e:
            raise GenerationError(f"{Path(cmd[0]).name} could not be started: {e}")
        output = f"{result.stdout}{result.stderr}".strip()
        if result.returncode != 0:
            detail = f"\nOutput: {output}" if output else ""
            raise GenerationError(f"{Path(cmd[0]).name} exited with code {result.returncode}{detail}")
        return output
