import logging
import os
from pathlib import Path
from typing import Iterable, List, Tuple

class FileScanner:
    """Expands dropped files and folders into a sorted list of video files."""

    def __init__(self, extensions: List[str]):
        self.extensions = {(ext if ext.startswith(".") else f".{ext}").lower() for ext in extensions}
        self.logger = logging.getLogger(__name__)

    def _walk(self, root_dir: Path) -> Iterable[Path]:
        for root, dirs, files in os.walk(str(root_dir)):
            dirs.sort()
            for file_name in files:
                yield Path(root) / file_name

    def scan(self, paths: Iterable[Path]) -> List[Tuple[Path, int]]:
        """Returns (path, size_bytes) pairs sorted by path; unreadable entries are skipped."""
        found = {}
        for path in paths:
            path = Path(path)
            if path.is_dir():
                candidates = self._walk(path)
            elif path.exists():
                candidates = [path]
            else:
                self.logger.warning(f"Skipping missing path: {path}")
                continue

            for file_path in candidates:
                if file_path.suffix.lower() not in self.extensions:
                    continue
                try:
                    found[file_path] = file_path.stat().st_size
                except OSError as e:
                    self.logger.warning(f"Skipping unreadable file {file_path}: {e}")

        return sorted(found.items(), key=lambda item: str(item[0]))
