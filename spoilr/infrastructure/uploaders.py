"""Image-host uploader capability.

The HTTP clients for Fastpic, Imgbox and Hamster live outside this package.
They are plugged in through the ``spoilr.uploaders`` entry-point group, where
each entry point name is an ImageHost value and the object is a zero-argument
factory returning an Uploader.
"""

import logging
from importlib.metadata import entry_points
from typing import Callable, Dict, Mapping, Protocol, runtime_checkable

from spoilr.domain.models import ImageHost, UploadRequest, UploadResult

ENTRY_POINT_GROUP = "spoilr.uploaders"

_logger = logging.getLogger(__name__)


@runtime_checkable
class Uploader(Protocol):
    """One instance per host. Raises UploadError (or any exception) on failure."""

    def prepare(self, credentials: Mapping[str, str]) -> None:
        """Called once per batch before the first upload (login, upload id, ...)."""
        ...

    def upload(self, request: UploadRequest) -> UploadResult:
        ...


def load_uploaders() -> Dict[ImageHost, Uploader]:
    """Instantiates every registered uploader whose name matches a known host."""
    uploaders: Dict[ImageHost, Uploader] = {}
    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            host = ImageHost(ep.name)
        except ValueError:
            _logger.warning(f"Ignoring uploader entry point for unknown host: {ep.name}")
            continue
        try:
            factory: Callable[[], Uploader] = ep.load()
            uploaders[host] = factory()
        except Exception as e:
            _logger.error(f"Failed to load {host.value} uploader from {ep.value}: {e}")
            continue
        _logger.info(f"Loaded {host.value} uploader from {ep.value}")
    return uploaders
