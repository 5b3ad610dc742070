"""Pipeline orchestrator for spoiler generation.

Owns the movie collection and drives every movie through the pipeline:
pending → analyzing_media → waiting_for_screenshot_slot → generating_screenshots
→ waiting_for_upload_slot → uploading_screenshots → completed | error.

Key responsibilities:
- Ingest files and folders as pending movies
- Run one task per pending movie, gated by two FIFO slot pools
  (screenshot generation and uploads)
- Keep per-movie failures on the movie record: fatal ones move it to error,
  per-host upload failures are kept as warnings
- Cooperative cancellation: checked at every stage boundary and before every
  external call; cancelled movies go back to pending without partial artifacts
- Publish an AppState snapshot after every committed mutation
- Render spoiler text from the current template preset
"""

import concurrent.futures
import logging
import os
import shutil
import tempfile
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from spoilr.config.models import AppSettings, TemplatePreset
from spoilr.domain.errors import (
    AlreadyProcessingError,
    AnalysisError,
    GenerationError,
    MovieBusyError,
    MovieStageError,
    NothingToProcessError,
    StageCancelled,
    UnknownIDError,
    ValidationError,
)
from spoilr.domain.events import MovieFinished, ProcessingFinished
from spoilr.domain.models import (
    CONTACT_SHEET,
    SCREENSHOT,
    AppState,
    GeneratedMedia,
    GenerationRequest,
    ImageHost,
    MediaMetadata,
    Movie,
    ProcessingState,
    UploadRequest,
    album_key,
    artifact_key,
)
from spoilr.infrastructure.event_bus import EventBus
from spoilr.infrastructure.file_scanner import FileScanner
from spoilr.infrastructure.publishers import ErrorPublisher, StatePublisher
from spoilr.infrastructure.uploaders import Uploader
from spoilr.pipeline.context import AppContext
from spoilr.pipeline.slots import SlotPool
from spoilr.templates.engine import TemplateRequirements, render, required_uploads

RESULT_SEPARATOR = "\n"

_INVALID_NAME_CHARS = '<>:"/\\|?*'

_FAILURE_PREFIXES = {
    ValidationError: "Invalid file",
    AnalysisError: "Media analysis failed",
    GenerationError: "Media generation failed",
}


def sanitize_file_name(name: str) -> str:
    """Makes a movie name safe to use as a directory name on every platform."""
    for char in _INVALID_NAME_CHARS:
        name = name.replace(char, "_")
    return name.rstrip(" .")[:200] or "movie"


@dataclass
class BatchPlan:
    """Everything a batch reads once at start. Tasks never re-read these values."""
    movie_ids: Tuple[str, ...]
    requirements: TemplateRequirements
    screenshot_count: int
    quality: int
    tool_args: str
    miniature_size: int
    save_media_directory: Optional[str]
    timeout_s: Optional[float]
    cancel_event: threading.Event = field(default_factory=threading.Event)
    upload_hosts: Tuple[ImageHost, ...] = ()
    work_dir: Optional[Path] = None
    notices_sent: Set[str] = field(default_factory=set)


class Orchestrator:
    """Spoiler pipeline orchestrator.

    The movie collection has a single writer: every mutation happens under
    one re-entrant lock, while external calls (probe, generator, uploaders)
    run outside it on per-movie worker threads.

    Args:
        context: AppContext holding settings and template presets.
        event_bus: EventBus used for state snapshots, error notices and batch events.
        media_probe: Object with ``analyze(path) -> MediaMetadata``.
        screenshot_generator: Object with ``generate(GenerationRequest) -> GeneratedMedia``.
        uploaders: Uploader per image host; hosts without one are never enabled.
        file_scanner: Optional FileScanner override for ``add_movies``.
    """

    def __init__(
        self,
        context: AppContext,
        event_bus: EventBus,
        media_probe: Any,
        screenshot_generator: Any,
        uploaders: Optional[Mapping[ImageHost, Uploader]] = None,
        file_scanner: Optional[FileScanner] = None,
    ):
        self.context = context
        self.event_bus = event_bus
        self.media_probe = media_probe
        self.screenshot_generator = screenshot_generator
        self.uploaders: Dict[ImageHost, Uploader] = dict(uploaders or {})
        self.file_scanner = file_scanner
        self.state_publisher = StatePublisher(event_bus)
        self.error_publisher = ErrorPublisher(event_bus)
        self.logger = logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._movies: List[Movie] = []
        self._processing = False
        self._revision = 0
        self._in_flight: Set[str] = set()
        self._batch: Optional[BatchPlan] = None
        self._batch_thread: Optional[threading.Thread] = None

        settings = context.settings
        self.screenshot_slots = SlotPool(settings.max_concurrent_screenshots, "screenshot slots")
        self.upload_slots = SlotPool(settings.max_concurrent_uploads, "upload slots")

    # ── State & publication ───────────────────────────────────────────────────

    def _ordered_locked(self) -> List[Movie]:
        return sorted(self._movies, key=lambda m: m.order_index)

    def _find_locked(self, movie_id: str) -> Optional[Movie]:
        for movie in self._movies:
            if movie.id == movie_id:
                return movie
        return None

    def _snapshot_locked(self) -> AppState:
        return AppState(
            processing=self._processing,
            movies=[m.model_copy(deep=True) for m in self._ordered_locked()],
            revision=self._revision,
        )

    def _commit_locked(self) -> AppState:
        self._revision += 1
        return self._snapshot_locked()

    def _update_movie(self, movie_id: str, update: Callable[[Movie], None]) -> Optional[Movie]:
        """Applies update under the lock and publishes the resulting snapshot."""
        with self._lock:
            movie = self._find_locked(movie_id)
            if movie is None:
                return None
            update(movie)
            updated = movie.model_copy(deep=True)
            snapshot = self._commit_locked()
        self.state_publisher.publish(snapshot)
        return updated

    def _set_state(self, movie_id: str, state: ProcessingState) -> None:
        def apply(movie: Movie) -> None:
            movie.processing_state = state

        self._update_movie(movie_id, apply)
        self.logger.debug(f"STATE: {movie_id} -> {state.value}")

    def get_state(self) -> AppState:
        with self._lock:
            return self._snapshot_locked()

    @property
    def processing(self) -> bool:
        with self._lock:
            return self._processing

    # ── Collection commands ───────────────────────────────────────────────────

    def add_movies(self, paths: Iterable[Path]) -> List[Movie]:
        """Expands files/folders into pending movies appended to the queue."""
        scanner = self.file_scanner or FileScanner(self.context.settings.video_extensions)
        entries = scanner.scan([Path(p) for p in paths])
        if not entries:
            return []

        with self._lock:
            next_index = max((m.order_index for m in self._movies), default=-1) + 1
            added = []
            for offset, (path, size) in enumerate(entries):
                movie = Movie(
                    id=str(uuid.uuid4()),
                    file_name=path.name,
                    file_path=path,
                    file_size=size,
                    order_index=next_index + offset,
                )
                self._movies.append(movie)
                added.append(movie.model_copy(deep=True))
            snapshot = self._commit_locked()
        self.state_publisher.publish(snapshot)
        self.logger.info(f"Added {len(added)} video files")
        return added

    def remove_movie(self, movie_id: str) -> None:
        with self._lock:
            movie = self._find_locked(movie_id)
            if movie is None:
                raise UnknownIDError(movie_id)
            if movie_id in self._in_flight:
                raise MovieBusyError(movie_id, movie.processing_state.value)
            self._movies.remove(movie)
            snapshot = self._commit_locked()
        self.state_publisher.publish(snapshot)
        self.logger.info(f"Removed movie: {movie.file_name}")

    def clear_movies(self) -> None:
        """Cancels any running batch, waits for it to wind down, then empties the queue."""
        if self.cancel_processing():
            self.wait()
        with self._lock:
            self._movies = []
            snapshot = self._commit_locked()
        self.state_publisher.publish(snapshot)
        self.logger.info("Cleared all movies")

    def reorder_movies(self, new_order: List[str]) -> None:
        """Rewrites order_index for the listed ids; unlisted movies keep their relative order after them."""
        with self._lock:
            known = {m.id: m for m in self._movies}
            for movie_id in new_order:
                if movie_id not in known:
                    raise UnknownIDError(movie_id)
            if len(set(new_order)) != len(new_order):
                raise ValueError("Duplicate movie ids in new order")

            listed = set(new_order)
            reordered = [known[movie_id] for movie_id in new_order]
            reordered.extend(m for m in self._ordered_locked() if m.id not in listed)
            for index, movie in enumerate(reordered):
                movie.order_index = index
            self._movies = reordered
            snapshot = self._commit_locked()
        self.state_publisher.publish(snapshot)

    def reset_movie_statuses(self) -> int:
        """Moves every movie that is not mid-flight back to pending. Returns how many were reset."""
        with self._lock:
            reset = 0
            for movie in self._movies:
                if movie.id in self._in_flight:
                    continue
                if movie.processing_state is not ProcessingState.PENDING or movie.errors or movie.artifacts:
                    reset += 1
                movie.reset()
            snapshot = self._commit_locked()
        self.state_publisher.publish(snapshot)
        self.logger.info(f"Reset {reset} movies to pending")
        return reset

    # ── Batch lifecycle ───────────────────────────────────────────────────────

    def _plan_batch(self, movie_ids: Tuple[str, ...], settings: AppSettings) -> BatchPlan:
        template = self.context.presets.current_template()
        return BatchPlan(
            movie_ids=movie_ids,
            requirements=required_uploads(template),
            screenshot_count=settings.screenshot_count,
            quality=settings.screenshot_quality,
            tool_args=settings.mtn_args,
            miniature_size=settings.image_miniature_size,
            save_media_directory=settings.save_media_directory,
            timeout_s=settings.tool_timeout_s,
        )

    def start_processing(self) -> None:
        """Starts a batch over every pending movie and returns immediately.

        Raises AlreadyProcessingError while a batch is active, on every call.
        """
        settings = self.context.settings
        with self._lock:
            if self._processing:
                raise AlreadyProcessingError()
            pending = [m for m in self._ordered_locked() if m.processing_state is ProcessingState.PENDING]
            if not pending:
                raise NothingToProcessError()

            plan = self._plan_batch(tuple(m.id for m in pending), settings)
            self.screenshot_slots.resize(settings.max_concurrent_screenshots)
            self.upload_slots.resize(settings.max_concurrent_uploads)
            for movie in pending:
                movie.errors = []
                movie.processing_error = None
            self._processing = True
            self._in_flight = set(plan.movie_ids)
            self._batch = plan
            snapshot = self._commit_locked()

            self._batch_thread = threading.Thread(
                target=self._run_batch, args=(plan,), name="spoilr-batch", daemon=True
            )
        self.state_publisher.publish(snapshot)
        self.logger.info(
            f"Starting processing for {len(pending)} movies "
            f"(screenshot limit: {settings.max_concurrent_screenshots}, upload limit: {settings.max_concurrent_uploads})"
        )
        self._batch_thread.start()

    def cancel_processing(self) -> bool:
        """Signals cancellation to the running batch. Returns False if nothing was running."""
        with self._lock:
            plan = self._batch if self._processing else None
        if plan is None:
            return False
        plan.cancel_event.set()
        self.screenshot_slots.wake()
        self.upload_slots.wake()
        self.logger.info("Cancellation requested")
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until the current batch has finished. Returns False on timeout."""
        thread = self._batch_thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _run_batch(self, plan: BatchPlan) -> None:
        try:
            plan.upload_hosts = self._enable_hosts(plan)
            with tempfile.TemporaryDirectory(prefix="spoilr_") as work_dir:
                plan.work_dir = Path(work_dir)
                with concurrent.futures.ThreadPoolExecutor(
                    max_workers=len(plan.movie_ids), thread_name_prefix="spoilr-movie"
                ) as executor:
                    futures = {executor.submit(self._process_movie, movie_id, plan): movie_id for movie_id in plan.movie_ids}
                    for future in concurrent.futures.as_completed(futures):
                        try:
                            future.result()
                        except Exception:
                            self.logger.exception(f"Movie task crashed: {futures[future]}")
        except Exception:
            self.logger.exception("Batch failed")
        finally:
            self._finish_batch(plan)

    def _finish_batch(self, plan: BatchPlan) -> None:
        cancelled = plan.cancel_event.is_set()
        batch_ids = set(plan.movie_ids)
        with self._lock:
            for movie in self._movies:
                if movie.id in batch_ids and not movie.processing_state.is_terminal:
                    movie.reset()
            self._processing = False
            self._in_flight.clear()
            snapshot = self._commit_locked()
        self.state_publisher.publish(snapshot)
        self.event_bus.publish(ProcessingFinished(cancelled=cancelled))
        self.logger.info("Processing cancelled" if cancelled else "Processing completed")

    def _notify_once(self, plan: BatchPlan, key: str, message: str) -> None:
        with self._lock:
            if key in plan.notices_sent:
                return
            plan.notices_sent.add(key)
        self.error_publisher.publish(message)

    def _enable_hosts(self, plan: BatchPlan) -> Tuple[ImageHost, ...]:
        """Hosts the template needs that have an uploader, credentials and a successful prepare()."""
        settings = self.context.settings
        enabled = []
        for host in ImageHost:
            if host not in plan.requirements.hosts:
                continue
            uploader = self.uploaders.get(host)
            if uploader is None:
                self.logger.warning(f"Template uses {host.value} but no uploader is registered")
                self._notify_once(plan, f"missing-{host.value}", f"No uploader available for {host.value}; its images will not be uploaded")
                continue
            if not settings.has_credentials(host):
                self._notify_once(plan, f"credentials-{host.value}", f"{host.value} credentials are not configured")
                continue
            if plan.cancel_event.is_set():
                break
            prepare = getattr(uploader, "prepare", None)
            if prepare is not None:
                try:
                    prepare(settings.credentials_for(host))
                except Exception as e:
                    self.logger.warning(f"Failed to prepare {host.value} uploader: {e}")
                    self._notify_once(plan, f"prepare-{host.value}", f"Failed to log in to {host.value}: {e}")
                    continue
            self.logger.info(f"{host.value} uploader initialized")
            enabled.append(host)
        return tuple(enabled)

    # ── Per-movie pipeline ────────────────────────────────────────────────────

    @staticmethod
    def _check_cancelled(plan: BatchPlan) -> None:
        if plan.cancel_event.is_set():
            raise StageCancelled()

    def _get_movie(self, movie_id: str) -> Movie:
        with self._lock:
            movie = self._find_locked(movie_id)
            if movie is None:
                raise UnknownIDError(movie_id)
            return movie.model_copy(deep=True)

    def _process_movie(self, movie_id: str, plan: BatchPlan) -> None:
        movie_dir = plan.work_dir / movie_id if plan.work_dir else None
        try:
            movie = self._get_movie(movie_id)
            self._check_cancelled(plan)
            self._set_state(movie_id, ProcessingState.ANALYZING_MEDIA)
            metadata = self._analyze(movie.file_path)
            self._check_cancelled(plan)

            def store_metadata(m: Movie) -> None:
                m.metadata = metadata
                m.processing_state = ProcessingState.WAITING_FOR_SCREENSHOT_SLOT

            self._update_movie(movie_id, store_metadata)

            # Successful stages hand off to the next state while still holding the slot
            with self.screenshot_slots.slot(plan.cancel_event):
                self._check_cancelled(plan)
                self._set_state(movie_id, ProcessingState.GENERATING_SCREENSHOTS)
                media = self._generate(movie, metadata, plan, movie_dir)
                self._check_cancelled(plan)

                warnings = list(media.warnings)
                warnings.extend(self._save_media(movie, media, plan))

                def enter_upload_queue(m: Movie) -> None:
                    m.errors.extend(warnings)
                    m.processing_state = ProcessingState.WAITING_FOR_UPLOAD_SLOT

                self._update_movie(movie_id, enter_upload_queue)

            with self.upload_slots.slot(plan.cancel_event):
                self._check_cancelled(plan)
                self._set_state(movie_id, ProcessingState.UPLOADING_SCREENSHOTS)
                artifacts, upload_warnings, attempted, failed_hosts = self._upload_all(movie, media, plan)
                self._check_cancelled(plan)
                self._finalize(movie_id, artifacts, upload_warnings, attempted, failed_hosts)
        except StageCancelled:
            self._reset_cancelled(movie_id)
        except MovieStageError as e:
            if plan.cancel_event.is_set():
                self._reset_cancelled(movie_id)
            else:
                self._fail(movie_id, e)
        except Exception as e:
            self.logger.exception(f"Unexpected error processing {movie_id}")
            if plan.cancel_event.is_set():
                self._reset_cancelled(movie_id)
            else:
                self._fail(movie_id, e)
        finally:
            if movie_dir is not None:
                shutil.rmtree(movie_dir, ignore_errors=True)
            with self._lock:
                self._in_flight.discard(movie_id)

    @staticmethod
    def _validate_file(file_path: Path) -> None:
        if not file_path.is_file():
            raise ValidationError(f"File not found or not a regular file: {file_path}")
        if not os.access(file_path, os.R_OK):
            raise ValidationError(f"File is not readable: {file_path}")

    def _analyze(self, file_path: Path) -> MediaMetadata:
        self._validate_file(file_path)
        try:
            return self.media_probe.analyze(file_path)
        except AnalysisError:
            raise
        except Exception as e:
            raise AnalysisError(str(e)) from e

    def _generate(self, movie: Movie, metadata: MediaMetadata, plan: BatchPlan, movie_dir: Optional[Path]) -> GeneratedMedia:
        requirements = plan.requirements
        if not requirements.needs_contact_sheet and not requirements.needs_screenshots:
            return GeneratedMedia()

        request = GenerationRequest(
            file_path=movie.file_path,
            output_dir=movie_dir or Path(tempfile.gettempdir()) / "spoilr" / movie.id,
            duration=metadata.duration,
            screenshot_count=plan.screenshot_count if requirements.needs_screenshots else 0,
            quality=plan.quality,
            tool_args=plan.tool_args,
            contact_sheet=requirements.needs_contact_sheet,
            timeout_s=plan.timeout_s,
        )
        try:
            media = self.screenshot_generator.generate(request)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(str(e)) from e

        if not media.images:
            detail = "; ".join(media.warnings)
            raise GenerationError(f"No media generated{': ' + detail if detail else ''}")
        if requirements.needs_contact_sheet and media.contact_sheet is None:
            self._notify_once(plan, "contact-sheet", "Contact sheets could not be generated; check the movie warnings")
        return media

    def _save_media(self, movie: Movie, media: GeneratedMedia, plan: BatchPlan) -> List[str]:
        """Copies generated images to the save directory; failures become warnings."""
        if not plan.save_media_directory or not media.images:
            return []

        target = Path(plan.save_media_directory) / sanitize_file_name(Path(movie.file_name).stem)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return [f"Failed to save media to directory: {e}"]

        copies = []
        if media.contact_sheet is not None:
            copies.append((media.contact_sheet, target / "contact_sheet.jpg"))
        for index, path in enumerate(media.screenshots, start=1):
            copies.append((path, target / f"screenshot_{index:02d}.jpg"))

        warnings = []
        for source, dest in copies:
            try:
                shutil.copyfile(source, dest)
                self.logger.info(f"Saved {dest.name} to {target}")
            except OSError as e:
                warnings.append(f"Failed to save {dest.name} to directory: {e}")
        return warnings

    def _upload_plan(self, movie: Movie, media: GeneratedMedia, host: ImageHost, plan: BatchPlan) -> List[Tuple[str, Path, str, str]]:
        """(variant, local path, upload file name, label) for one host."""
        base = Path(movie.file_name).stem
        items = []
        if host in plan.requirements.contact_sheet_hosts and media.contact_sheet is not None:
            items.append((CONTACT_SHEET, media.contact_sheet, f"{base}_contact_sheet.jpg", "contact sheet"))
        if host in plan.requirements.screenshot_hosts:
            for variant, path in media.images.items():
                if not variant.startswith(f"{SCREENSHOT}-"):
                    continue
                index = int(variant.rsplit("-", 1)[1])
                items.append((variant, path, f"{base}_screenshot_{index}.jpg", f"screenshot {index}"))
        return items

    def _upload_all(
        self, movie: Movie, media: GeneratedMedia, plan: BatchPlan
    ) -> Tuple[Dict[str, str], List[str], int, List[ImageHost]]:
        """Uploads to every enabled host. Results are buffered, not committed."""
        artifacts: Dict[str, str] = {}
        warnings: List[str] = []
        attempted = 0
        failed_hosts: List[ImageHost] = []

        for host in plan.upload_hosts:
            items = self._upload_plan(movie, media, host, plan)
            if not items:
                continue
            attempted += 1
            uploader = self.uploaders[host]
            succeeded = 0
            for variant, path, file_name, label in items:
                self._check_cancelled(plan)
                # Credentials are read per call so edits apply to the next upload
                settings = self.context.settings
                request = UploadRequest(
                    path=path,
                    file_name=file_name,
                    miniature_size=plan.miniature_size,
                    credentials=settings.credentials_for(host),
                )
                try:
                    result = uploader.upload(request)
                except Exception as e:
                    message = f"{host.value.capitalize()} {label} upload failed: {e}"
                    warnings.append(message)
                    self.logger.warning(f"{message} ({movie.file_name})")
                    continue
                artifacts[artifact_key(host, variant)] = result.url
                if result.big_url:
                    artifacts[artifact_key(host, variant, big=True)] = result.big_url
                if result.album_url:
                    artifacts.setdefault(album_key(host), result.album_url)
                succeeded += 1
            if succeeded == 0:
                failed_hosts.append(host)

        return artifacts, warnings, attempted, failed_hosts

    def _finalize(
        self,
        movie_id: str,
        artifacts: Dict[str, str],
        warnings: List[str],
        attempted: int,
        failed_hosts: List[ImageHost],
    ) -> None:
        all_failed = attempted > 0 and len(failed_hosts) == attempted

        def apply(m: Movie) -> None:
            m.errors.extend(warnings)
            if all_failed:
                hosts = ", ".join(h.value for h in failed_hosts)
                m.processing_state = ProcessingState.ERROR
                m.processing_error = f"Upload failed: every enabled host failed ({hosts})"
            else:
                m.artifacts = dict(artifacts)
                m.processing_state = ProcessingState.COMPLETED

        movie = self._update_movie(movie_id, apply)
        if movie is None:
            return
        if all_failed:
            self.logger.error(f"Upload failed for {movie.file_name}: {movie.processing_error}")
        elif movie.errors:
            self.logger.info(f"Movie {movie.file_name} completed with {len(movie.errors)} warnings")
        else:
            self.logger.info(f"Successfully processed movie: {movie.file_name}")
        self.event_bus.publish(MovieFinished(movie=movie))

    def _fail(self, movie_id: str, error: Exception) -> None:
        prefix = next(
            (label for cls, label in _FAILURE_PREFIXES.items() if isinstance(error, cls)),
            "Unexpected error",
        )
        message = f"{prefix}: {error}"

        def apply(m: Movie) -> None:
            m.processing_state = ProcessingState.ERROR
            m.processing_error = message
            m.artifacts = {}

        movie = self._update_movie(movie_id, apply)
        if movie is None:
            return
        self.logger.error(f"{movie.file_name}: {message}")
        self.event_bus.publish(MovieFinished(movie=movie))

    def _reset_cancelled(self, movie_id: str) -> None:
        self._update_movie(movie_id, lambda m: m.reset())
        self.logger.debug(f"STATE: {movie_id} -> pending (cancelled)")

    # ── Settings ──────────────────────────────────────────────────────────────

    def get_settings(self) -> AppSettings:
        return self.context.settings.model_copy(deep=True)

    def update_settings(self, changes: Dict[str, Any]) -> AppSettings:
        """Applies a partial update. New limits apply to the next slot acquisition."""
        settings = self.context.update_settings(changes)
        self.screenshot_slots.resize(settings.max_concurrent_screenshots)
        self.upload_slots.resize(settings.max_concurrent_uploads)
        return settings.model_copy(deep=True)

    # ── Results & templates ───────────────────────────────────────────────────

    def generate_result_for_movie(self, movie_id: str) -> str:
        movie = self._get_movie(movie_id)
        return render(movie, self.context.presets.current_template(), self.context.settings.screenshot_spacer)

    def generate_result(self) -> str:
        """Concatenates renders of every completed movie in queue order."""
        template = self.context.presets.current_template()
        spacer = self.context.settings.screenshot_spacer
        with self._lock:
            completed = [
                m.model_copy(deep=True) for m in self._ordered_locked()
                if m.processing_state is ProcessingState.COMPLETED
            ]
        return "".join(render(movie, template, spacer) + RESULT_SEPARATOR for movie in completed)

    def get_template(self) -> str:
        return self.context.presets.current_template()

    def set_template(self, template: str) -> None:
        self.context.presets.set_template(template)

    def get_default_template(self) -> str:
        return self.context.presets.default_template()

    def get_template_presets(self) -> List[TemplatePreset]:
        return self.context.presets.list_presets()

    def get_current_preset_id(self) -> str:
        return self.context.presets.current_id()

    def set_current_preset(self, preset_id: str) -> None:
        self.context.presets.set_current(preset_id)

    def save_template_preset(self, name: str, template: str) -> TemplatePreset:
        return self.context.presets.save(name, template)

    def delete_template_preset(self, preset_id: str) -> None:
        self.context.presets.delete(preset_id)
