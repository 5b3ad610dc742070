"""Concurrency limits under load, observed both at the collaborators and in published snapshots."""
import threading
import pytest
from conftest import FakeGenerator, FakeUploader
from spoilr.config.models import AppSettings
from spoilr.domain.models import ImageHost, ProcessingState

pytestmark = pytest.mark.integration


@pytest.fixture
def many_videos(tmp_path):
    input_dir = tmp_path / "many"
    input_dir.mkdir()
    for i in range(10):
        (input_dir / f"movie_{i:02d}.mp4").write_bytes(b"x" * 64)
    return input_dir


class SnapshotWatcher:
    def __init__(self):
        self._lock = threading.Lock()
        self.max_generating = 0
        self.max_uploading = 0

    def __call__(self, state):
        generating = sum(m.processing_state is ProcessingState.GENERATING_SCREENSHOTS for m in state.movies)
        uploading = sum(m.processing_state is ProcessingState.UPLOADING_SCREENSHOTS for m in state.movies)
        with self._lock:
            self.max_generating = max(self.max_generating, generating)
            self.max_uploading = max(self.max_uploading, uploading)


@pytest.mark.parametrize("screenshot_limit,upload_limit", [(1, 1), (2, 1), (3, 2)])
def test_limits_are_never_exceeded(make_orchestrator, many_videos, run_batch, screenshot_limit, upload_limit):
    generator = FakeGenerator(delay=0.02)
    uploader = FakeUploader(ImageHost.FASTPIC, delay=0.002)
    settings = AppSettings(
        max_concurrent_screenshots=screenshot_limit,
        max_concurrent_uploads=upload_limit,
        screenshot_count=2,
    )
    orchestrator = make_orchestrator(settings=settings, generator=generator, uploaders={ImageHost.FASTPIC: uploader})
    watcher = SnapshotWatcher()
    orchestrator.state_publisher.subscribe(watcher)
    orchestrator.add_movies([many_videos])

    run_batch(orchestrator, timeout=30)

    assert generator.tracker.max_active <= screenshot_limit
    assert uploader.tracker.max_active <= upload_limit
    assert watcher.max_generating <= screenshot_limit
    assert watcher.max_uploading <= upload_limit
    assert generator.tracker.calls == 10
    assert all(m.processing_state is ProcessingState.COMPLETED for m in orchestrator.get_state().movies)


def test_limits_are_reached_when_work_is_available(make_orchestrator, many_videos, run_batch):
    generator = FakeGenerator(delay=0.05)
    settings = AppSettings(max_concurrent_screenshots=3, screenshot_count=1)
    orchestrator = make_orchestrator(settings=settings, generator=generator)
    orchestrator.add_movies([many_videos])

    run_batch(orchestrator, timeout=30)

    assert generator.tracker.max_active == 3


def test_raising_the_limit_mid_batch_applies_to_next_acquisition(make_orchestrator, many_videos):
    gate = threading.Event()
    generator = FakeGenerator(gate=gate)
    settings = AppSettings(max_concurrent_screenshots=1, screenshot_count=1)
    orchestrator = make_orchestrator(settings=settings, generator=generator)
    orchestrator.add_movies([many_videos])

    orchestrator.start_processing()
    try:
        assert generator.started.wait(timeout=5)
        assert generator.tracker.active == 1
        orchestrator.update_settings({"max_concurrent_screenshots": 4})
        deadline = threading.Event()
        for _ in range(200):
            if generator.tracker.active == 4:
                break
            deadline.wait(0.01)
        assert generator.tracker.active == 4
    finally:
        gate.set()
        assert orchestrator.wait(timeout=30)

    assert generator.tracker.max_active == 4


def test_results_are_in_queue_order_regardless_of_finish_order(make_orchestrator, many_videos, run_batch):
    orchestrator = make_orchestrator(
        settings=AppSettings(max_concurrent_screenshots=5),
        generator=FakeGenerator(delay=0.01),
    )
    orchestrator.set_template("%FILE_NAME%")
    orchestrator.add_movies([many_videos])

    run_batch(orchestrator, timeout=30)

    expected = "".join(f"movie_{i:02d}.mp4\n" for i in range(10))
    assert orchestrator.generate_result() == expected
