import threading
from collections import deque
from typing import Deque, Optional

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.table import Table
from rich.text import Text

from spoilr.domain.models import AppState, ProcessingState
from spoilr.infrastructure.publishers import ErrorPublisher, StatePublisher
from spoilr.templates.formatting import format_duration, format_file_size

STATE_STYLES = {
    ProcessingState.PENDING: ("Pending", "dim"),
    ProcessingState.ANALYZING_MEDIA: ("Analyzing", "cyan"),
    ProcessingState.WAITING_FOR_SCREENSHOT_SLOT: ("Waiting (screenshots)", "yellow"),
    ProcessingState.GENERATING_SCREENSHOTS: ("Generating", "cyan"),
    ProcessingState.WAITING_FOR_UPLOAD_SLOT: ("Waiting (upload)", "yellow"),
    ProcessingState.UPLOADING_SCREENSHOTS: ("Uploading", "magenta"),
    ProcessingState.COMPLETED: ("Completed", "green"),
    ProcessingState.ERROR: ("Error", "red"),
}


def render_state(state: AppState, notices: Optional[list] = None) -> RenderableType:
    """Builds the movie table for one snapshot."""
    title = "spoilr - processing" if state.processing else "spoilr"
    table = Table(title=title, expand=True)
    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("File", overflow="fold")
    table.add_column("Size", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Status")
    table.add_column("Notes", overflow="fold")

    for position, movie in enumerate(state.movies, start=1):
        label, style = STATE_STYLES[movie.processing_state]
        duration = format_duration(movie.metadata.duration) if movie.metadata else ""
        if movie.processing_error:
            notes = Text(movie.processing_error, style="red")
        elif movie.errors:
            notes = Text(f"{len(movie.errors)} warning(s): {movie.errors[-1]}", style="yellow")
        else:
            notes = Text("")
        table.add_row(
            str(position),
            movie.file_name,
            format_file_size(movie.file_size),
            duration,
            Text(label, style=style),
            notes,
        )

    counts = {s: 0 for s in ProcessingState}
    for movie in state.movies:
        counts[movie.processing_state] += 1
    done = counts[ProcessingState.COMPLETED] + counts[ProcessingState.ERROR]
    footer = Text(
        f"{done}/{len(state.movies)} done | completed: {counts[ProcessingState.COMPLETED]} | "
        f"errors: {counts[ProcessingState.ERROR]}",
        style="bold",
    )
    parts = [table, footer]
    for message in notices or []:
        parts.append(Text(f"! {message}", style="red"))
    return Group(*parts)


class StatusView:
    """Live terminal view of the orchestrator state.

    Snapshots may arrive from several worker threads; any snapshot older than
    the last one shown is dropped.
    """

    def __init__(
        self,
        state_publisher: StatePublisher,
        error_publisher: ErrorPublisher,
        console: Optional[Console] = None,
        max_notices: int = 5,
    ):
        self.console = console or Console()
        self._lock = threading.Lock()
        self._state = AppState()
        self._notices: Deque[str] = deque(maxlen=max_notices)
        self._live: Optional[Live] = None
        self._unsubscribe = [
            state_publisher.subscribe(self.on_state),
            error_publisher.subscribe(self.on_error),
        ]

    @property
    def state(self) -> AppState:
        with self._lock:
            return self._state

    @property
    def notices(self) -> list:
        with self._lock:
            return list(self._notices)

    def on_state(self, state: AppState) -> None:
        with self._lock:
            if state.revision < self._state.revision:
                return
            self._state = state
        self._refresh()

    def on_error(self, message: str) -> None:
        with self._lock:
            self._notices.append(message)
        self._refresh()

    def create_display(self) -> RenderableType:
        with self._lock:
            state, notices = self._state, list(self._notices)
        return render_state(state, notices)

    def _refresh(self) -> None:
        live = self._live
        if live is not None:
            live.update(self.create_display())

    def start(self):
        self._live = Live(self.create_display(), console=self.console, refresh_per_second=4)
        self._live.start()
        return self

    def stop(self) -> None:
        if self._live:
            self._live.update(self.create_display())
            self._live.stop()
            self._live = None
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
