"""Domain events for the spoiler pipeline.

Events flow through the EventBus and decouple the orchestrator from whatever
front-end is watching it (the CLI status table, tests, a GUI).

See `infrastructure/event_bus.py` for the pub/sub mechanism and
`infrastructure/publishers.py` for the state/error publishers built on it.
"""

from pydantic import BaseModel
from .models import AppState, Movie


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class StateChanged(Event):
    """Emitted after every committed mutation of the movie collection."""

    state: AppState


class ErrorNotice(Event):
    """User-facing, non-blocking error message (e.g. a host login failed)."""

    message: str


class MovieFinished(Event):
    """Emitted when a movie reaches completed or error."""

    movie: Movie


class ProcessingFinished(Event):
    """Emitted when a batch ends, normally or after cancellation."""

    cancelled: bool = False
