from typing import Callable

from spoilr.domain.events import ErrorNotice, StateChanged
from spoilr.domain.models import AppState
from spoilr.infrastructure.event_bus import EventBus


class StatePublisher:
    """Pushes AppState snapshots to registered subscribers.

    Delivery is synchronous and at-least-once per committed mutation.
    Snapshots carry a revision number; subscribers that receive snapshots
    from several threads can drop any with a lower revision than the last one seen.
    """

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus

    def publish(self, state: AppState) -> None:
        self.event_bus.publish(StateChanged(state=state))

    def subscribe(self, callback: Callable[[AppState], None]) -> Callable[[], bool]:
        """Registers callback; returns a function that unregisters it."""
        def handler(event: StateChanged) -> None:
            callback(event.state)

        self.event_bus.subscribe(StateChanged, handler)
        return lambda: self.event_bus.unsubscribe(StateChanged, handler)


class ErrorPublisher:
    """Publishes user-facing, non-blocking error notices."""

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus

    def publish(self, message: str) -> None:
        self.event_bus.publish(ErrorNotice(message=message))

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], bool]:
        def handler(event: ErrorNotice) -> None:
            callback(event.message)

        self.event_bus.subscribe(ErrorNotice, handler)
        return lambda: self.event_bus.unsubscribe(ErrorNotice, handler)
