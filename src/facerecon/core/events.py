"""EventBus for reporting reconstruction progress to observers."""

from enum import Enum, auto
from typing import Any, Callable
from collections import defaultdict


class EventType(Enum):
    RECONSTRUCTION_STARTED = auto()   # data: num_constraints (int), max_iterations (int)
    SOLVE_FINISHED = auto()           # data: stage (str), iteration (int), summary (SolveSummary)
    CONTOURS_UPDATED = auto()         # data: iteration (int), changed (list[int])
    ITERATION_FINISHED = auto()       # data: iteration, error, weight_identity, weight_expression, contour_weights
    RECONSTRUCTION_FINISHED = auto()  # data: iterations (int), error (float)


class EventBus:
    """Simple publish/subscribe event system."""

    def __init__(self):
        self._handlers: dict[EventType, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Callable) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Callable) -> None:
        handlers = self._handlers[event_type]
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: EventType, **data: Any) -> None:
        for handler in self._handlers[event_type]:
            handler(**data)

    def clear(self) -> None:
        self._handlers.clear()
