"""
The bootstrapper reports what it does as (event, attributes) records to an event sink.
By default these are written to the esbootstrap logger; tests and services can pass any callable.
"""

import logging
from typing import Any, Callable

EventSink = Callable[[str, dict[str, Any]], None]

logger = logging.getLogger("esbootstrap")

_ERROR_EVENTS = frozenset({"reconcile_failed", "prepare_reindex_failed"})
_WARNING_EVENTS = frozenset(
    {"additive_update_failed", "alias_swap_incomplete", "unfreeze_failed", "mapping_mismatch", "temp_index_deleted"}
)


def event_level(event: str) -> int:
    if event in _ERROR_EVENTS:
        return logging.ERROR
    if event in _WARNING_EVENTS:
        return logging.WARNING
    return logging.INFO


def log_event(event: str, attributes: dict[str, Any]) -> None:
    details = " ".join(f"{k}={v}" for k, v in attributes.items())
    logger.log(event_level(event), f"{event}: {details}", extra={"event": event, "attributes": attributes})


class EventRecorder:
    """Event sink that keeps the events in memory (and optionally passes them on)"""

    def __init__(self, forward: EventSink | None = None):
        self.events: list[tuple[str, dict[str, Any]]] = []
        self.forward = forward

    def __call__(self, event: str, attributes: dict[str, Any]) -> None:
        self.events.append((event, attributes))
        if self.forward is not None:
            self.forward(event, attributes)

    def names(self) -> list[str]:
        return [event for event, _ in self.events]
