"""Progress events emitted by the staging pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .logging import get_logger

PHASE = "phase"
UNLINK = "unlink"
STAGE = "stage"
DEDUPE_START = "dedupe_start"
DEDUPE_STDOUT = "dedupe_stdout"
DEDUPE_STDERR = "dedupe_stderr"
DEDUPE_EXIT = "dedupe_exit"
UNSTAGE = "unstage"
REMOVE = "remove"
RELINK = "relink"
DONE = "done"

_LEVELS = {
    PHASE: logging.DEBUG,
    DEDUPE_STDERR: logging.WARNING,
}


@dataclass(frozen=True)
class PipelineEvent:
    """A human-readable progress line with its kind and the path it concerns."""

    kind: str
    message: str
    path: Optional[str] = None


EventSink = Callable[[PipelineEvent], None]


def logging_sink(logger: logging.Logger | None = None) -> EventSink:
    """Return a sink writing events to the symdedupe logger."""
    target = logger or get_logger("pipeline")

    def _sink(event: PipelineEvent) -> None:
        target.log(_LEVELS.get(event.kind, logging.INFO), "%s", event.message)

    return _sink


class SafeSink:
    """Wraps a sink so a failing consumer never interrupts the pipeline."""

    def __init__(self, sink: EventSink) -> None:
        self._sink = sink
        self._logger = get_logger("events")

    def __call__(self, event: PipelineEvent) -> None:
        try:
            self._sink(event)
        except Exception as exc:
            self._logger.debug("Event sink failed for %s event: %s", event.kind, exc)

    def emit(self, kind: str, message: str, path: str | None = None) -> None:
        self(PipelineEvent(kind=kind, message=message, path=path))


__all__ = [
    "EventSink",
    "PipelineEvent",
    "SafeSink",
    "logging_sink",
]
