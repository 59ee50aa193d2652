"""Progress events and cooperative cancellation for long-running pipelines."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional


@dataclass(frozen=True)
class ProgressEvent:
    message: str
    percentage: int


ProgressCallback = Callable[[ProgressEvent], None]


class CancellationToken:
    """Checked between discrete per-game or per-model steps."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ProgressChannel:
    """Thread-safe sink for progress events.

    Pass the channel itself as a pipeline's ``progress`` callback; a consumer
    on another thread iterates it until ``close()`` is called.
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: "queue.Queue[object]" = queue.Queue()

    def __call__(self, event: ProgressEvent) -> None:
        self._queue.put(event)

    def close(self) -> None:
        self._queue.put(self._CLOSED)

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            item = self._queue.get()
            if item is self._CLOSED:
                return
            yield item  # type: ignore[misc]

    def drain(self) -> List[ProgressEvent]:
        events: List[ProgressEvent] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return events
            if item is not self._CLOSED:
                events.append(item)  # type: ignore[arg-type]


def report(progress: Optional[ProgressCallback], message: str, percentage: float) -> None:
    if progress is not None:
        progress(ProgressEvent(message=message, percentage=int(round(max(0.0, min(100.0, percentage))))))
