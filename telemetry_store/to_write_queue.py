"""Events waiting to be written, grouped by the process that produced them."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Iterable

from telemetry_store.dto import MetricDto
from telemetry_store.process_id_user_id_links import ProcessIdUserIdLinks


@dataclass
class MetricsChunk:
    """Events of one process id, with the moment the first one arrived."""

    process_id: int
    created: float
    items: list[MetricDto] = field(default_factory=list)

    def push(self, metric: MetricDto) -> None:
        self.items.append(metric)


@dataclass(frozen=True)
class QueueSize:
    events_queue_size: int
    process_queue_size: int


class ToWriteQueue:
    """Buffers events per process id until they are old enough to be flushed.

    All methods run without awaiting, so within one event loop they are atomic.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._chunks: dict[int, MetricsChunk] = {}

    def enqueue(self, metrics: Iterable[MetricDto], links: ProcessIdUserIdLinks) -> None:
        """Queue events and remember the client id of every process that reports one."""
        for metric in metrics:
            if metric.client_id is not None:
                links.update(metric.id, metric.client_id)
            chunk = self._chunks.get(metric.id)
            if chunk is None:
                chunk = MetricsChunk(process_id=metric.id, created=self._clock())
                self._chunks[metric.id] = chunk
            chunk.push(metric)

    def get_events_to_write(self, max_amount: int, seconds_to_flush: int) -> list[MetricsChunk]:
        """Remove and return chunks at least ``seconds_to_flush`` old.

        Collection stops once more than ``max_amount`` events have been gathered.
        """
        now = self._clock()
        ready = []
        amount = 0
        for chunk in self._chunks.values():
            if int(now - chunk.created) >= seconds_to_flush:
                ready.append(chunk.process_id)
                amount += len(chunk.items)
                if amount > max_amount:
                    break
        return [self._chunks.pop(process_id) for process_id in ready]

    def get_sizes(self) -> QueueSize:
        return QueueSize(
            events_queue_size=sum(len(chunk.items) for chunk in self._chunks.values()),
            process_queue_size=len(self._chunks),
        )