"""Bounded producer/worker scheduling.

This module runs one sequential producer feeding a bounded queue that
N worker threads drain. Cancellation is cooperative through one shared
event, checked by the producer before each enqueue and by every worker
before each dequeue. End-of-input markers are enqueued only by the
producer, after it has stopped sending records.
"""

from __future__ import annotations

import queue
import threading
from typing import Any, Callable, Iterable, Protocol

from core.constants import QUEUE_POLL_SECONDS
from core.errors import IngestCancelledError
from core.logging_config import get_logger
from core.types import PipelineState

_LOGGER = get_logger(__name__)

_END_OF_INPUT = object()


class PoolWorker(Protocol):
    """Per-thread consumer of queued items."""

    def accept(self, item: Any) -> None:
        """Process one item."""

    def finish(self) -> None:
        """Flush after end of input."""

    def abort(self) -> None:
        """Drop in-progress work after cancellation."""


class WorkerPool:
    """Run a producer loop against N worker threads.

    States move running -> draining -> stopped on normal completion, or to
    cancelled from any state when a worker fails, the producer fails, or
    ``cancel`` is called externally.
    """

    def __init__(
        self,
        worker_factory: Callable[[int], PoolWorker],
        worker_count: int,
        queue_capacity: int,
        cancel_event: threading.Event | None = None,
        poll_seconds: float = QUEUE_POLL_SECONDS,
    ) -> None:
        self._worker_factory = worker_factory
        self._worker_count = max(1, worker_count)
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=max(1, queue_capacity))
        self._cancel_event = cancel_event or threading.Event()
        self._poll_seconds = poll_seconds
        self._state_lock = threading.Lock()
        self._state: PipelineState = "running"
        self._failure: BaseException | None = None

    @property
    def state(self) -> PipelineState:
        with self._state_lock:
            return self._state

    @property
    def failure(self) -> BaseException | None:
        with self._state_lock:
            return self._failure

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def queue_depth(self) -> int:
        """Approximate number of queued, unclaimed items."""
        return self._queue.qsize()

    def cancel(self) -> None:
        """Request cooperative cancellation of the producer and all workers."""
        self._cancel_event.set()
        self._set_state("cancelled")

    def run(self, items: Iterable[Any]) -> PipelineState:
        """Feed ``items`` to the workers and wait for them to finish.

        Returns:
            Terminal state, ``stopped`` or ``cancelled``.

        Raises:
            BaseException: The first worker or producer failure, after every
                thread has stopped.
        """
        workers = [self._worker_factory(worker_id) for worker_id in range(self._worker_count)]
        threads = [
            threading.Thread(
                target=self._work,
                args=(worker,),
                name=f"ingest-worker-{worker_id}",
                daemon=True,
            )
            for worker_id, worker in enumerate(workers)
        ]
        _LOGGER.info("worker_pool_started", workers=self._worker_count, queue_capacity=self._queue.maxsize)
        for thread in threads:
            thread.start()
        producer_error: Exception | None = None
        try:
            self._produce(items)
        except Exception as error:
            # Records already queued are still drained and committed.
            producer_error = error
            _LOGGER.error("producer_failed", reason=type(error).__name__, error=str(error))
        except BaseException as error:
            self._record_failure(error)
        finally:
            self._send_end_of_input()
            for thread in threads:
                thread.join()
        if producer_error is not None:
            self._set_state("cancelled", force=True)
        state = self._finish_state()
        _LOGGER.info("worker_pool_stopped", state=state)
        failure = self.failure or producer_error
        if failure is not None:
            raise failure
        return state

    def _produce(self, items: Iterable[Any]) -> None:
        for item in items:
            if self._cancel_event.is_set():
                break
            if not self._put(item):
                break
        if not self._cancel_event.is_set():
            self._set_state("draining")

    def _send_end_of_input(self) -> None:
        for _ in range(self._worker_count):
            if not self._put(_END_OF_INPUT):
                return

    def _put(self, item: Any) -> bool:
        """Block until the item is queued; return False if cancelled first."""
        while not self._cancel_event.is_set():
            try:
                self._queue.put(item, timeout=self._poll_seconds)
                return True
            except queue.Full:
                continue
        return False

    def _work(self, worker: PoolWorker) -> None:
        try:
            while not self._cancel_event.is_set():
                try:
                    item = self._queue.get(timeout=self._poll_seconds)
                except queue.Empty:
                    continue
                if item is _END_OF_INPUT:
                    worker.finish()
                    return
                worker.accept(item)
            worker.abort()
        except IngestCancelledError:
            worker.abort()
        except BaseException as error:
            self._record_failure(error)
            worker.abort()

    def _record_failure(self, error: BaseException) -> None:
        with self._state_lock:
            first = self._failure is None
            if first:
                self._failure = error
            self._state = "cancelled"
        self._cancel_event.set()
        if first:
            _LOGGER.error("ingest_cancelled", reason=type(error).__name__, error=str(error))

    def _set_state(self, state: PipelineState, force: bool = False) -> None:
        with self._state_lock:
            if force or self._state != "cancelled":
                self._state = state

    def _finish_state(self) -> PipelineState:
        with self._state_lock:
            if self._state == "draining" and not self._cancel_event.is_set():
                self._state = "stopped"
            else:
                self._state = "cancelled"
            return self._state
