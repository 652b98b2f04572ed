"""Candidate action log accumulator.

Requests made on candidate routes are recorded in a bounded in-memory queue
and written to ``log_actions_candidat`` in one bulk insert by a periodic
scheduler job.  When the queue is full the oldest record is dropped.  Log
records are best effort: a failed flush is logged and its batch discarded.
"""

from __future__ import annotations

import logging
import queue
import threading

from candilib.core.config import settings
from candilib.core.constants import TABLE_LOG_ACTIONS
from candilib.core.exceptions import StorageFailure
from candilib.db.supabase import execute, get_supabase
from candilib.models.booking import ActionLogEntry

logger = logging.getLogger(__name__)


class ActionLogAccumulator:
    """Bounded FIFO of candidate action records awaiting persistence."""

    def __init__(self, max_size: int | None = None) -> None:
        self.max_size = max_size or settings.ACTION_LOG_MAX_SIZE
        self._queue: queue.Queue[ActionLogEntry] = queue.Queue(maxsize=self.max_size)
        self._put_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self.dropped = 0

    def __len__(self) -> int:
        return self._queue.qsize()

    def record(self, entry: ActionLogEntry) -> None:
        """Queue *entry*, evicting the oldest record when full."""
        with self._put_lock:
            while True:
                try:
                    self._queue.put_nowait(entry)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                    except queue.Empty:
                        continue
                    self.dropped += 1
                    logger.warning(
                        "action_log_full_dropped_oldest",
                        extra={"max_size": self.max_size, "dropped": self.dropped},
                    )

    def _drain(self) -> list[ActionLogEntry]:
        batch: list[ActionLogEntry] = []
        while True:
            try:
                batch.append(self._queue.get_nowait())
            except queue.Empty:
                return batch

    def flush(self) -> int:
        """Write every queued record in one insert; return how many were written."""
        with self._flush_lock:
            batch = self._drain()
            if not batch:
                return 0
            client = get_supabase()
            try:
                execute(
                    client.table(TABLE_LOG_ACTIONS).insert(
                        [entry.model_dump(mode="json") for entry in batch]
                    ),
                    "flush_action_log",
                )
            except StorageFailure:
                logger.error(
                    "action_log_flush_failed",
                    extra={"discarded": len(batch)},
                )
                return 0
            logger.info("action_log_flushed", extra={"count": len(batch)})
            return len(batch)


_accumulator: ActionLogAccumulator | None = None


def get_accumulator() -> ActionLogAccumulator | None:
    """Return the accumulator of the running application, if any."""
    return _accumulator


def start_accumulator(max_size: int | None = None) -> ActionLogAccumulator:
    global _accumulator
    _accumulator = ActionLogAccumulator(max_size)
    return _accumulator


def stop_accumulator() -> int:
    """Drain the accumulator on shutdown and detach it."""
    global _accumulator
    accumulator, _accumulator = _accumulator, None
    if accumulator is None:
        return 0
    return accumulator.flush()
