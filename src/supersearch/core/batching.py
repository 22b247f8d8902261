"""Fixed-capacity batching of DocumentUnits into upsert calls."""

from typing import Callable, List, Sequence

import structlog

from .logging_config import log_batch_flushed
from .models import DocumentUnit

logger = structlog.get_logger(__name__)

BatchSink = Callable[[Sequence[DocumentUnit]], None]


class UpsertQueue:
    """Accumulate units and hand them to ``sink`` in batches of ``capacity``.

    The queue never holds more than ``capacity`` units: appending to a full
    queue flushes it first. Used as a context manager, a clean exit flushes
    the remainder; an exception leaves pending units unsent.
    """

    def __init__(self, capacity: int, sink: BatchSink, kind: str = "text"):
        if capacity < 1:
            raise ValueError(f"batch capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self.kind = kind
        self._sink = sink
        self._pending: List[DocumentUnit] = []
        self.batches_flushed = 0
        self.units_flushed = 0

    def __len__(self) -> int:
        return len(self._pending)

    def append(self, unit: DocumentUnit) -> None:
        if len(self._pending) >= self.capacity:
            self.flush()
        self._pending.append(unit)

    def flush(self) -> None:
        """Send pending units as one batch. No-op when empty."""
        if not self._pending:
            return

        batch = self._pending
        # The sink may fail; pending units are only cleared once it accepts them.
        self._sink(batch)
        self._pending = []
        self.batches_flushed += 1
        self.units_flushed += len(batch)
        log_batch_flushed(logger, kind=self.kind, size=len(batch), first_id=batch[0].id)

    def __enter__(self) -> "UpsertQueue":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.flush()
        return False
