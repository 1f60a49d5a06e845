from __future__ import annotations

import logging
from functools import lru_cache
from threading import Lock
from typing import Optional

from app.schemas import DashboardSnapshot, DashboardState, RefreshFailure

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Keeps the most recent dashboard snapshot, newest sequence number wins."""

    def __init__(self) -> None:
        self._snapshot: Optional[DashboardSnapshot] = None
        self._failure: Optional[RefreshFailure] = None
        self._lock = Lock()

    @property
    def last_sequence(self) -> int:
        with self._lock:
            return self._last_sequence()

    def apply(self, snapshot: DashboardSnapshot) -> bool:
        """Store ``snapshot`` unless a newer refresh has already been applied."""
        with self._lock:
            if self._snapshot is not None and snapshot.sequence <= self._snapshot.sequence:
                logger.info(
                    "Discarding stale snapshot",
                    extra={"sequence": snapshot.sequence},
                )
                return False
            self._snapshot = snapshot.model_copy(deep=True)
            if self._failure is not None and self._failure.sequence < snapshot.sequence:
                self._failure = None
            return True

    def record_failure(self, failure: RefreshFailure) -> bool:
        with self._lock:
            if failure.sequence <= self._last_sequence():
                return False
            self._failure = failure.model_copy(deep=True)
            return True

    def get_state(self) -> DashboardState:
        with self._lock:
            return DashboardState(
                snapshot=self._snapshot.model_copy(deep=True) if self._snapshot else None,
                last_error=self._failure.model_copy(deep=True) if self._failure else None,
            )

    def get_snapshot(self) -> Optional[DashboardSnapshot]:
        with self._lock:
            if self._snapshot is None:
                return None
            return self._snapshot.model_copy(deep=True)

    def _last_sequence(self) -> int:
        sequences = [0]
        if self._snapshot is not None:
            sequences.append(self._snapshot.sequence)
        if self._failure is not None:
            sequences.append(self._failure.sequence)
        return max(sequences)


@lru_cache
def build_default_store() -> SnapshotStore:
    return SnapshotStore()
