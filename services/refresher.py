"""Periodic fetch and aggregate orchestration for the dashboard."""

from __future__ import annotations

import itertools
import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import timedelta
from functools import lru_cache
from threading import Lock
from typing import Dict, Optional

from app.schemas import DashboardSnapshot, ReadingPayload, RefreshFailure, SummaryPayload
from datastore.snapshots import SnapshotStore, build_default_store
from services.aggregator import Aggregator
from services.classifier import classify, is_valid_concentration
from settings import get_settings
from sources.emissions import Clock, EmissionsSource, build_default_source, utc_now

logger = logging.getLogger(__name__)

_OUTCOME_HISTORY = 64


class RefreshService:
    """Runs fetch -> aggregate cycles and publishes results to the snapshot store."""

    def __init__(
        self,
        source: EmissionsSource,
        aggregator: Aggregator,
        store: SnapshotStore,
        interval: float = 3.0,
        workers: int = 2,
        clock: Clock = utc_now,
    ) -> None:
        self.source = source
        self.aggregator = aggregator
        self.store = store
        self.interval = interval
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="refresh")
        self._clock = clock
        self._sequence = itertools.count(1)
        self._sequence_lock = Lock()
        self._futures: Dict[int, Future[bool]] = {}
        self._outcomes: OrderedDict[int, bool] = OrderedDict()
        self._futures_lock = Lock()
        self._stop_event = threading.Event()
        self._timer: Optional[threading.Thread] = None

    def refresh(self) -> int:
        """Schedule one refresh cycle and return its sequence number."""
        with self._sequence_lock:
            sequence = next(self._sequence)
        future = self.executor.submit(self._run_cycle, sequence)
        with self._futures_lock:
            self._futures[sequence] = future
        future.add_done_callback(lambda _f, seq=sequence: self._clear_future(seq))
        return sequence

    def wait_for(self, sequence: int, timeout: Optional[float] = None) -> bool:
        """Block until the given cycle finishes; True when its snapshot was applied."""
        with self._futures_lock:
            future = self._futures.get(sequence)
            if future is None:
                return self._outcomes.get(sequence, False)
        return future.result(timeout=timeout)

    def start(self) -> None:
        if self._timer is not None and self._timer.is_alive():
            return
        self._stop_event.clear()
        self._timer = threading.Thread(target=self._tick_loop, name="refresh-timer", daemon=True)
        self._timer.start()
        logger.info("Refresh loop started (interval=%ss)", self.interval)

    def stop(self) -> None:
        """Halt the timer and release worker threads."""
        self._stop_event.set()
        if self._timer is not None:
            self._timer.join(timeout=self.interval + 1)
            self._timer = None
        self.executor.shutdown(wait=False, cancel_futures=True)
        close = getattr(self.source, "close", None)
        if callable(close):
            close()
        logger.info("Refresh loop stopped")

    def _tick_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.refresh()
            except RuntimeError:
                # Executor already shut down.
                break
            self._stop_event.wait(self.interval)

    def _clear_future(self, sequence: int) -> None:
        with self._futures_lock:
            future = self._futures.pop(sequence, None)
            if future is None or future.cancelled() or future.exception() is not None:
                return
            self._outcomes[sequence] = future.result()
            while len(self._outcomes) > _OUTCOME_HISTORY:
                self._outcomes.popitem(last=False)

    def _run_cycle(self, sequence: int) -> bool:
        try:
            readings = self.source.fetch_readings()
        except Exception as exc:  # noqa: BLE001 - any source failure fails the tick only
            logger.error(
                "Failed to load emissions data",
                extra={"sequence": sequence, "reason": str(exc)},
            )
            self.store.record_failure(
                RefreshFailure(sequence=sequence, failed_at=self._clock(), reason=str(exc))
            )
            return False

        now = self._clock()
        summary = self.aggregator.aggregate(readings, now)
        activity = summary.sensor_activity

        if summary.latest_reading is None:
            logger.warning("No sensor data available", extra={"sequence": sequence})
        else:
            delay = now - summary.latest_reading.timestamp
            logger.debug(
                "End-to-end delay measured",
                extra={"sequence": sequence, "delay_seconds": f"{delay / timedelta(seconds=1):.2f}"},
            )
            if not activity.active:
                logger.warning(
                    "Sensors inactive",
                    extra={"sequence": sequence, "elapsed_minutes": activity.elapsed_minutes},
                )

        ordered = sorted(readings, key=lambda reading: reading.timestamp)
        snapshot = DashboardSnapshot(
            sequence=sequence,
            refreshed_at=now,
            summary=SummaryPayload.from_summary(summary),
            readings=[
                ReadingPayload.from_reading(
                    reading,
                    classify(reading.co, reading.co2)
                    if is_valid_concentration(reading.co) and is_valid_concentration(reading.co2)
                    else None,
                )
                for reading in ordered
            ],
        )
        applied = self.store.apply(snapshot)
        if applied:
            logger.info(
                "Dashboard refreshed",
                extra={
                    "sequence": sequence,
                    "reading_count": summary.reading_count,
                    "invalid_count": summary.invalid_count or None,
                    "status": summary.overall_status.value if summary.overall_status else "unknown",
                },
            )
        return applied


@lru_cache
def build_default_refresher() -> RefreshService:
    """Factory that wires the refresher from environment settings."""
    settings = get_settings()
    window = timedelta(seconds=settings.activity_window)
    return RefreshService(
        source=build_default_source(),
        aggregator=Aggregator(window=window),
        store=build_default_store(),
        interval=settings.refresh_interval,
        workers=settings.refresh_workers,
    )
