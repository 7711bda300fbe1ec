"""
Segment metrics aggregator.

Rolling means of feedback metrics per segment key (category|region|channel)
over a strict sliding window of hourly buckets. Each segment owns a ring
buffer of numpy arrays (per-field sums and counts, plus event samples);
an update touches one bucket, a query sums at most window_hours buckets.

A field that is absent from an event never perturbs its mean, and
sample_count grows by exactly one per event carrying at least one numeric
field.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional

import numpy as np

from ranker.models import METRIC_FIELDS, SegmentMetrics

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def hour_index(moment: datetime) -> int:
    return int(moment.timestamp() // SECONDS_PER_HOUR)


class SegmentWindow:
    """Ring buffer for one segment. Not thread-safe; the aggregator holds its lock."""

    def __init__(self, window_hours: int = 24, fields: List[str] = METRIC_FIELDS):
        self.window_hours = window_hours
        self.fields = list(fields)
        self._slot_hour = np.full(window_hours, -1, dtype=np.int64)
        self._sums = np.zeros((window_hours, len(self.fields)), dtype=np.float64)
        self._counts = np.zeros((window_hours, len(self.fields)), dtype=np.int64)
        self._samples = np.zeros(window_hours, dtype=np.int64)

    def _slot(self, hour: int) -> int:
        slot = hour % self.window_hours
        if self._slot_hour[slot] != hour:
            self._slot_hour[slot] = hour
            self._sums[slot] = 0.0
            self._counts[slot] = 0
            self._samples[slot] = 0
        return slot

    def add(self, values: Mapping[str, float], hour: int) -> bool:
        present = []
        for i, name in enumerate(self.fields):
            value = values.get(name)
            if value is None:
                continue
            if not np.isfinite(value):
                logger.warning("[segment] non-finite %s=%r dropped", name, value)
                continue
            present.append((i, float(value)))
        if not present:
            return False
        slot = self._slot(hour)
        for i, value in present:
            self._sums[slot, i] += value
            self._counts[slot, i] += 1
        self._samples[slot] += 1
        return True

    def _live(self, hour: int) -> np.ndarray:
        return (self._slot_hour > hour - self.window_hours) & (self._slot_hour <= hour)

    def means(self, hour: int) -> Dict[str, Optional[float]]:
        live = self._live(hour)
        sums = self._sums[live].sum(axis=0)
        counts = self._counts[live].sum(axis=0)
        return {
            name: (float(sums[i] / counts[i]) if counts[i] else None)
            for i, name in enumerate(self.fields)
        }

    def sample_count(self, hour: int) -> int:
        return int(self._samples[self._live(hour)].sum())


class SegmentMetricsAggregator:
    def __init__(
        self,
        window_hours: int = 24,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.window_hours = window_hours
        self._clock = clock or utc_now
        self._table_lock = threading.Lock()
        self._windows: Dict[str, SegmentWindow] = {}
        self._locks: Dict[str, threading.Lock] = {}

    def _window(self, segment_key: str):
        with self._table_lock:
            window = self._windows.get(segment_key)
            if window is None:
                window = self._windows[segment_key] = SegmentWindow(self.window_hours)
                self._locks[segment_key] = threading.Lock()
            return window, self._locks[segment_key]

    def record(self, segment_key: str, values: Mapping[str, float], at: Optional[datetime] = None) -> bool:
        """
        Fold one event's numeric fields into the segment.

        Returns True when the event counted as a sample. Events older than the
        window are dropped.
        """
        now = self._clock()
        hour = hour_index(at or now)
        if hour <= hour_index(now) - self.window_hours:
            logger.debug("[segment] %s event outside window dropped", segment_key)
            return False
        if not any(v is not None for v in values.values()):
            return False
        window, lock = self._window(segment_key)
        with lock:
            return window.add(values, hour)

    def get(self, segment_key: str, now: Optional[datetime] = None) -> SegmentMetrics:
        """Windowed means for a segment; an unknown segment has no samples."""
        with self._table_lock:
            window = self._windows.get(segment_key)
            lock = self._locks.get(segment_key)
        if window is None:
            return SegmentMetrics(segment_key=segment_key, window_hours=self.window_hours)
        hour = hour_index(now or self._clock())
        with lock:
            means = window.means(hour)
            samples = window.sample_count(hour)
        return SegmentMetrics(
            segment_key=segment_key,
            sample_count=samples,
            window_hours=self.window_hours,
            **means,
        )

    def all(self, now: Optional[datetime] = None) -> List[SegmentMetrics]:
        with self._table_lock:
            keys = sorted(self._windows)
        return [self.get(key, now) for key in keys]
