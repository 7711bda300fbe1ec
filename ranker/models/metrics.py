"""Monitoring models: segment metrics, decision stats, circuit breaker state."""

from datetime import datetime
from enum import Enum
from typing import Optional

from .common import WireModel

SEGMENT_KEY_SEPARATOR = "|"
SEGMENT_KEY_DEFAULT = "default"


def build_segment_key(
    category: Optional[str] = None,
    region: Optional[str] = None,
    channel: Optional[str] = None,
) -> str:
    """Deterministic category|region|channel key; missing parts become 'default'."""
    parts = [
        category or SEGMENT_KEY_DEFAULT,
        region or SEGMENT_KEY_DEFAULT,
        channel or SEGMENT_KEY_DEFAULT,
    ]
    return SEGMENT_KEY_SEPARATOR.join(parts)


class SegmentMetrics(WireModel):
    segment_key: str
    quality_score: Optional[float] = None
    edit_rate: Optional[float] = None
    rejection_rate: Optional[float] = None
    avg_cost: Optional[float] = None
    avg_latency: Optional[float] = None
    sample_count: int = 0
    window_hours: int = 24


class DecisionStats(WireModel):
    total: int = 0
    last_24h: int = 0
    explore_count: int = 0
    explore_rate: float = 0.0
    fallback_count: int = 0
    fallback_rate: float = 0.0


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerState(WireModel):
    key: str
    state: BreakerState = BreakerState.CLOSED
    consecutive_failures: int = 0
    opened_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None
    # Set while the single half-open trial is in flight.
    trial_started_at: Optional[datetime] = None
    reason: Optional[str] = None
