"""
Score helpers — feature sanitizing and averaging used by both ranking stages.

A single malformed feature (NaN, non-numeric, out of range) must not abort an
otherwise healthy ranking: it is clamped to a safe default and logged.
"""

import logging
import math
from typing import Any, Iterable, Mapping, Optional

logger = logging.getLogger(__name__)


def safe_unit(
    value: Any,
    default: float = 0.0,
    name: str = "",
    candidate_id: str = "",
) -> float:
    """Coerce value into [0, 1]; None -> default; NaN/garbage -> default with a warning."""
    if value is None:
        return default
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(
            "[score_clamp] NON_NUMERIC_FEATURE candidate=%s feature=%s value=%r -> %s",
            candidate_id, name, value, default,
        )
        return default
    if math.isnan(number) or math.isinf(number):
        logger.warning(
            "[score_clamp] NAN_FEATURE candidate=%s feature=%s -> %s",
            candidate_id, name, default,
        )
        return default
    if number < 0.0 or number > 1.0:
        clamped = min(1.0, max(0.0, number))
        logger.warning(
            "[score_clamp] OUT_OF_RANGE candidate=%s feature=%s value=%s -> %s",
            candidate_id, name, number, clamped,
        )
        return clamped
    return number


def safe_number(value: Any, name: str = "", candidate_id: str = "") -> Optional[float]:
    """Finite float or None; garbage is logged and treated as missing."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(
            "[score_clamp] NON_NUMERIC_METADATA candidate=%s field=%s value=%r -> missing",
            candidate_id, name, value,
        )
        return None
    if isinstance(value, bool) or not math.isfinite(number):
        logger.warning(
            "[score_clamp] INVALID_METADATA candidate=%s field=%s value=%r -> missing",
            candidate_id, name, value,
        )
        return None
    return number


def lookup_signal(
    name: str,
    *sources: Optional[Mapping[str, Any]],
) -> Any:
    """First non-None value for name across the given mappings."""
    for source in sources:
        if source and source.get(name) is not None:
            return source[name]
    return None


def mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def weighted_sum(pairs: Iterable[tuple]) -> float:
    """Sum of value * weight over (value, weight) pairs."""
    return sum(value * weight for value, weight in pairs)
