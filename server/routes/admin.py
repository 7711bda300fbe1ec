"""Admin endpoints: segment metrics, decision stats, circuit breakers, request metrics."""

from typing import List

from fastapi import APIRouter, HTTPException

from ranker.models import CircuitBreakerState, DecisionStats, SegmentMetrics

from ..state import get_state

router = APIRouter()


@router.get("/segment-metrics", response_model=List[SegmentMetrics])
def list_segment_metrics():
    """Windowed metrics for every segment that has received feedback."""
    return get_state().engine.segments.all()


@router.get("/segment-metrics/{segment_key}", response_model=SegmentMetrics)
def get_segment_metrics(segment_key: str):
    return get_state().engine.segments.get(segment_key)


@router.get("/decision-stats", response_model=DecisionStats)
def decision_stats():
    return get_state().engine.decisions.stats()


@router.get("/circuit-breakers", response_model=List[CircuitBreakerState])
def list_circuit_breakers():
    return get_state().engine.breakers.snapshot()


@router.post("/circuit-breakers/clear")
def clear_circuit_breakers():
    """Reset every breaker to closed."""
    cleared = get_state().engine.breakers.reset_all()
    return {"cleared": cleared}


@router.post("/circuit-breakers/{key}/reset")
def reset_circuit_breaker(key: str):
    if not get_state().engine.breakers.reset(key):
        raise HTTPException(status_code=404, detail=f"No breaker tracked for '{key}'")
    return {"reset": key}


@router.get("/metrics")
def request_metrics():
    """Request counters, latency percentiles and active alerts."""
    engine = get_state().engine
    closed, opened, half_open = engine.breakers.counts()
    summary = engine.metrics.summary()
    summary["breakers"] = {"closed": closed, "open": opened, "half_open": half_open}
    summary["decisions"] = len(engine.decisions)
    return summary
