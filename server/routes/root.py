"""Root and health endpoints."""

from fastapi import APIRouter

from ranker import STRATEGY_VERSION

from ..state import get_state

router = APIRouter()


@router.get("/")
def root():
    state = get_state()
    engine = state.engine
    return {
        "name": "Candidate Ranking Engine API",
        "version": "1.0.0",
        "strategy_version": STRATEGY_VERSION,
        "feature_store": type(engine.feature_store).__name__,
        "scenarios": engine.config_store.scenarios(),
        "endpoints": {
            "recommend": ["/api/recommend/rank", "/api/recommend/feedback"],
            "admin": [
                "/api/admin/segment-metrics",
                "/api/admin/decision-stats",
                "/api/admin/circuit-breakers",
                "/api/admin/metrics",
            ],
            "ranking": ["/api/ranking/tuning/{scenario}", "/api/ranking/settings/{scenario}"],
        },
    }


@router.get("/api/health")
def health():
    state = get_state()
    ok, errors = state.config.validate()
    return {
        "status": "healthy" if ok else "degraded",
        "errors": errors,
        "decisions": len(state.engine.decisions),
    }
