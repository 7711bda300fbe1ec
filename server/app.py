"""
Candidate Ranking Engine — FastAPI app factory.

Use: uvicorn server.app:app
Or:  from server import app
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ranker.errors import RankingError, RequestInvalid

from .config import get_config
from .routes import register_routes
from .state import get_state

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build FastAPI app with CORS, routes, error handler, and startup."""
    config = get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    app = FastAPI(
        title="Candidate Ranking Engine API",
        description="Hierarchical two-stage ranking with exploration, fallback chains and feedback",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RankingError)
    def ranking_error_handler(request: Request, exc: RankingError):
        if exc.status_code >= 500:
            logger.error("[api] %s %s -> %s %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    def validation_error_handler(request: Request, exc: RequestValidationError):
        # Rejected inputs are left out: NaN is not valid JSON.
        errors = [
            {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
            for e in exc.errors()
        ]
        error = RequestInvalid("Request validation failed", {"errors": errors})
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    register_routes(app)

    @app.on_event("startup")
    def _startup_logging():
        state = get_state()
        ok, errors = state.config.validate()
        print("Candidate Ranking Engine API starting...")
        print(f"Feature store: {state.config.feature_store_source}")
        print(f"Breakers: threshold={state.config.breaker_failure_threshold} cooldown={state.config.breaker_cooldown_seconds}s")
        print(f"Decision retention: {state.config.decision_retention}")
        if not ok:
            for error in errors:
                print(f"[startup] WARNING: {error}")

    @app.on_event("shutdown")
    def _shutdown():
        get_state().engine.close()

    return app


app = create_app()
