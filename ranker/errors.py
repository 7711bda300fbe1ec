"""
Typed errors raised by the ranking engine.

Structural problems (missing config, empty pool, unknown decision, I/O
failures, deadlines) are surfaced to callers as RankingError subclasses.
The server renders them as {"error": {"code", "message", "details"}}.
"""

from typing import Any, Dict, Optional


class RankingError(Exception):
    """Base class for engine errors; carries an error code and HTTP status."""

    code: str = "COMMON_INTERNAL"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class BadRequest(RankingError):
    code = "RANK_BAD_REQUEST"
    status_code = 400


class RequestInvalid(RankingError):
    """Request body or query failed validation."""

    code = "REQUEST_INVALID"
    status_code = 422


class ConfigInvalid(RankingError):
    """A resolved TuningConfig still has unset required fields."""

    code = "CONFIG_INVALID"
    status_code = 500


class PoolEmpty(RankingError):
    """No candidate survived breaker filtering, constraints, or thresholds."""

    code = "RANK_NO_CANDIDATE"
    status_code = 409


class FeatureStoreUnavailable(RankingError):
    code = "RANK_STORE_ERROR"
    status_code = 503


class DecisionNotFound(RankingError):
    code = "DECISION_NOT_FOUND"
    status_code = 404


class RankingTimeout(RankingError):
    code = "RANK_TIMEOUT"
    status_code = 504
