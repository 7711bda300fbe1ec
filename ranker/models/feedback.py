"""
Feedback model — post-hoc outcome signals keyed by decision id.

A decision may receive zero, one, or many events (exposure, then later
acceptance). Events are append-only.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import AliasChoices, Field

from .common import WireModel

FeedbackEventType = Literal["expose", "select", "reject", "accept"]

# Numeric payload fields rolled into segment metrics, in storage order.
METRIC_FIELDS = ["quality_score", "edit_rate", "rejection_rate", "avg_cost", "avg_latency"]


class ExecutionAttempt(WireModel):
    """One attempt down the fallback chain, as reported by the caller."""

    id: str
    success: bool
    error: Optional[str] = None


class FeedbackPayload(WireModel):
    scenario: Optional[str] = None
    # Execution attempts in the order they were made.
    candidates: List[ExecutionAttempt] = Field(default_factory=list)
    # The candidate that was finally used (or selected by a reviewer).
    chosen_candidate_id: Optional[str] = None
    reason: Optional[str] = None
    # Rates are fractions; NaN and infinities are rejected.
    quality_score: Optional[float] = Field(default=None, ge=0.0, le=1.0, allow_inf_nan=False)
    edit_rate: Optional[float] = Field(default=None, ge=0.0, le=1.0, allow_inf_nan=False)
    rejection_rate: Optional[float] = Field(default=None, ge=0.0, le=1.0, allow_inf_nan=False)
    avg_cost: Optional[float] = Field(
        default=None,
        ge=0.0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("avgCost", "cost", "costActual"),
    )
    avg_latency: Optional[float] = Field(
        default=None,
        ge=0.0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("avgLatency", "latencyMs"),
    )
    notes: Optional[str] = None

    def metric_values(self) -> dict:
        """Numeric metric fields that are present (absent ones must not perturb averages)."""
        return {
            name: float(getattr(self, name))
            for name in METRIC_FIELDS
            if getattr(self, name) is not None
        }


class FeedbackEvent(WireModel):
    decision_id: str
    event_type: FeedbackEventType
    payload: FeedbackPayload = Field(default_factory=FeedbackPayload)
    received_at: datetime


class FeedbackAck(WireModel):
    decision_id: str
    event_type: FeedbackEventType
    accepted: bool = True
    segment_key: str
    event_count: int
    breaker_updates: List[str] = Field(default_factory=list)
    fallback_used: bool = False
