"""Recommend API models: rank request/response and feedback request."""

from typing import Any, Dict, List, Optional

from pydantic import Field

from ranker.models import (
    Alternatives,
    CandidateSummary,
    ChosenCandidate,
    Decision,
    FeedbackPayload,
    RankingContext,
)
from ranker.models.common import WireModel
from ranker.models.feedback import FeedbackEventType
from ranker.stages.candidate_pool import HardConstraints


class RankConstraints(WireModel):
    max_latency_ms: Optional[float] = None
    max_cost_usd: Optional[float] = Field(default=None, alias="maxCostUSD")
    require_json_mode: bool = False
    allow_providers: List[str] = []
    deny_providers: List[str] = []
    language: Optional[str] = None

    def to_hard_constraints(self) -> HardConstraints:
        return HardConstraints(
            max_cost_usd=self.max_cost_usd,
            max_latency_ms=self.max_latency_ms,
            require_json_mode=self.require_json_mode,
            allow_providers=list(self.allow_providers),
            deny_providers=list(self.deny_providers),
            language=self.language,
        )


class RankOptions(WireModel):
    strategy_version: Optional[str] = None
    top_k: Optional[int] = Field(default=None, ge=1)
    explore: bool = True
    # Replaying a request id returns the decision already recorded for it.
    request_id: Optional[str] = None
    timeout_ms: Optional[int] = Field(default=None, gt=0)


class RankRequest(WireModel):
    scenario: str = Field(min_length=1)
    task: Dict[str, Any] = {}
    context: RankingContext = Field(default_factory=RankingContext)
    constraints: RankConstraints = Field(default_factory=RankConstraints)
    options: RankOptions = Field(default_factory=RankOptions)


class RankResponse(WireModel):
    decision_id: str
    scenario: str
    chosen: ChosenCandidate
    top_k: List[CandidateSummary] = []
    alternatives: Alternatives = Field(default_factory=Alternatives)
    fallback_chain: List[CandidateSummary] = []
    explored: bool = False
    inheritance_chain: List[str] = []
    segment_key: str
    strategy_version: str
    warnings: List[str] = []

    @classmethod
    def from_decision(cls, decision: Decision, warnings: Optional[List[str]] = None) -> "RankResponse":
        return cls(
            decision_id=decision.id,
            scenario=decision.scenario,
            chosen=decision.chosen,
            top_k=decision.top_k,
            alternatives=decision.alternatives,
            fallback_chain=decision.fallback_chain,
            explored=decision.explored,
            inheritance_chain=decision.inheritance_chain,
            segment_key=decision.segment_key,
            strategy_version=decision.strategy_version,
            warnings=list(warnings or []),
        )


class FeedbackRequest(WireModel):
    decision_id: str = Field(min_length=1)
    event_type: FeedbackEventType
    payload: FeedbackPayload = Field(default_factory=FeedbackPayload)
