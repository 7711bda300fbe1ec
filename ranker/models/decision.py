"""Decision model — the persisted record of one ranking outcome."""

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field

from .common import WireModel


class ChosenCandidate(WireModel):
    id: str
    coarse_score: Optional[float] = None
    fine_score: Optional[float] = None


class CandidateSummary(WireModel):
    """Snapshot of one candidate as it appears in top_k / alternatives."""

    id: str
    type: str = "model"
    provider: Optional[str] = None
    coarse_score: Optional[float] = None
    fine_score: Optional[float] = None
    bucket: str = "fine"  # fine | coarse | oop


class Alternatives(WireModel):
    fine_top2: Optional[CandidateSummary] = None
    coarse_extras: List[CandidateSummary] = Field(default_factory=list)
    out_of_pool: List[CandidateSummary] = Field(default_factory=list)


class Decision(WireModel):
    """Immutable once written; feedback references it by id but never edits it."""

    model_config = ConfigDict(frozen=True)

    id: str
    scenario: str
    request_id: Optional[str] = None
    chosen: ChosenCandidate
    top_k: List[CandidateSummary] = Field(default_factory=list)
    alternatives: Alternatives = Field(default_factory=Alternatives)
    fallback_chain: List[CandidateSummary] = Field(default_factory=list)
    explored: bool = False
    inheritance_chain: List[str] = Field(default_factory=list)
    segment_key: str = "default|default|default"
    strategy_version: str = "v1"
    created_at: datetime

    def find_candidate(self, candidate_id: str) -> Optional[CandidateSummary]:
        """Look a candidate up in the recorded snapshot (top_k then fallback chain)."""
        for summary in self.top_k:
            if summary.id == candidate_id:
                return summary
        for summary in self.fallback_chain:
            if summary.id == candidate_id:
                return summary
        return None
