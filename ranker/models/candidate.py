"""
Candidate models — the selectable units of a scenario and their working records.

Candidate is the immutable snapshot returned by the feature store.
RankingCandidate is the per-stage working record; each stage returns new
RankingCandidate objects (model_copy) rather than mutating the previous stage.
"""

from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from .common import WireModel


class Candidate(WireModel):
    """One selectable unit (AI model, prompt template, persona, content style)."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str = "model"
    # Pre-existing composite score used by the coarse min_score filter.
    score: Optional[float] = None
    raw_features: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def provider(self) -> Optional[str]:
        provider = self.metadata.get("provider")
        return str(provider).lower() if provider else None


class CandidateFeatures(WireModel):
    relevance: float = 0.0
    quality: float = 0.0
    diversity: float = 0.0
    recency: float = 0.0
    user_preference: Optional[float] = None
    business_value: Optional[float] = None
    technical_quality: Optional[float] = None
    market_trend: Optional[float] = None


class RankingCandidate(WireModel):
    """Working record during scoring."""

    id: str
    type: str = "model"
    score: Optional[float] = None
    coarse_score: Optional[float] = None
    fine_score: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    raw_features: Dict[str, Any] = Field(default_factory=dict)
    features: CandidateFeatures = Field(default_factory=CandidateFeatures)


class UserProfile(WireModel):
    preferred_categories: List[str] = Field(default_factory=list)
    preferred_styles: List[str] = Field(default_factory=list)
    # Prior interaction score per candidate id, in [0, 1].
    interaction_history: Dict[str, float] = Field(default_factory=dict)


class TimeContext(WireModel):
    hour: int = 0
    day_of_week: int = 0
    season: str = ""


class RankingContext(WireModel):
    """Per-request situational data. Read-only input; never persisted as-is."""

    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    category_id: Optional[str] = None
    product_id: Optional[str] = None
    template_id: Optional[str] = None
    region: Optional[str] = None
    channel: Optional[str] = None
    user_profile: Optional[UserProfile] = None
    session_data: Optional[Dict[str, Any]] = None
    time_context: Optional[TimeContext] = None
