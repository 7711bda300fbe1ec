"""Data models for the ranking engine."""

from .candidate import (
    Candidate,
    CandidateFeatures,
    RankingCandidate,
    RankingContext,
    TimeContext,
    UserProfile,
)
from .config import (
    DEFAULT_GLOBAL_CONFIG,
    CoarseRankingConfig,
    CoarseWeights,
    FineRankingConfig,
    FineWeights,
    HierarchicalConfig,
    InheritanceRules,
    TuningConfig,
    default_hierarchy,
)
from .decision import Alternatives, CandidateSummary, ChosenCandidate, Decision
from .feedback import (
    METRIC_FIELDS,
    ExecutionAttempt,
    FeedbackAck,
    FeedbackEvent,
    FeedbackPayload,
)
from .metrics import (
    BreakerState,
    CircuitBreakerState,
    DecisionStats,
    SegmentMetrics,
    build_segment_key,
)
from .policy import ExplorationPolicy

__all__ = [
    "Alternatives",
    "BreakerState",
    "Candidate",
    "CandidateFeatures",
    "CandidateSummary",
    "ChosenCandidate",
    "CircuitBreakerState",
    "CoarseRankingConfig",
    "CoarseWeights",
    "DEFAULT_GLOBAL_CONFIG",
    "Decision",
    "DecisionStats",
    "ExecutionAttempt",
    "ExplorationPolicy",
    "FeedbackAck",
    "FeedbackEvent",
    "FeedbackPayload",
    "FineRankingConfig",
    "FineWeights",
    "HierarchicalConfig",
    "InheritanceRules",
    "METRIC_FIELDS",
    "RankingCandidate",
    "RankingContext",
    "SegmentMetrics",
    "TimeContext",
    "TuningConfig",
    "UserProfile",
    "build_segment_key",
    "default_hierarchy",
]
