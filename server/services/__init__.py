"""Backing logic: feature store, config store, breakers, decisions, metrics, engine."""

from .breaker_registry import BreakerRegistry
from .config_store import ConfigStore
from .decision_store import DecisionStore
from .engine import RankingEngine
from .feature_store import (
    FeatureStore,
    HttpFeatureStore,
    InMemoryFeatureStore,
    JsonFeatureStore,
    create_feature_store,
)
from .feedback import FeedbackIngestor
from .lkg_cache import LastKnownGoodCache
from .request_metrics import RequestMetrics
from .segment_metrics import SegmentMetricsAggregator

__all__ = [
    "BreakerRegistry",
    "ConfigStore",
    "DecisionStore",
    "FeatureStore",
    "FeedbackIngestor",
    "HttpFeatureStore",
    "InMemoryFeatureStore",
    "JsonFeatureStore",
    "LastKnownGoodCache",
    "RankingEngine",
    "RequestMetrics",
    "SegmentMetricsAggregator",
    "create_feature_store",
]
