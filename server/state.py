"""Application state: stores, services, and the ranking engine."""

from typing import Optional

from ranker.models import ExplorationPolicy

from .config import ServerConfig, get_config
from .services import (
    BreakerRegistry,
    ConfigStore,
    DecisionStore,
    LastKnownGoodCache,
    RankingEngine,
    RequestMetrics,
    SegmentMetricsAggregator,
    create_feature_store,
)


class AppState:
    """Global application state."""

    def __init__(self, config: ServerConfig, engine: Optional[RankingEngine] = None):
        self.config = config
        self.engine = engine or self._create_engine(config)
        print(f"[startup] Feature store: {type(self.engine.feature_store).__name__}")

    def _create_engine(self, config: ServerConfig) -> RankingEngine:
        default_policy = ExplorationPolicy(
            epsilon=config.default_epsilon,
            safe_defaults=list(config.safe_defaults),
        )
        if config.tuning_json_path and config.tuning_json_path.exists():
            config_store = ConfigStore.from_json(
                config.tuning_json_path,
                default_policy=default_policy,
                default_top_k=config.default_top_k,
            )
        else:
            config_store = ConfigStore(default_policy=default_policy, default_top_k=config.default_top_k)

        return RankingEngine(
            feature_store=create_feature_store(config),
            config_store=config_store,
            breakers=BreakerRegistry(
                failure_threshold=config.breaker_failure_threshold,
                failure_window_seconds=config.breaker_failure_window_seconds,
                cooldown_seconds=config.breaker_cooldown_seconds,
                trial_timeout_seconds=config.breaker_trial_timeout_seconds,
            ),
            decisions=DecisionStore(
                retention=config.decision_retention,
                log_path=config.decision_log_path,
            ),
            segments=SegmentMetricsAggregator(window_hours=config.segment_window_hours),
            lkg=LastKnownGoodCache(ttl_seconds=config.lkg_ttl_seconds),
            metrics=RequestMetrics(),
            feature_store_timeout=config.feature_store_timeout_seconds,
            persistence_timeout=config.persistence_timeout_seconds,
        )


_state: Optional[AppState] = None


def get_state() -> AppState:
    global _state
    if _state is None:
        config = get_config()
        _state = AppState(config)
    return _state


def set_state(state: Optional[AppState]) -> None:
    """Replace the global state (tests inject an engine with in-memory stores)."""
    global _state
    _state = state
