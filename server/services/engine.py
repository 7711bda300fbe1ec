"""
Ranking engine: request entry point wiring the feature store, config store,
breakers, decision store, segment metrics and feedback ingestor around the
pure ranking pipeline.

Feature store and persistence calls run under a deadline; exceeding it
raises RankingTimeout and fails the request.
"""

import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Optional, TypeVar

from ranker.errors import PoolEmpty, RankingError, RankingTimeout
from ranker.models import FeedbackAck, build_segment_key
from ranker.stages import run_pipeline

from ..models.recommend import FeedbackRequest, RankRequest, RankResponse
from .breaker_registry import BreakerRegistry
from .config_store import ConfigStore
from .decision_store import DecisionStore
from .feature_store import FeatureStore
from .feedback import FeedbackIngestor
from .lkg_cache import LastKnownGoodCache
from .request_metrics import RequestMetrics
from .segment_metrics import SegmentMetricsAggregator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RankingEngine:
    def __init__(
        self,
        feature_store: FeatureStore,
        config_store: Optional[ConfigStore] = None,
        breakers: Optional[BreakerRegistry] = None,
        decisions: Optional[DecisionStore] = None,
        segments: Optional[SegmentMetricsAggregator] = None,
        lkg: Optional[LastKnownGoodCache] = None,
        metrics: Optional[RequestMetrics] = None,
        rng: Optional[random.Random] = None,
        feature_store_timeout: float = 2.0,
        persistence_timeout: float = 1.0,
        max_workers: int = 8,
    ):
        self.feature_store = feature_store
        self.config_store = config_store or ConfigStore()
        self.breakers = breakers or BreakerRegistry()
        self.decisions = decisions or DecisionStore()
        self.segments = segments or SegmentMetricsAggregator()
        self.lkg = lkg or LastKnownGoodCache()
        self.metrics = metrics or RequestMetrics()
        self.feedback = FeedbackIngestor(self.decisions, self.breakers, self.segments, self.lkg)
        self.feature_store_timeout = feature_store_timeout
        self.persistence_timeout = persistence_timeout
        self._rng = rng or random.Random()
        self._rng_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ranker-io")

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def _request_rng(self) -> random.Random:
        """Per-request generator seeded from the engine's, so a seeded engine replays exactly."""
        with self._rng_lock:
            return random.Random(self._rng.getrandbits(64))

    def _with_deadline(self, fn: Callable[[], T], timeout: float, what: str) -> T:
        future = self._executor.submit(fn)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout as e:
            future.cancel()
            logger.warning("[engine] %s exceeded %.0fms", what, timeout * 1000)
            raise RankingTimeout(
                f"{what} exceeded its deadline", {"stage": what, "timeout_ms": int(timeout * 1000)}
            ) from e

    def rank(self, request: RankRequest) -> RankResponse:
        """Rank one request and record the decision before returning it."""
        started = time.perf_counter()
        scenario = request.scenario
        try:
            response = self._rank(request)
        except RankingError as e:
            self.metrics.record_request(scenario, (time.perf_counter() - started) * 1000, success=False)
            logger.info("[engine] scenario=%s failed: %s %s", scenario, e.code, e.message)
            raise
        self.metrics.record_request(
            scenario,
            (time.perf_counter() - started) * 1000,
            success=True,
            explored=response.explored,
        )
        return response

    def _rank(self, request: RankRequest) -> RankResponse:
        scenario = request.scenario
        options = request.options
        context = request.context

        if options.request_id:
            existing = self.decisions.find_by_request_id(scenario, options.request_id)
            if existing is not None:
                logger.info("[engine] replay request_id=%s decision=%s", options.request_id, existing.id)
                return RankResponse.from_decision(existing, ["idempotent_replay"])

        timeout = options.timeout_ms / 1000 if options.timeout_ms else None
        fs_timeout = timeout or self.feature_store_timeout
        candidates = self._with_deadline(
            lambda: self.feature_store.get_candidates(scenario, timeout=fs_timeout),
            fs_timeout,
            "feature_store",
        )
        if not candidates:
            raise PoolEmpty(f"No candidates for scenario {scenario}", {"scenario": scenario})

        segment_key = build_segment_key(context.category_id, context.region, context.channel)
        policy = self.config_store.get_policy(scenario)
        result = run_pipeline(
            candidates,
            self.config_store.get_hierarchy(scenario),
            context,
            policy,
            self._request_rng(),
            constraints=request.constraints.to_hard_constraints(),
            is_open=self.breakers.is_open,
            last_known_good=self.lkg.get(scenario, segment_key),
            segment=self.segments.get(segment_key),
            explore=options.explore,
            top_k=options.top_k or policy.top_k,
        )

        decision = self._with_deadline(
            lambda: self.decisions.record(
                scenario,
                result.ranking,
                result.decision,
                result.resolved.inheritance_chain,
                segment_key,
                request_id=options.request_id,
                strategy_version=options.strategy_version,
            ),
            timeout or self.persistence_timeout,
            "decision_store",
        )
        if not decision.explored:
            self.lkg.set(scenario, segment_key, decision.chosen.id)

        logger.info(
            "[engine] scenario=%s decision=%s chosen=%s explored=%s segment=%s",
            scenario, decision.id, decision.chosen.id, decision.explored, segment_key,
        )
        return RankResponse.from_decision(decision, result.warnings)

    def ingest_feedback(self, request: FeedbackRequest) -> FeedbackAck:
        had_fallback = self.decisions.used_fallback(request.decision_id)
        ack = self.feedback.ingest(request.decision_id, request.event_type, request.payload)
        if ack.fallback_used and not had_fallback:
            self.metrics.record_fallback(self.decisions.get(request.decision_id).scenario)
        return ack
