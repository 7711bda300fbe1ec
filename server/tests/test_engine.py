#!/usr/bin/env python3
"""
Ranking Engine Tests

Tests the request entry point end to end against in-memory stores:
idempotent replays, deadlines, constraints, per-scenario settings, and the
feature store adapters.

Run:
----
    pytest server/tests/test_engine.py -v
"""

import json
import random
import time
from datetime import datetime, timedelta, timezone

import pytest
import requests

from ranker.errors import FeatureStoreUnavailable, PoolEmpty, RankingTimeout
from ranker.models import (
    ExplorationPolicy,
    FineRankingConfig,
    InheritanceRules,
    TuningConfig,
)
from server.models import RankRequest
from server.services import (
    BreakerRegistry,
    ConfigStore,
    HttpFeatureStore,
    InMemoryFeatureStore,
    JsonFeatureStore,
    RankingEngine,
)

POOL = [
    {"id": "gpt", "rawFeatures": {"relevance": 0.9, "conversionRate": 0.9}, "metadata": {"provider": "openai", "pricePer1kTokens": 0.03}},
    {"id": "claude", "rawFeatures": {"relevance": 0.8, "conversionRate": 0.8}, "metadata": {"provider": "anthropic", "pricePer1kTokens": 0.01}},
    {"id": "gemini", "rawFeatures": {"relevance": 0.7, "conversionRate": 0.7}, "metadata": {"provider": "google"}},
    {"id": "mistral", "rawFeatures": {"relevance": 0.6, "conversionRate": 0.6}, "metadata": {"provider": "mistral"}},
    {"id": "llama", "rawFeatures": {"relevance": 0.5, "conversionRate": 0.5}, "metadata": {"provider": "meta"}},
]


class SlowFeatureStore(InMemoryFeatureStore):
    def get_candidates(self, scenario, timeout=None):
        time.sleep(0.5)
        return super().get_candidates(scenario, timeout)


class TestRankingEngine:
    """Test suite for RankingEngine.rank."""

    @pytest.fixture(autouse=True)
    def setup(self):
        self.config_store = ConfigStore(default_policy=ExplorationPolicy(epsilon=0.0))
        self.engine = RankingEngine(
            feature_store=InMemoryFeatureStore({"model": POOL}),
            config_store=self.config_store,
            rng=random.Random(0),
        )
        yield
        self.engine.close()

    def _rank(self, **body):
        body.setdefault("scenario", "model")
        return self.engine.rank(RankRequest.model_validate(body))

    def test_exploit_response_shape(self):
        response = self._rank()
        assert response.chosen.id == "gpt"
        assert [s.id for s in response.top_k] == ["gpt", "claude", "gemini"]
        assert [s.id for s in response.fallback_chain] == ["gpt", "claude", "mistral", "llama"]
        assert response.alternatives.fine_top2.id == "claude"
        assert not response.explored
        assert response.inheritance_chain == ["global"]
        assert response.strategy_version == "v1"

    def test_request_id_is_idempotent(self):
        first = self._rank(options={"requestId": "req-1"})
        second = self._rank(options={"requestId": "req-1"})
        assert second.decision_id == first.decision_id
        assert "idempotent_replay" in second.warnings
        assert len(self.engine.decisions) == 1

    def test_top_k_option(self):
        response = self._rank(options={"topK": 1})
        assert [s.id for s in response.top_k] == ["gpt"]
        assert response.alternatives.fine_top2 is None
        assert [s.id for s in response.fallback_chain] == ["gpt", "claude", "gemini"]

    def test_constraints_applied(self):
        response = self._rank(constraints={"maxCostUSD": 0.05, "denyProviders": ["google"]})
        assert response.chosen.id == "claude"
        assert "excluded:gpt:over_budget" in response.warnings
        assert "excluded:gemini:provider_denied" in response.warnings
        assert "gpt" not in [s.id for s in response.fallback_chain]

    def test_unknown_scenario_is_pool_empty(self):
        with pytest.raises(PoolEmpty):
            self._rank(scenario="persona")

    def test_layer_update_takes_effect(self):
        layer = TuningConfig(
            level="category",
            level_id="beauty",
            fine_ranking=FineRankingConfig(max_results=2),
            inheritance=InheritanceRules(from_global=True),
        )
        self.config_store.update_layer("model", layer)
        response = self._rank(context={"categoryId": "beauty"})
        assert response.inheritance_chain == ["category:beauty", "global"]
        assert len(response.top_k) == 2

    def test_safe_defaults_in_out_of_pool(self):
        self.config_store.set_policy("model", ExplorationPolicy(epsilon=0.0, safe_defaults=["house-model"], top_k=4))
        response = self._rank()
        assert [s.id for s in response.alternatives.out_of_pool] == ["house-model"]
        assert response.fallback_chain[-1].id == "house-model"

    def test_unhealthy_segment_disables_exploration(self):
        self.config_store.set_policy("model", ExplorationPolicy(epsilon=0.2))
        self.engine.segments.record("default|default|default", {"quality_score": 0.3})
        responses = [self._rank() for _ in range(100)]
        assert not any(r.explored for r in responses)
        assert "exploration_off:quality_below_floor" in responses[0].warnings

    def test_explore_option_off(self):
        self.config_store.set_policy("model", ExplorationPolicy(epsilon=0.2))
        responses = [self._rank(options={"explore": False}) for _ in range(100)]
        assert not any(r.explored for r in responses)

    def test_request_metrics_recorded(self):
        self._rank()
        with pytest.raises(PoolEmpty):
            self._rank(scenario="persona")
        summary = self.engine.metrics.scenario_summary("model")
        assert summary["requests"] == 1
        assert summary["success"] == 1
        assert summary["latency_ms"]["p50"] is not None
        assert self.engine.metrics.scenario_summary("persona")["errors"] == 1

    def test_open_breakers_from_registry(self):
        breakers = BreakerRegistry(failure_threshold=1)
        engine = RankingEngine(
            feature_store=InMemoryFeatureStore({"model": POOL[:2]}),
            config_store=self.config_store,
            breakers=breakers,
        )
        try:
            breakers.record_outcome("gpt", success=False)
            assert engine.rank(RankRequest(scenario="model")).chosen.id == "claude"
            breakers.record_outcome("provider:anthropic", success=False)
            with pytest.raises(PoolEmpty):
                engine.rank(RankRequest(scenario="model"))
        finally:
            engine.close()

    def test_half_open_candidate_gets_one_trial(self):
        now = [datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)]
        breakers = BreakerRegistry(failure_threshold=1, cooldown_seconds=10, clock=lambda: now[0])
        engine = RankingEngine(
            feature_store=InMemoryFeatureStore({"model": POOL[:2]}),
            config_store=self.config_store,
            breakers=breakers,
        )
        try:
            breakers.record_outcome("gpt", success=False)
            now[0] += timedelta(seconds=11)

            trial = engine.rank(RankRequest(scenario="model"))
            assert trial.chosen.id == "gpt"
            concurrent = engine.rank(RankRequest(scenario="model"))
            assert concurrent.chosen.id == "claude"
            assert "excluded:gpt:circuit_open" in concurrent.warnings

            breakers.record_outcome("gpt", success=True)
            assert engine.rank(RankRequest(scenario="model")).chosen.id == "gpt"
        finally:
            engine.close()


class TestDeadlines:
    """Test suite for feature store deadlines."""

    def test_slow_feature_store_times_out(self):
        engine = RankingEngine(
            feature_store=SlowFeatureStore({"model": POOL}),
            feature_store_timeout=0.05,
        )
        try:
            with pytest.raises(RankingTimeout) as excinfo:
                engine.rank(RankRequest(scenario="model"))
            assert excinfo.value.details["stage"] == "feature_store"
        finally:
            engine.close()

    def test_request_timeout_override(self):
        engine = RankingEngine(feature_store=SlowFeatureStore({"model": POOL}), feature_store_timeout=5)
        try:
            with pytest.raises(RankingTimeout):
                engine.rank(RankRequest.model_validate({"scenario": "model", "options": {"timeoutMs": 50}}))
        finally:
            engine.close()


class FakeResponse:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return self.response


class TestFeatureStores:
    """Test suite for the feature store adapters."""

    def test_json_store(self, tmp_path):
        path = tmp_path / "features.json"
        path.write_text(json.dumps({"model": POOL}))
        store = JsonFeatureStore(path)
        assert [c.id for c in store.get_candidates("model")] == [c["id"] for c in POOL]
        pool = store.get_candidates("model")
        pool.clear()
        assert len(store.get_candidates("model")) == len(POOL)
        assert store.get_candidates("persona") == []

    def test_json_store_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            JsonFeatureStore(tmp_path / "missing.json")

    def test_http_store(self):
        session = FakeSession(FakeResponse({"candidates": POOL[:2]}))
        store = HttpFeatureStore("http://features.local/", timeout=1.5, session=session)
        candidates = store.get_candidates("model")
        assert [c.id for c in candidates] == ["gpt", "claude"]
        assert session.calls == [("http://features.local/candidates", {"scenario": "model"}, 1.5)]

    def test_http_timeout_maps_to_ranking_timeout(self):
        store = HttpFeatureStore("http://features.local", session=FakeSession(error=requests.exceptions.Timeout()))
        with pytest.raises(RankingTimeout):
            store.get_candidates("model")

    def test_http_error_maps_to_unavailable(self):
        store = HttpFeatureStore("http://features.local", session=FakeSession(FakeResponse([], status=503)))
        with pytest.raises(FeatureStoreUnavailable):
            store.get_candidates("model")

    def test_http_malformed_rows(self):
        store = HttpFeatureStore("http://features.local", session=FakeSession(FakeResponse([{"type": "model"}])))
        with pytest.raises(FeatureStoreUnavailable):
            store.get_candidates("model")
