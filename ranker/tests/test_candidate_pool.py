#!/usr/bin/env python3
"""
Candidate Pool Tests

Tests pre-selection before ranking: breaker exclusion, hard constraints,
de-duplication.

Scenario:
---------
Candidate A's breaker is open → a pool of [A, B] becomes [B]; with B also
open the pool is empty and the pipeline raises PoolEmpty.

Run:
----
    pytest ranker/tests/test_candidate_pool.py -v
"""

import random

import pytest

from ranker.errors import PoolEmpty
from ranker.models import Candidate, ExplorationPolicy, RankingContext, default_hierarchy
from ranker.stages.candidate_pool import HardConstraints, get_candidate_pool
from ranker.stages.orchestrator import run_pipeline

POOL = [
    Candidate(
        id="gpt",
        raw_features={"relevance": 0.9},
        metadata={"provider": "OpenAI", "pricePer1kTokens": 0.03, "jsonModeSupport": True,
                  "expectedLatencyMs": 900, "langs": ["en", "ms"]},
    ),
    Candidate(
        id="claude",
        raw_features={"relevance": 0.8},
        metadata={"provider": "anthropic", "costPerUnit": 0.01, "jsonModeSupport": False,
                  "expectedLatencyMs": 1500, "langs": ["en"]},
    ),
    Candidate(id="bare", raw_features={"relevance": 0.1}),
]


class TestHardConstraints:
    """Test suite for constraint filtering."""

    def test_no_constraints_keeps_everything(self):
        pool = get_candidate_pool(POOL)
        assert [c.id for c in pool.candidates] == ["gpt", "claude", "bare"]
        assert pool.excluded == {}

    def test_json_mode(self):
        pool = get_candidate_pool(POOL, HardConstraints(require_json_mode=True))
        assert pool.excluded == {"claude": "json_mode_unsupported"}

    def test_cost_budget(self):
        # gpt: 0.03 * 2 = 0.06; claude: 0.01 per unit
        pool = get_candidate_pool(POOL, HardConstraints(max_cost_usd=0.05))
        assert pool.excluded == {"gpt": "over_budget"}

    def test_latency(self):
        pool = get_candidate_pool(POOL, HardConstraints(max_latency_ms=1000))
        assert pool.excluded == {"claude": "too_slow"}

    def test_provider_allow_and_deny(self):
        pool = get_candidate_pool(POOL, HardConstraints(allow_providers=["openai"]))
        assert pool.excluded == {"claude": "provider_not_allowed"}
        pool = get_candidate_pool(POOL, HardConstraints(deny_providers=["OPENAI"]))
        assert pool.excluded == {"gpt": "provider_denied"}

    def test_language(self):
        pool = get_candidate_pool(POOL, HardConstraints(language="ms"))
        assert pool.excluded == {"claude": "language_unsupported"}

    def test_missing_metadata_never_excludes(self):
        constraints = HardConstraints(
            require_json_mode=True, max_cost_usd=0.001, max_latency_ms=1, language="fr",
        )
        pool = get_candidate_pool([POOL[2]], constraints)
        assert [c.id for c in pool.candidates] == ["bare"]

    def test_malformed_metadata_treated_as_missing(self, caplog):
        odd = [
            Candidate(id="slow", raw_features={"relevance": 0.9}, metadata={"expectedLatencyMs": "fast"}),
            Candidate(id="pricey", raw_features={"relevance": 0.8}, metadata={"costPerUnit": "cheap"}),
            Candidate(id="weird", raw_features={"relevance": 0.7}, metadata={"pricePer1kTokens": float("nan")}),
        ]
        constraints = HardConstraints(max_latency_ms=500, max_cost_usd=0.01)
        pool = get_candidate_pool(odd, constraints)
        assert [c.id for c in pool.candidates] == ["slow", "pricey", "weird"]
        assert pool.excluded == {}
        assert "NON_NUMERIC_METADATA" in caplog.text

        result = run_pipeline(
            odd,
            default_hierarchy(),
            RankingContext(),
            ExplorationPolicy(epsilon=0.0),
            random.Random(0),
            constraints=constraints,
        )
        assert [c.id for c in result.ranking.coarse] == ["slow", "pricey", "weird"]
        assert not [w for w in result.warnings if w.startswith("excluded:")]

    def test_duplicates_keep_first(self):
        dup = Candidate(id="gpt", raw_features={"relevance": 0.0})
        pool = get_candidate_pool(POOL + [dup])
        assert [c.id for c in pool.candidates] == ["gpt", "claude", "bare"]
        assert pool.candidates[0].features.relevance == 0.9


class TestBreakerExclusion:
    """Test suite for open-breaker filtering in the pool and the pipeline."""

    @pytest.fixture(autouse=True)
    def setup(self):
        self.candidates = [
            Candidate(id="A", raw_features={"relevance": 0.9}),
            Candidate(id="B", raw_features={"relevance": 0.5}),
        ]
        self.open_keys = set()

    def _run(self):
        return run_pipeline(
            self.candidates,
            default_hierarchy(),
            RankingContext(),
            ExplorationPolicy(epsilon=0.0),
            random.Random(0),
            is_open=lambda key: key in self.open_keys,
        )

    def test_open_candidate_excluded(self):
        self.open_keys = {"A"}
        result = self._run()
        assert [c.id for c in result.pool.candidates] == ["B"]
        assert result.decision.chosen.id == "B"
        assert "excluded:A:circuit_open" in result.warnings
        assert "A" not in [s.id for s in result.decision.fallback_chain]

    def test_all_open_raises_pool_empty(self):
        self.open_keys = {"A", "B"}
        with pytest.raises(PoolEmpty) as excinfo:
            self._run()
        assert excinfo.value.details["excluded"] == {"A": "circuit_open", "B": "circuit_open"}

    def test_provider_key_excludes_candidate(self):
        self.candidates.append(Candidate(id="C", metadata={"provider": "Acme"}))
        self.open_keys = {"provider:acme"}
        pool = get_candidate_pool(self.candidates, is_open=lambda key: key in self.open_keys)
        assert [c.id for c in pool.candidates] == ["A", "B"]
        assert pool.excluded == {"C": "circuit_open"}
