#!/usr/bin/env python3
"""
Two-Stage Ranking Tests

Tests the coarse and fine stages on small hand-built pools.

Properties:
-----------
1. Containment: fine output ⊆ coarse survivors ⊆ input
2. Sorted truncation: each stage is sorted by (score desc, id asc) and
   never longer than its max
3. Purity: inputs, config and context are not modified
4. Malformed features are clamped, never fatal

Scenario:
---------
Global coarse weights {relevance: 1, others: 0}, fine weights all 0.25,
candidates A (relevance 0.9) and B (relevance 0.5) → coarse order [A, B],
fine order [A, B].

Run:
----
    pytest ranker/tests/test_ranking.py -v
"""

import random

import pytest

from ranker.models import (
    Candidate,
    CoarseRankingConfig,
    CoarseWeights,
    FineRankingConfig,
    FineWeights,
    RankingContext,
    TuningConfig,
    UserProfile,
)
from ranker.stages.candidate_pool import get_candidate_pool
from ranker.stages.ranking import rank_candidates
from ranker.stages.ranking.fine_features import NO_PROFILE_PREFERENCE, user_preference


def make_config(max_candidates=8, max_results=3, coarse_min=0.0, fine_min=0.0) -> TuningConfig:
    return TuningConfig(
        coarse_ranking=CoarseRankingConfig(
            max_candidates=max_candidates,
            min_score=coarse_min,
            weight_factors=CoarseWeights(relevance=1.0, quality=0.0, diversity=0.0, recency=0.0),
        ),
        fine_ranking=FineRankingConfig(
            max_results=max_results,
            min_score=fine_min,
            weight_factors=FineWeights(
                user_preference=0.25,
                business_value=0.25,
                technical_quality=0.25,
                market_trend=0.25,
            ),
        ),
    )


def pool_of(candidates):
    return get_candidate_pool(candidates).candidates


class TestTwoStageRanking:
    """Test suite for coarse + fine ranking."""

    @pytest.fixture(autouse=True)
    def setup(self):
        self.context = RankingContext()
        rng = random.Random(7)
        self.candidates = [
            Candidate(
                id=f"c{i:02d}",
                raw_features={
                    "relevance": round(rng.random(), 3),
                    "quality": round(rng.random(), 3),
                    "conversionRate": round(rng.random(), 3),
                    "clarity": round(rng.random(), 3),
                },
            )
            for i in range(20)
        ]

    def test_scenario_relevance_only(self):
        candidates = [
            Candidate(id="A", raw_features={"relevance": 0.9}),
            Candidate(id="B", raw_features={"relevance": 0.5}),
        ]
        result = rank_candidates(pool_of(candidates), make_config(), self.context)
        assert [c.id for c in result.coarse] == ["A", "B"]
        assert [c.id for c in result.candidates] == ["A", "B"]
        assert result.coarse[0].coarse_score == pytest.approx(0.9)
        # Uniform fine features: only the neutral user preference contributes
        assert result.candidates[0].fine_score == pytest.approx(0.25 * NO_PROFILE_PREFERENCE)
        assert result.total_count == 2

    def test_containment(self):
        config = make_config(max_candidates=10, max_results=4)
        pool = pool_of(self.candidates)
        result = rank_candidates(pool, config, self.context)
        input_ids = {c.id for c in pool}
        coarse_ids = {c.id for c in result.coarse}
        fine_ids = {c.id for c in result.candidates}
        assert fine_ids <= coarse_ids <= input_ids

    @pytest.mark.parametrize("max_candidates,max_results", [(1, 1), (5, 3), (10, 10), (50, 30)])
    def test_sorted_truncation(self, max_candidates, max_results):
        config = make_config(max_candidates=max_candidates, max_results=max_results)
        result = rank_candidates(pool_of(self.candidates), config, self.context)

        assert len(result.coarse) <= max_candidates
        assert len(result.candidates) <= max_results
        coarse_keys = [(-c.coarse_score, c.id) for c in result.coarse]
        fine_keys = [(-c.fine_score, c.id) for c in result.candidates]
        assert coarse_keys == sorted(coarse_keys)
        assert fine_keys == sorted(fine_keys)

    def test_ties_broken_by_id(self):
        candidates = [Candidate(id=i, raw_features={"relevance": 0.5}) for i in ("z", "a", "m")]
        result = rank_candidates(pool_of(candidates), make_config(), self.context)
        assert [c.id for c in result.coarse] == ["a", "m", "z"]

    def test_coarse_min_score_uses_prior_score(self):
        candidates = [
            Candidate(id="low", score=0.1, raw_features={"relevance": 0.9}),
            Candidate(id="high", score=0.8, raw_features={"relevance": 0.2}),
            Candidate(id="unscored", raw_features={"relevance": 0.1}),
        ]
        result = rank_candidates(pool_of(candidates), make_config(coarse_min=0.5), self.context)
        assert [c.id for c in result.coarse] == ["high", "unscored"]

    def test_fine_min_score_drops_candidates(self):
        candidates = [
            Candidate(id="good", raw_features={"relevance": 0.5, "conversionRate": 1.0, "roi": 1.0, "marketDemand": 1.0}),
            Candidate(id="plain", raw_features={"relevance": 0.9}),
        ]
        result = rank_candidates(pool_of(candidates), make_config(fine_min=0.2), self.context)
        assert [c.id for c in result.candidates] == ["good"]
        assert {c.id for c in result.coarse} == {"good", "plain"}

    def test_inputs_not_mutated(self):
        config = make_config()
        pool = pool_of(self.candidates)
        pool_before = [c.model_dump() for c in pool]
        config_before = config.model_dump()
        rank_candidates(pool, config, self.context)
        assert [c.model_dump() for c in pool] == pool_before
        assert config.model_dump() == config_before

    def test_malformed_features_clamped(self, caplog):
        candidates = [
            Candidate(id="nan", raw_features={"relevance": float("nan")}),
            Candidate(id="text", raw_features={"relevance": "very"}),
            Candidate(id="big", raw_features={"relevance": 7}),
        ]
        result = rank_candidates(pool_of(candidates), make_config(), self.context)
        scores = {c.id: c.coarse_score for c in result.coarse}
        assert scores == {"big": 1.0, "nan": 0.0, "text": 0.0}
        assert "[score_clamp]" in caplog.text

    def test_features_fall_back_to_metadata(self):
        candidates = [
            Candidate(id="meta", metadata={"relevance": 0.8, "clarity": 0.9}),
            Candidate(id="raw", raw_features={"relevance": 0.4}, metadata={"relevance": 1.0}),
        ]
        result = rank_candidates(pool_of(candidates), make_config(), self.context)
        scores = {c.id: c.coarse_score for c in result.coarse}
        assert scores["meta"] == pytest.approx(0.8)
        assert scores["raw"] == pytest.approx(0.4)
        meta = next(c for c in result.candidates if c.id == "meta")
        assert meta.features.technical_quality == pytest.approx(0.3)


class TestUserPreference:
    """Test suite for the user preference feature."""

    def test_neutral_without_profile(self):
        candidate = pool_of([Candidate(id="x")])[0]
        assert user_preference(candidate, None) == NO_PROFILE_PREFERENCE

    def test_category_style_and_history(self):
        candidate = pool_of([
            Candidate(id="x", metadata={"category": "beauty", "style": "playful"})
        ])[0]
        profile = UserProfile(
            preferred_categories=["beauty"],
            preferred_styles=["serious"],
            interaction_history={"x": 0.6},
        )
        assert user_preference(candidate, profile) == pytest.approx((1.0 + 0.0 + 0.6) / 3)

    def test_empty_profile_scores_zero(self):
        candidate = pool_of([Candidate(id="x")])[0]
        assert user_preference(candidate, UserProfile()) == 0.0
