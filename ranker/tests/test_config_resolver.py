#!/usr/bin/env python3
"""
Hierarchical Config Resolver Tests

Tests that layered tuning configs resolve into one complete config and that
inheritance only ever fills gaps.

Layers Used:
------------
- global: complete defaults (DEFAULT_GLOBAL_CONFIG)
- category "beauty": inherits from global, sets relevance=0 explicitly
- product "p1": inherits from category and global, sets max_results=5
- template "t1": varies per test

Properties:
-----------
1. Monotonicity: a field set on the start layer is never overwritten
2. Explicit 0 is a value, not a gap
3. Self-sufficient layers are returned verbatim
4. Incomplete results raise ConfigInvalid naming the missing fields

Run:
----
    pytest ranker/tests/test_config_resolver.py -v
"""

import pytest

from ranker.errors import ConfigInvalid
from ranker.models import (
    DEFAULT_GLOBAL_CONFIG,
    CoarseRankingConfig,
    CoarseWeights,
    FineRankingConfig,
    HierarchicalConfig,
    InheritanceRules,
    RankingContext,
    TuningConfig,
)
from ranker.stages.config_resolver import merge_layer, missing_fields, resolve_config


def _category_layer() -> TuningConfig:
    return TuningConfig(
        coarse_ranking=CoarseRankingConfig(weight_factors=CoarseWeights(relevance=0.0)),
        inheritance=InheritanceRules(from_global=True),
    )


def _product_layer() -> TuningConfig:
    return TuningConfig(
        fine_ranking=FineRankingConfig(max_results=5),
        inheritance=InheritanceRules(from_category=True, from_global=True),
    )


class TestConfigResolver:
    """Test suite for hierarchical config resolution."""

    @pytest.fixture(autouse=True)
    def setup(self):
        self.hierarchy = HierarchicalConfig(
            global_config=DEFAULT_GLOBAL_CONFIG,
            categories={"beauty": _category_layer()},
            products={"p1": _product_layer()},
        )

    def test_no_context_uses_global(self):
        resolved = resolve_config(self.hierarchy, RankingContext())
        assert resolved.inheritance_chain == ["global"]
        assert resolved.config == self.hierarchy.global_config

    def test_category_explicit_zero_is_kept(self):
        resolved = resolve_config(self.hierarchy, RankingContext(category_id="beauty"))
        weights = resolved.config.coarse_ranking.weight_factors
        assert weights.relevance == 0.0
        assert weights.quality == DEFAULT_GLOBAL_CONFIG.coarse_ranking.weight_factors.quality
        assert resolved.inheritance_chain == ["category:beauty", "global"]

    def test_product_merges_category_then_global(self):
        context = RankingContext(category_id="beauty", product_id="p1")
        resolved = resolve_config(self.hierarchy, context)
        config = resolved.config
        assert resolved.inheritance_chain == ["product:p1", "category:beauty", "global"]
        assert config.fine_ranking.max_results == 5
        # relevance=0 comes from the category, not from global's 0.4
        assert config.coarse_ranking.weight_factors.relevance == 0.0
        assert config.coarse_ranking.max_candidates == DEFAULT_GLOBAL_CONFIG.coarse_ranking.max_candidates

    def test_missing_parent_is_skipped(self):
        context = RankingContext(category_id="unknown", product_id="p1")
        resolved = resolve_config(self.hierarchy, context)
        assert resolved.inheritance_chain == ["product:p1", "global"]
        assert resolved.config.coarse_ranking.weight_factors.relevance == 0.4

    def test_parent_that_fills_nothing_is_not_in_chain(self):
        complete = DEFAULT_GLOBAL_CONFIG.model_copy(update={
            "level": "category",
            "level_id": "full",
            "inheritance": InheritanceRules(from_global=True),
        })
        hierarchy = self.hierarchy.with_layer(complete)
        resolved = resolve_config(hierarchy, RankingContext(category_id="full"))
        assert resolved.inheritance_chain == ["category:full"]

        empty = TuningConfig(level="category", level_id="empty", inheritance=InheritanceRules(from_global=True))
        hierarchy = self.hierarchy.with_layer(empty)
        resolved = resolve_config(hierarchy, RankingContext(category_id="empty", product_id="p1"))
        assert resolved.inheritance_chain == ["product:p1", "global"]

    def test_start_layer_values_never_overwritten(self):
        """Every field set on the start layer survives resolution unchanged."""
        context = RankingContext(category_id="beauty", product_id="p1")
        start = self.hierarchy.layer("product", "p1")
        resolved = resolve_config(self.hierarchy, context).config
        assert resolved.fine_ranking.max_results == start.fine_ranking.max_results

        category = self.hierarchy.layer("category", "beauty")
        resolved = resolve_config(self.hierarchy, RankingContext(category_id="beauty")).config
        assert (
            resolved.coarse_ranking.weight_factors.relevance
            == category.coarse_ranking.weight_factors.relevance
        )

    def test_self_sufficient_template_returned_verbatim(self):
        template = DEFAULT_GLOBAL_CONFIG.model_copy(update={"name": "t1-only"})
        hierarchy = self.hierarchy.with_layer(
            template.model_copy(update={"level": "template", "level_id": "t1"})
        )
        context = RankingContext(category_id="beauty", product_id="p1", template_id="t1")
        resolved = resolve_config(hierarchy, context)
        assert resolved.inheritance_chain == ["template:t1"]
        assert resolved.config.name == "t1-only"
        assert resolved.config.coarse_ranking.weight_factors.relevance == 0.4

    def test_incomplete_self_sufficient_layer_raises(self):
        template = TuningConfig(
            level="template",
            level_id="t2",
            coarse_ranking=CoarseRankingConfig(max_candidates=4),
        )
        hierarchy = self.hierarchy.with_layer(template)
        with pytest.raises(ConfigInvalid) as excinfo:
            resolve_config(hierarchy, RankingContext(template_id="t2"))
        missing = excinfo.value.details["missing"]
        assert "coarse_ranking.min_score" in missing
        assert "fine_ranking.weight_factors.market_trend" in missing
        assert "coarse_ranking.max_candidates" not in missing
        assert excinfo.value.details["inheritance_chain"] == ["template:t2"]

    def test_flags_toward_own_or_child_levels_ignored(self):
        """A category layer cannot inherit "from_product"; only from_global counts."""
        category = TuningConfig(inheritance=InheritanceRules(from_product=True))
        hierarchy = self.hierarchy.with_layer(
            category.model_copy(update={"level": "category", "level_id": "shoes"})
        )
        assert hierarchy.layer("category", "shoes").is_self_sufficient
        with pytest.raises(ConfigInvalid):
            resolve_config(hierarchy, RankingContext(category_id="shoes"))

    def test_hierarchy_is_not_mutated(self):
        before = self.hierarchy.model_dump()
        resolve_config(self.hierarchy, RankingContext(category_id="beauty", product_id="p1"))
        assert self.hierarchy.model_dump() == before


class TestMergeLayer:
    """Test suite for the generic merge function."""

    def test_fills_only_unset_fields(self):
        child = CoarseWeights(relevance=0.0, quality=None, diversity=0.5, recency=None)
        parent = CoarseWeights(relevance=0.9, quality=0.8, diversity=0.1, recency=0.2)
        merged = merge_layer(child, parent)
        assert merged.model_dump() == {
            "relevance": 0.0,
            "quality": 0.8,
            "diversity": 0.5,
            "recency": 0.2,
        }
        # Inputs untouched
        assert child.quality is None
        assert parent.relevance == 0.9

    def test_identity_fields_not_inherited(self):
        child = TuningConfig(level="category", level_id="beauty")
        merged = merge_layer(child, DEFAULT_GLOBAL_CONFIG)
        assert merged.level == "category"
        assert merged.level_id == "beauty"
        assert merged.name is None
        assert missing_fields(merged) == []

    def test_weight_outside_unit_interval_rejected(self):
        with pytest.raises(ValueError):
            CoarseWeights(relevance=1.5)
