"""
Tuning configuration — one layer per level (global, category, product, template).

Every tunable field on a layer is optional: None means "unset, inherit from a
parent layer if the inheritance rules allow it". An explicit 0 is a value, not
a gap. The resolver (stages/config_resolver.py) merges layers into one
complete TuningConfig; layers themselves are never mutated, only replaced.
"""

from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from .common import WireModel

ConfigLevel = Literal["global", "category", "product", "template"]

# Levels from most to least specific.
LEVEL_ORDER: List[str] = ["template", "product", "category", "global"]


def _check_weight(value: Optional[float]) -> Optional[float]:
    if value is None:
        return value
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"weight factor must be within [0, 1], got {value}")
    return value


class CoarseWeights(WireModel):
    """Stage 1 composite score: relevance·w_r + quality·w_q + diversity·w_d + recency·w_rec."""

    relevance: Optional[float] = None
    quality: Optional[float] = None
    diversity: Optional[float] = None
    recency: Optional[float] = None

    @field_validator("relevance", "quality", "diversity", "recency")
    @classmethod
    def weights_in_unit_interval(cls, value: Optional[float]) -> Optional[float]:
        return _check_weight(value)


class FineWeights(WireModel):
    """Stage 2 final score weights."""

    user_preference: Optional[float] = None
    business_value: Optional[float] = None
    technical_quality: Optional[float] = None
    market_trend: Optional[float] = None

    @field_validator("user_preference", "business_value", "technical_quality", "market_trend")
    @classmethod
    def weights_in_unit_interval(cls, value: Optional[float]) -> Optional[float]:
        return _check_weight(value)


class CoarseRankingConfig(WireModel):
    # Survivors kept after coarse sort.
    max_candidates: Optional[int] = Field(default=None, ge=1)
    # Candidates whose pre-existing score is below this are dropped.
    min_score: Optional[float] = None
    weight_factors: CoarseWeights = Field(default_factory=CoarseWeights)


class FineRankingConfig(WireModel):
    # Results kept after fine sort (the top-K snapshot).
    max_results: Optional[int] = Field(default=None, ge=1)
    min_score: Optional[float] = None
    weight_factors: FineWeights = Field(default_factory=FineWeights)


class InheritanceRules(WireModel):
    from_global: bool = False
    from_category: bool = False
    from_product: bool = False


# Parent levels a layer may inherit from, keyed by its own level.
PARENT_FLAGS: Dict[str, List[str]] = {
    "template": ["from_product", "from_category", "from_global"],
    "product": ["from_category", "from_global"],
    "category": ["from_global"],
    "global": [],
}


class TuningConfig(WireModel):
    """One configuration layer (or, after resolution, the effective config)."""

    level: ConfigLevel = "global"
    level_id: str = "global"
    name: Optional[str] = None
    coarse_ranking: CoarseRankingConfig = Field(default_factory=CoarseRankingConfig)
    fine_ranking: FineRankingConfig = Field(default_factory=FineRankingConfig)
    inheritance: InheritanceRules = Field(default_factory=InheritanceRules)

    @property
    def layer_key(self) -> str:
        """Key used in inheritance chains: 'global' or '<level>:<id>'."""
        if self.level == "global":
            return "global"
        return f"{self.level}:{self.level_id}"

    def inherits_from(self) -> List[str]:
        """Parent flags that are set and meaningful for this layer's level."""
        return [
            flag for flag in PARENT_FLAGS[self.level]
            if getattr(self.inheritance, flag)
        ]

    @property
    def is_self_sufficient(self) -> bool:
        return not self.inherits_from()


class HierarchicalConfig(WireModel):
    """All layers for one scenario."""

    global_config: TuningConfig = Field(default_factory=TuningConfig, alias="global")
    categories: Dict[str, TuningConfig] = Field(default_factory=dict)
    products: Dict[str, TuningConfig] = Field(default_factory=dict)
    templates: Dict[str, TuningConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def stamp_layer_levels(self):
        """Layers take their level and id from the table they are stored in."""
        self.global_config = self.global_config.model_copy(
            update={"level": "global", "level_id": "global"}
        )
        for level, table in (
            ("category", self.categories),
            ("product", self.products),
            ("template", self.templates),
        ):
            for level_id, layer in list(table.items()):
                if layer.level != level or layer.level_id != level_id:
                    table[level_id] = layer.model_copy(
                        update={"level": level, "level_id": level_id}
                    )
        return self

    def layer(self, level: str, level_id: Optional[str] = None) -> Optional[TuningConfig]:
        """Look up one layer; None when the level id is missing or unknown."""
        if level == "global":
            return self.global_config
        if not level_id:
            return None
        table = {
            "category": self.categories,
            "product": self.products,
            "template": self.templates,
        }.get(level)
        if table is None:
            return None
        return table.get(level_id)

    def with_layer(self, config: TuningConfig) -> "HierarchicalConfig":
        """Return a new hierarchy with one layer replaced (the original is untouched)."""
        if config.level == "global":
            return self.model_copy(update={"global_config": config})
        field = {
            "category": "categories",
            "product": "products",
            "template": "templates",
        }[config.level]
        table = dict(getattr(self, field))
        table[config.level_id] = config
        return self.model_copy(update={field: table})


DEFAULT_GLOBAL_CONFIG = TuningConfig(
    level="global",
    level_id="global",
    name="default",
    coarse_ranking=CoarseRankingConfig(
        max_candidates=8,
        min_score=0.0,
        weight_factors=CoarseWeights(relevance=0.4, quality=0.3, diversity=0.15, recency=0.15),
    ),
    fine_ranking=FineRankingConfig(
        max_results=3,
        min_score=0.0,
        weight_factors=FineWeights(
            user_preference=0.3,
            business_value=0.3,
            technical_quality=0.25,
            market_trend=0.15,
        ),
    ),
)


def default_hierarchy() -> HierarchicalConfig:
    return HierarchicalConfig(global_config=DEFAULT_GLOBAL_CONFIG)
