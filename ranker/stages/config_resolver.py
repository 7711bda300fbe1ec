"""
Hierarchical config resolution: template -> product -> category -> global.

The most specific layer that exists for the request context is the starting
point. A self-sufficient layer is used verbatim; otherwise unset fields are
filled from the parents it declares, in the order product, category, global,
each step only filling gaps left by the previous one.

The public entry points are resolve_config and merge_layer.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, TypeVar

from pydantic import BaseModel

from ..errors import ConfigInvalid
from ..models.candidate import RankingContext
from ..models.config import HierarchicalConfig, TuningConfig

M = TypeVar("M", bound=BaseModel)

# Describe the layer itself, never inherited.
_IDENTITY_FIELDS = {"level", "level_id", "name", "inheritance"}

# (level, inheritance flag) for parents, in merge order.
_PARENT_MERGE_ORDER = [
    ("product", "from_product"),
    ("category", "from_category"),
    ("global", "from_global"),
]


@dataclass(frozen=True)
class ResolvedConfig:
    config: TuningConfig
    inheritance_chain: List[str] = field(default_factory=list)


def merge_layer(child: M, parent: M, fields: Optional[Iterable[str]] = None) -> M:
    """
    Return a copy of child with its unset (None) fields taken from parent.

    Nested records are merged field by field, so a child that sets one weight
    keeps it while inheriting the others. Explicit values (including 0) are
    never overwritten. Neither input is modified.
    """
    names = list(fields) if fields is not None else [
        name for name in type(child).model_fields if name not in _IDENTITY_FIELDS
    ]
    updates = {}
    for name in names:
        child_value = getattr(child, name)
        parent_value = getattr(parent, name)
        if child_value is None:
            if parent_value is not None:
                updates[name] = parent_value
        elif isinstance(child_value, BaseModel) and isinstance(parent_value, BaseModel):
            merged = merge_layer(child_value, parent_value)
            if merged is not child_value:
                updates[name] = merged
    return child.model_copy(update=updates) if updates else child


def missing_fields(record: BaseModel, prefix: str = "") -> List[str]:
    """Dotted paths of every unset field (identity fields excluded)."""
    missing = []
    for name in type(record).model_fields:
        if name in _IDENTITY_FIELDS:
            continue
        value = getattr(record, name)
        path = f"{prefix}{name}"
        if value is None:
            missing.append(path)
        elif isinstance(value, BaseModel):
            missing.extend(missing_fields(value, prefix=f"{path}."))
    return missing


def ensure_complete(config: TuningConfig, inheritance_chain: List[str]) -> TuningConfig:
    """Raise ConfigInvalid when any weight or threshold is still unset."""
    missing = missing_fields(config)
    if missing:
        raise ConfigInvalid(
            f"Resolved config for {config.layer_key} has unset fields: {', '.join(missing)}",
            {"missing": missing, "inheritance_chain": inheritance_chain},
        )
    return config


def _context_level_ids(context: RankingContext) -> dict:
    return {
        "template": context.template_id,
        "product": context.product_id,
        "category": context.category_id,
        "global": None,
    }


def _start_layer(hierarchy: HierarchicalConfig, context: RankingContext) -> TuningConfig:
    """Most specific layer that exists for the context, else the global layer."""
    ids = _context_level_ids(context)
    for level in ("template", "product", "category"):
        layer = hierarchy.layer(level, ids[level])
        if layer is not None:
            return layer
    return hierarchy.global_config


def resolve_config(hierarchy: HierarchicalConfig, context: RankingContext) -> ResolvedConfig:
    """
    Resolve the effective TuningConfig for a request context.

    Returns the config plus the inheritance chain of layer keys actually used
    (most specific first). Raises ConfigInvalid if the result is incomplete.
    """
    start = _start_layer(hierarchy, context)
    chain = [start.layer_key]
    if start.is_self_sufficient:
        return ResolvedConfig(ensure_complete(start, chain), chain)

    ids = _context_level_ids(context)
    declared = set(start.inherits_from())
    merged = start
    for level, flag in _PARENT_MERGE_ORDER:
        if flag not in declared:
            continue
        parent = hierarchy.layer(level, ids[level])
        if parent is None:
            continue
        filled = merge_layer(merged, parent)
        if filled is not merged:
            chain.append(parent.layer_key)
        merged = filled

    return ResolvedConfig(ensure_complete(merged, chain), chain)
