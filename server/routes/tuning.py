"""Tuning endpoints: hierarchical config layers and exploration settings per scenario."""

from typing import Optional

from fastapi import APIRouter, Query

from ranker.errors import BadRequest
from ranker.models import ExplorationPolicy, HierarchicalConfig, RankingContext
from ranker.stages import resolve_config

from ..models import ResolvePreviewResponse, UpdateLayerRequest
from ..state import get_state

router = APIRouter()


@router.get("/tuning/{scenario}", response_model=HierarchicalConfig)
def get_tuning(scenario: str):
    """All layers for a scenario (the default hierarchy when none is stored)."""
    return get_state().engine.config_store.get_hierarchy(scenario)


@router.put("/tuning/{scenario}", response_model=HierarchicalConfig)
def update_tuning(scenario: str, request: UpdateLayerRequest):
    """Replace one layer of the scenario's hierarchy."""
    if request.level != "global" and not request.level_id:
        raise BadRequest(f"levelId is required for level '{request.level}'", {"level": request.level})
    return get_state().engine.config_store.update_layer(scenario, request.stamped_config())


@router.get("/tuning/{scenario}/resolve", response_model=ResolvePreviewResponse)
def preview_resolution(
    scenario: str,
    category_id: Optional[str] = Query(None, alias="categoryId"),
    product_id: Optional[str] = Query(None, alias="productId"),
    template_id: Optional[str] = Query(None, alias="templateId"),
):
    """Show the effective config and inheritance chain for a context."""
    hierarchy = get_state().engine.config_store.get_hierarchy(scenario)
    context = RankingContext(category_id=category_id, product_id=product_id, template_id=template_id)
    resolved = resolve_config(hierarchy, context)
    return ResolvePreviewResponse(
        scenario=scenario,
        config=resolved.config,
        inheritance_chain=resolved.inheritance_chain,
    )


@router.get("/settings/{scenario}", response_model=ExplorationPolicy)
def get_settings(scenario: str):
    return get_state().engine.config_store.get_policy(scenario)


@router.put("/settings/{scenario}", response_model=ExplorationPolicy)
def update_settings(scenario: str, policy: ExplorationPolicy):
    """Replace the scenario's exploration settings."""
    return get_state().engine.config_store.set_policy(scenario, policy)
