"""Pydantic request/response models for the API."""

from .recommend import FeedbackRequest, RankConstraints, RankOptions, RankRequest, RankResponse
from .tuning import ResolvePreviewResponse, UpdateLayerRequest

__all__ = [
    "FeedbackRequest",
    "RankConstraints",
    "RankOptions",
    "RankRequest",
    "RankResponse",
    "ResolvePreviewResponse",
    "UpdateLayerRequest",
]
