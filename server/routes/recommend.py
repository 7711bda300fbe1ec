"""Recommend endpoints: rank and feedback."""

from fastapi import APIRouter

from ranker.models import FeedbackAck

from ..models import FeedbackRequest, RankRequest, RankResponse
from ..state import get_state

router = APIRouter()


@router.post("/rank", response_model=RankResponse)
def rank(request: RankRequest):
    """Rank the scenario's candidates and record the decision."""
    return get_state().engine.rank(request)


@router.post("/feedback", response_model=FeedbackAck)
def feedback(request: FeedbackRequest):
    """Attach an outcome event to a recorded decision."""
    return get_state().engine.ingest_feedback(request)
