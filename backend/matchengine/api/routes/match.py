from fastapi import APIRouter, Depends, HTTPException
from typing import List, Optional

from ...schemas.match import MatchRequest, MatchResponse, ConsultationRecord
from ...services.llm_service import llm_service
from ...services.matching_pipeline import MatchingPipeline
from ...services.trial_repository import create_trial_repository

router = APIRouter()

_pipeline: Optional[MatchingPipeline] = None


def get_pipeline() -> MatchingPipeline:
    """Shared pipeline (and with it the consultation history); overridden in tests."""
    global _pipeline
    if _pipeline is None:
        _pipeline = MatchingPipeline(llm_service, create_trial_repository(llm_service))
    return _pipeline


@router.post("", response_model=MatchResponse)
async def match(request: MatchRequest, pipeline: MatchingPipeline = Depends(get_pipeline)):
    """
    Match free-text clinical notes against clinical trials.

    Always returns a complete result set: failed model calls and rejected
    trial batches degrade to fallback data, reported in the validation fields.
    """
    if not request.patient_text.strip():
        raise HTTPException(status_code=400, detail="patientText is required")

    return await pipeline.run(request.patient_text, request.session_id)


@router.get("/history/{session_id}", response_model=List[ConsultationRecord])
async def get_history(session_id: str, pipeline: MatchingPipeline = Depends(get_pipeline)):
    """Recent consultations for a session, newest first."""
    return pipeline.history.get(session_id)
