"""
Verification Router - baseline enrollment and pre-session attempts
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ddride.dependencies import get_db, get_current_user, require_member
from ddride.db.models import User
from ddride.schemas import (
    BaselineCreate, BaselineOut, AttemptCreate, AttemptOut, AttemptResult, EvaluationOut
)
from ddride.services.verification_service import verification_service

router = APIRouter()


@router.post("/baseline", response_model=BaselineOut)
async def enroll_baseline(
    request: BaselineCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record the one-time reference measurements. Cannot be replaced."""
    return verification_service.enroll_baseline(
        db=db,
        user_id=user.id,
        reaction_latency_ms=request.reaction_latency_ms,
        phrase_duration_sec=request.phrase_duration_sec,
        image_base64=request.image_base64,
        content_type=request.content_type,
        phrase_audio_base64=request.phrase_audio_base64,
        audio_content_type=request.audio_content_type
    )


@router.post("/attempts", response_model=AttemptResult)
async def record_attempt(
    request: AttemptCreate,
    user: User = Depends(require_member),
    db: Session = Depends(get_db)
):
    """
    Verify against the baseline before driving.

    Rules:
    - reaction time may exceed baseline by at most 150 ms
    - phrase duration may exceed baseline by at most 2.0 s
    - both must hold to pass

    A fail revokes driving privilege for every event and notifies admins.
    The response always shows measured vs. baseline vs. tolerance.
    """
    result = verification_service.record_attempt(
        db=db,
        user_id=user.id,
        reaction_latency_ms=request.reaction_latency_ms,
        phrase_duration_sec=request.phrase_duration_sec,
        image_base64=request.image_base64,
        content_type=request.content_type,
        event_id=request.event_id,
        phrase_audio_base64=request.phrase_audio_base64,
        audio_content_type=request.audio_content_type,
        group_id=user.group_id
    )

    return AttemptResult(
        attempt=AttemptOut.model_validate(result["attempt"]),
        evaluation=EvaluationOut(**result["evaluation"]),
        trust_status=result["trust_status"]
    )
