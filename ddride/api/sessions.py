"""
Sessions Router - start and end driving sessions
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ddride.dependencies import get_db, get_current_user
from ddride.db.models import User
from ddride.schemas import SessionStart, SessionOut
from ddride.services.session_service import session_service

router = APIRouter()


@router.post("", response_model=SessionOut)
async def start_session(
    request: SessionStart,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Open a driving session from the caller's latest passing attempt"""
    return session_service.start_session(db, user.id, request.attempt_id)


@router.post("/{session_id}/end", response_model=SessionOut)
async def end_session(
    session_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return session_service.end_session(db, user.id, session_id)


@router.get("/active", response_model=Optional[SessionOut])
async def get_active_session(
    event_id: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return session_service.get_active_session(db, user.id, event_id)
