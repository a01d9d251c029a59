"""
Drivers Router - opt-in, driver profile, requests to drive, availability
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ddride.dependencies import get_db, get_current_user, require_member
from ddride.db.models import User
from ddride.schemas import (
    OptInRequest, DriverProfileOut, DriverRequestCreate, DriverRequestOut, AvailableDriver
)
from ddride.services.trust_service import trust_service
from ddride.services.adjudication_service import adjudication_service
from ddride.services.session_service import session_service

router = APIRouter()


@router.post("/opt-in", response_model=DriverProfileOut)
async def opt_in(
    request: OptInRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Become a designated driver.

    No verification is needed to opt in; a passing verification is only
    required to start a driving session. Revoked drivers cannot opt back in.
    """
    return trust_service.opt_in(db, user.id, vehicle=request.model_dump())


@router.get("/me", response_model=DriverProfileOut)
async def get_my_profile(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    profile = trust_service.get_profile(db, user.id)
    if profile is None:
        return DriverProfileOut(user_id=user.id, trust_status="none")
    return profile


@router.post("/requests", response_model=DriverRequestOut)
async def submit_driver_request(
    request: DriverRequestCreate,
    user: User = Depends(require_member),
    db: Session = Depends(get_db)
):
    """
    Request to drive for an event.

    Resubmitting after a rejection reuses the same request, resetting it to
    pending.
    """
    return adjudication_service.submit_request(db, user.id, request.event_id, group_id=user.group_id)


@router.get("/available", response_model=List[AvailableDriver])
async def list_available_drivers(
    event_id: int = Query(..., description="Event to list active drivers for"),
    user: User = Depends(require_member),
    db: Session = Depends(get_db)
):
    return session_service.list_visible_drivers(db, event_id, group_id=user.group_id)
