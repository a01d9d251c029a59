"""
Events Router - event creation, listing and completion

Every route is scoped to the caller's group.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ddride.dependencies import get_db, require_member, require_admin
from ddride.db.models import User
from ddride.schemas import EventCreate, EventOut
from ddride.services.event_service import event_service

router = APIRouter()


@router.post("", response_model=EventOut)
async def create_event(
    request: EventCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create an event in the admin's group"""
    return event_service.create_event(
        db=db,
        created_by_user_id=admin.id,
        group_id=admin.group_id,
        name=request.name,
        location_text=request.location_text,
        date_time=request.date_time,
        description=request.description
    )


@router.get("", response_model=List[EventOut])
async def list_events(
    status: Optional[str] = Query(None, description="upcoming, active or completed"),
    user: User = Depends(require_member),
    db: Session = Depends(get_db)
):
    """
    List the group's events.

    Upcoming events whose start time has passed are activated first, so
    the listing never waits on the periodic activation task.
    """
    event_service.activate_due_events(db, group_id=user.group_id)
    return event_service.list_events(db, status, group_id=user.group_id)


@router.get("/{event_id}", response_model=EventOut)
async def get_event(
    event_id: int,
    user: User = Depends(require_member),
    db: Session = Depends(get_db)
):
    return event_service.get_event(db, event_id, group_id=user.group_id)


@router.post("/{event_id}/complete", response_model=EventOut)
async def complete_event(
    event_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Mark an event completed. Completed events take no new requests or sessions."""
    return event_service.complete_event(db, event_id, group_id=admin.group_id)
