"""
Rides Router - ride requests, driver queue and rider status
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ddride.dependencies import get_db, get_current_user, require_member
from ddride.db.models import User
from ddride.errors import ValidationError
from ddride.schemas import (
    RideRequestCreate, RideRequestOut, RideAdvance, DriverQueue, QueuedRide
)
from ddride.services.ride_service import ride_service

router = APIRouter()


@router.post("", response_model=RideRequestOut)
async def create_ride_request(
    request: RideRequestCreate,
    user: User = Depends(require_member),
    db: Session = Depends(get_db)
):
    """
    Request a ride from a driver.

    The driver must currently hold an active session for the event, and the
    rider may only have one open request per event.
    """
    return ride_service.create_ride_request(
        db=db,
        rider_user_id=user.id,
        driver_user_id=request.driver_user_id,
        event_id=request.event_id,
        pickup_text=request.pickup_text,
        pickup_latitude=request.pickup_latitude,
        pickup_longitude=request.pickup_longitude,
        group_id=user.group_id
    )


@router.post("/{ride_id}/advance", response_model=RideRequestOut)
async def advance_ride_request(
    ride_id: int,
    request: RideAdvance,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Move a ride forward.

    - driver: pending -> accepted -> picked_up -> completed
    - rider: pending -> cancelled
    """
    return ride_service.advance_ride_request(db, user.id, ride_id, request.status.value)


@router.get("/queue", response_model=DriverQueue)
async def get_driver_queue(
    event_id: int = Query(...),
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    The calling driver's open rides. Pending requests are ordered nearest
    first when the driver's location is supplied, otherwise oldest first.
    """
    if (latitude is None) != (longitude is None):
        raise ValidationError("latitude and longitude must be given together")
    location = (latitude, longitude) if latitude is not None else None

    queue = ride_service.driver_queue(db, user.id, event_id, location)
    return DriverQueue(
        pending=[
            QueuedRide(**RideRequestOut.model_validate(ride).model_dump(), distance_miles=distance)
            for ride, distance in queue["pending"]
        ],
        accepted=[RideRequestOut.model_validate(ride) for ride in queue["accepted"]],
        active_ride=RideRequestOut.model_validate(queue["active_ride"]) if queue["active_ride"] else None
    )


@router.get("/mine", response_model=Optional[RideRequestOut])
async def get_my_ride(
    event_id: int = Query(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The caller's open ride request for an event, if any"""
    return ride_service.rider_active_request(db, user.id, event_id)
