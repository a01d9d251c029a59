"""
Ride Service - ride requests against active drivers

State machine:
    pending -> accepted -> picked_up -> completed
    pending -> cancelled

Only the assigned driver advances a ride; only the requesting rider cancels,
and only while pending. Each transition is a conditional update on the
current status and stamps its timestamp once.

A rider holds at most one non-terminal request per event. The store enforces
this with a partial unique index; the service checks first so the common case
reports a clean conflict.
"""
import logging
import math
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ddride.db.models import RideRequest, User, RIDE_ACTIVE_STATUSES
from ddride.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ddride.services.event_service import event_service
from ddride.services.session_service import session_service

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3959

# next_status -> (required current status, actor, timestamp column)
TRANSITIONS: Dict[str, Tuple[str, str, Optional[str]]] = {
    "accepted": ("pending", "driver", "accepted_at"),
    "picked_up": ("accepted", "driver", "picked_up_at"),
    "completed": ("picked_up", "driver", "completed_at"),
    "cancelled": ("pending", "rider", None),
}


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in miles, rounded to one decimal"""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(delta_lat / 2) ** 2 +
        math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return round(EARTH_RADIUS_MILES * c, 1)


def order_queue(
    requests: List[RideRequest],
    driver_location: Optional[Tuple[float, float]] = None
) -> List[Tuple[RideRequest, Optional[float]]]:
    """
    Order pending requests for a driver.

    Requests with a computable distance come first, nearest first; ties and
    requests without coordinates fall back to created_at (FIFO).
    """
    ranked = []
    for request in requests:
        distance = None
        if (
            driver_location is not None
            and request.pickup_latitude is not None
            and request.pickup_longitude is not None
        ):
            distance = haversine_miles(
                driver_location[0], driver_location[1],
                request.pickup_latitude, request.pickup_longitude
            )
        ranked.append((request, distance))

    ranked.sort(key=lambda item: (
        item[1] is None,
        item[1] if item[1] is not None else 0.0,
        item[0].created_at,
        item[0].id,
    ))
    return ranked


class RideService:
    """Service for the ride request lifecycle"""

    def _get_ride(self, db: Session, ride_id: int) -> RideRequest:
        ride = db.query(RideRequest).filter(RideRequest.id == ride_id).populate_existing().first()
        if not ride:
            raise NotFoundError("RideRequest", ride_id)
        return ride

    def _active_request(self, db: Session, rider_user_id: int, event_id: int) -> Optional[RideRequest]:
        return db.query(RideRequest).filter(
            RideRequest.rider_user_id == rider_user_id,
            RideRequest.event_id == event_id,
            RideRequest.status.in_(RIDE_ACTIVE_STATUSES)
        ).populate_existing().first()

    def create_ride_request(
        self,
        db: Session,
        rider_user_id: int,
        driver_user_id: int,
        event_id: int,
        pickup_text: str,
        pickup_latitude: Optional[float] = None,
        pickup_longitude: Optional[float] = None,
        group_id: Optional[int] = None
    ) -> RideRequest:
        """Ask an active driver for a ride"""
        pickup_text = (pickup_text or "").strip()
        if not pickup_text:
            raise ValidationError("Pickup location is required")
        if (pickup_latitude is None) != (pickup_longitude is None):
            raise ValidationError("Pickup latitude and longitude must be given together")
        if pickup_latitude is not None:
            if not -90 <= pickup_latitude <= 90 or not -180 <= pickup_longitude <= 180:
                raise ValidationError("Pickup coordinates out of range")
        if rider_user_id == driver_user_id:
            raise ValidationError("Drivers cannot request a ride from themselves")

        event_service.get_event(db, event_id, group_id)
        if db.query(User.id).filter(User.id == driver_user_id).first() is None:
            raise NotFoundError("User", driver_user_id)

        if not session_service.is_ride_visible(db, driver_user_id, event_id):
            raise ConflictError("Driver is not currently accepting rides for this event")

        existing = self._active_request(db, rider_user_id, event_id)
        if existing is not None:
            raise ConflictError(
                "You already have an active ride request for this event",
                details={"ride_request_id": existing.id, "status": existing.status},
            )

        ride = RideRequest(
            driver_user_id=driver_user_id,
            rider_user_id=rider_user_id,
            event_id=event_id,
            pickup_text=pickup_text,
            pickup_latitude=pickup_latitude,
            pickup_longitude=pickup_longitude,
            status="pending",
            created_at=datetime.utcnow()
        )
        db.add(ride)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("You already have an active ride request for this event")
        db.refresh(ride)

        logger.info(
            f"Ride request {ride.id}: rider {rider_user_id} -> driver {driver_user_id} "
            f"at event {event_id}"
        )
        return ride

    def advance_ride_request(
        self,
        db: Session,
        caller_user_id: int,
        ride_id: int,
        next_status: str
    ) -> RideRequest:
        """Move a ride to its next status"""
        if next_status not in TRANSITIONS:
            raise ValidationError(
                f"Unknown ride status: {next_status}",
                details={"allowed": list(TRANSITIONS)},
            )
        required_status, actor, timestamp_column = TRANSITIONS[next_status]

        ride = self._get_ride(db, ride_id)
        actor_id = ride.driver_user_id if actor == "driver" else ride.rider_user_id
        if caller_user_id != actor_id:
            raise PermissionDeniedError(f"Only the {actor} can mark this ride {next_status}")

        if ride.status != required_status:
            raise ConflictError(
                f"Cannot move ride from {ride.status} to {next_status}",
                details={"status": ride.status},
            )

        if next_status == "accepted" and not session_service.is_ride_visible(
            db, ride.driver_user_id, ride.event_id
        ):
            raise ConflictError("Driver is not currently accepting rides for this event")

        values: Dict[str, Any] = {"status": next_status}
        if timestamp_column:
            column = getattr(RideRequest, timestamp_column)
            values[timestamp_column] = func.coalesce(column, datetime.utcnow())

        updated = db.query(RideRequest).filter(
            RideRequest.id == ride_id,
            RideRequest.status == required_status
        ).update(values, synchronize_session=False)
        db.commit()
        if not updated:
            raise ConflictError("Ride changed concurrently; re-fetch it")

        logger.info(f"Ride request {ride_id}: {required_status} -> {next_status} by user {caller_user_id}")
        return self._get_ride(db, ride_id)

    def driver_queue(
        self,
        db: Session,
        driver_user_id: int,
        event_id: int,
        driver_location: Optional[Tuple[float, float]] = None
    ) -> Dict[str, Any]:
        """The driver's open rides: ordered pending queue, accepted, and in progress"""
        rides = db.query(RideRequest).filter(
            RideRequest.driver_user_id == driver_user_id,
            RideRequest.event_id == event_id,
            RideRequest.status.in_(RIDE_ACTIVE_STATUSES)
        ).order_by(RideRequest.created_at.asc()).all()

        pending = order_queue([r for r in rides if r.status == "pending"], driver_location)
        return {
            "pending": pending,
            "accepted": [r for r in rides if r.status == "accepted"],
            "active_ride": next((r for r in rides if r.status == "picked_up"), None),
        }

    def rider_active_request(self, db: Session, rider_user_id: int, event_id: int) -> Optional[RideRequest]:
        return self._active_request(db, rider_user_id, event_id)

    def ride_log(self, db: Session, event_id: int, group_id: Optional[int] = None) -> List[RideRequest]:
        event_service.get_event(db, event_id, group_id)
        return db.query(RideRequest).filter(
            RideRequest.event_id == event_id
        ).order_by(RideRequest.created_at.desc()).all()


# Singleton instance
ride_service = RideService()
