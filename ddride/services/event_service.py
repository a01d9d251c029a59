"""
Event Service - Handles event creation and status transitions

Lookups take an optional group_id. API callers always pass the caller's
group, so an event from another group reads as not found; None is the
unscoped view used by workers and operator scripts.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ddride.db.models import Event
from ddride.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

EVENT_STATUSES = ("upcoming", "active", "completed")


def in_group(query, group_id: Optional[int]):
    """Restrict an Event query to one group"""
    if group_id is None:
        return query
    return query.filter(Event.group_id == group_id)


class EventService:
    """Service for event operations"""

    def create_event(
        self,
        db: Session,
        created_by_user_id: int,
        group_id: int,
        name: str,
        location_text: str,
        date_time: datetime,
        description: Optional[str] = None
    ) -> Event:
        name = (name or "").strip()
        location_text = (location_text or "").strip()
        if group_id is None:
            raise ValidationError("Event group is required")
        if not name:
            raise ValidationError("Event name is required")
        if not location_text:
            raise ValidationError("Event location is required")

        event = Event(
            group_id=group_id,
            name=name,
            description=description,
            location_text=location_text,
            date_time=date_time,
            status="upcoming",
            created_by_user_id=created_by_user_id
        )
        db.add(event)
        db.commit()
        db.refresh(event)

        logger.info(f"Event {event.id} created by user {created_by_user_id} in group {group_id}")
        return event

    def get_event(self, db: Session, event_id: int, group_id: Optional[int] = None) -> Event:
        event = in_group(db.query(Event), group_id).filter(Event.id == event_id).first()
        if not event:
            raise NotFoundError("Event", event_id)
        return event

    def list_events(
        self,
        db: Session,
        status: Optional[str] = None,
        group_id: Optional[int] = None
    ) -> List[Event]:
        query = in_group(db.query(Event), group_id)
        if status is not None:
            if status not in EVENT_STATUSES:
                raise ValidationError(f"Unknown event status: {status}")
            query = query.filter(Event.status == status)
        return query.order_by(Event.date_time.asc()).all()

    def activate_due_events(
        self,
        db: Session,
        now: Optional[datetime] = None,
        group_id: Optional[int] = None
    ) -> int:
        """Move upcoming events whose start time has passed to active"""
        now = now or datetime.utcnow()
        updated = in_group(db.query(Event), group_id).filter(
            Event.status == "upcoming",
            Event.date_time < now
        ).update({"status": "active"}, synchronize_session=False)
        db.commit()

        if updated:
            scope = f" in group {group_id}" if group_id is not None else ""
            logger.info(f"Activated {updated} event(s){scope}")
        return updated

    def complete_event(self, db: Session, event_id: int, group_id: Optional[int] = None) -> Event:
        event = self.get_event(db, event_id, group_id)
        db.query(Event).filter(
            Event.id == event_id,
            Event.status != "completed"
        ).update({"status": "completed"}, synchronize_session=False)
        db.commit()
        db.refresh(event)

        logger.info(f"Event {event_id} marked completed")
        return event


# Singleton instance
event_service = EventService()
