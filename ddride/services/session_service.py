"""
Session Gate - links a passing verification to ride eligibility

A driver is ride-visible for an event iff they hold an active session for
that event and their trust status is not revoked. Both facts are re-read
from the store on every check.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ddride.config import settings
from ddride.db.models import (
    Assignment, Attempt, DriverProfile, DriverSession, Event, User,
    TRUST_ACTIVE, TRUST_REVOKED
)
from ddride.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ddride.services.event_service import event_service
from ddride.services.trust_service import trust_service

logger = logging.getLogger(__name__)


class SessionService:
    """Service for driving sessions"""

    def get_active_session(
        self,
        db: Session,
        user_id: int,
        event_id: Optional[int] = None
    ) -> Optional[DriverSession]:
        query = db.query(DriverSession).filter(
            DriverSession.user_id == user_id,
            DriverSession.is_active.is_(True)
        )
        if event_id is not None:
            query = query.filter(DriverSession.event_id == event_id)
        return query.order_by(DriverSession.started_at.desc()).populate_existing().first()

    def is_ride_visible(self, db: Session, driver_user_id: int, event_id: int) -> bool:
        if self.get_active_session(db, driver_user_id, event_id) is None:
            return False
        return trust_service.current_trust_status(db, driver_user_id) != TRUST_REVOKED

    def list_visible_drivers(self, db: Session, event_id: int, group_id: Optional[int] = None) -> List[dict]:
        """Drivers currently accepting rides for an event"""
        if group_id is not None:
            event_service.get_event(db, event_id, group_id)

        rows = db.query(DriverSession, User, DriverProfile).join(
            User, User.id == DriverSession.user_id
        ).join(
            DriverProfile, DriverProfile.user_id == DriverSession.user_id
        ).filter(
            DriverSession.event_id == event_id,
            DriverSession.is_active.is_(True),
            DriverProfile.trust_status != TRUST_REVOKED
        ).order_by(DriverSession.started_at.asc()).all()

        return [
            {
                "user_id": user.id,
                "name": user.name,
                "phone_number": user.phone_number,
                "car_make": profile.car_make,
                "car_model": profile.car_model,
                "car_plate": profile.car_plate,
                "session_id": session.id,
                "session_started_at": session.started_at,
            }
            for session, user, profile in rows
        ]

    def start_session(self, db: Session, user_id: int, attempt_id: int) -> DriverSession:
        """
        Open a driving session from a passing attempt.

        The attempt must be the caller's latest, a pass, tied to an event,
        recent, and not already used. Trust status, assignment and existing
        sessions are re-read here rather than trusted from any earlier call.
        """
        attempt = db.query(Attempt).filter(Attempt.id == attempt_id).first()
        if not attempt:
            raise NotFoundError("Attempt", attempt_id)
        if attempt.user_id != user_id:
            raise PermissionDeniedError("Attempt belongs to another user")
        if attempt.outcome != "pass":
            raise ValidationError("Sessions can only start from a passing verification")
        if attempt.event_id is None:
            raise ValidationError("Attempt is not tied to an event")

        latest_id = db.query(Attempt.id).filter(
            Attempt.user_id == user_id
        ).order_by(Attempt.created_at.desc(), Attempt.id.desc()).limit(1).scalar()
        if latest_id != attempt.id:
            raise ConflictError("A newer verification attempt exists; verify again")

        window = timedelta(seconds=settings.SESSION_START_WINDOW_SEC)
        if datetime.utcnow() - attempt.created_at > window:
            raise ConflictError("Verification expired; verify again")

        event = db.query(Event).filter(Event.id == attempt.event_id).first()
        if event is None:
            raise NotFoundError("Event", attempt.event_id)
        if event.status == "completed":
            raise ConflictError("Event has already completed")

        status = trust_service.current_trust_status(db, user_id)
        if status != TRUST_ACTIVE:
            raise ConflictError(
                "Driver is not active",
                details={"trust_status": status},
            )

        assigned = db.query(Assignment.id).filter(
            Assignment.user_id == user_id,
            Assignment.event_id == attempt.event_id,
            Assignment.status == "assigned"
        ).first()
        if assigned is None:
            raise ConflictError("Driver is not assigned to this event")

        if self.get_active_session(db, user_id) is not None:
            raise ConflictError("Driver already has an active session")

        session = DriverSession(
            user_id=user_id,
            event_id=attempt.event_id,
            attempt_id=attempt.id,
            started_at=datetime.utcnow(),
            is_active=True
        )
        db.add(session)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("This verification already opened a session")
        db.refresh(session)

        # A cascade may have landed between the checks and the insert
        if trust_service.current_trust_status(db, user_id) == TRUST_REVOKED:
            self._close(db, session.id)
            raise ConflictError(
                "Driver privilege was revoked",
                details={"trust_status": TRUST_REVOKED},
            )

        logger.info(f"Session {session.id} started for user {user_id} at event {session.event_id}")
        return session

    def end_session(self, db: Session, user_id: int, session_id: int) -> DriverSession:
        """End a session. Ending an already ended session is a no-op."""
        session = db.query(DriverSession).filter(DriverSession.id == session_id).first()
        if not session:
            raise NotFoundError("DriverSession", session_id)
        if session.user_id != user_id:
            raise PermissionDeniedError("Session belongs to another user")

        if self._close(db, session_id):
            logger.info(f"Session {session_id} ended by user {user_id}")
        return db.query(DriverSession).filter(
            DriverSession.id == session_id
        ).populate_existing().one()

    def _close(self, db: Session, session_id: int) -> int:
        closed = db.query(DriverSession).filter(
            DriverSession.id == session_id,
            DriverSession.is_active.is_(True)
        ).update({"is_active": False, "ended_at": datetime.utcnow()}, synchronize_session=False)
        db.commit()
        return closed


# Singleton instance
session_service = SessionService()
