"""
Adjudication Service - driver requests and admin resolution of revocations

- Drivers submit a request to drive for an event (upsert by event+user)
- Admins approve or reject pending requests
- Admins reinstate a revoked driver (global) or keep them revoked (per event)

Approval re-reads trust status right before writing the assignment, which
closes the race between a driver failing verification and a stale pending
approval.
"""
import logging
from datetime import datetime
from typing import Dict, Any, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ddride.db.models import (
    AdminAlert, Assignment, Attempt, Baseline, DriverProfile, DriverRequest, Event, User,
    TRUST_ACTIVE, TRUST_REVOKED
)
from ddride.errors import ConflictError, NotFoundError
from ddride.services.event_service import event_service
from ddride.services.trust_service import trust_service

logger = logging.getLogger(__name__)


class AdjudicationService:
    """Service for driver requests, approvals and revocation adjudication"""

    def _get_request(self, db: Session, request_id: int, group_id: Optional[int] = None) -> DriverRequest:
        query = db.query(DriverRequest).filter(DriverRequest.id == request_id)
        if group_id is not None:
            query = query.join(Event, Event.id == DriverRequest.event_id).filter(Event.group_id == group_id)
        request = query.populate_existing().first()
        if not request:
            raise NotFoundError("DriverRequest", request_id)
        return request

    def _upsert_assignment(self, db: Session, event_id: int, user_id: int) -> Assignment:
        """Insert or update Assignment(event, user) to assigned, uncommitted"""
        now = datetime.utcnow()
        updated = db.query(Assignment).filter(
            Assignment.event_id == event_id,
            Assignment.user_id == user_id
        ).update({"status": "assigned", "updated_at": now}, synchronize_session=False)
        if not updated:
            db.add(Assignment(event_id=event_id, user_id=user_id, status="assigned", updated_at=now))
            try:
                db.flush()
            except IntegrityError:
                # Inserted concurrently; nothing of this unit of work is kept
                db.rollback()
                raise ConflictError("Assignment changed concurrently; retry")

        return db.query(Assignment).filter(
            Assignment.event_id == event_id,
            Assignment.user_id == user_id
        ).populate_existing().one()

    # ------------------------------------------------------------------
    # Driver requests
    # ------------------------------------------------------------------

    def submit_request(
        self,
        db: Session,
        user_id: int,
        event_id: int,
        group_id: Optional[int] = None
    ) -> DriverRequest:
        """
        Ask to drive for an event.

        A rejected request is resubmitted in place: the same row returns to
        pending with a fresh created_at. Pending or approved requests are
        left alone and reported as a conflict.
        """
        event = event_service.get_event(db, event_id, group_id)
        if event.status == "completed":
            raise ConflictError("Event has already completed")

        status = trust_service.current_trust_status(db, user_id)
        if status != TRUST_ACTIVE:
            raise ConflictError(
                "Only active drivers can request to drive",
                details={"trust_status": status},
            )

        now = datetime.utcnow()
        existing = db.query(DriverRequest).filter(
            DriverRequest.event_id == event_id,
            DriverRequest.user_id == user_id
        ).populate_existing().first()

        if existing is None:
            request = DriverRequest(event_id=event_id, user_id=user_id, status="pending", created_at=now)
            db.add(request)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ConflictError("A request for this event already exists; re-fetch it")
            db.refresh(request)
            logger.info(f"Driver request {request.id} submitted by user {user_id} for event {event_id}")
            return request

        if existing.status != "rejected":
            raise ConflictError(
                f"Request is already {existing.status}",
                details={"request_id": existing.id, "status": existing.status},
            )

        updated = db.query(DriverRequest).filter(
            DriverRequest.id == existing.id,
            DriverRequest.status == "rejected"
        ).update({"status": "pending", "created_at": now}, synchronize_session=False)
        db.commit()
        if not updated:
            raise ConflictError("Request changed concurrently; re-fetch it")

        logger.info(f"Driver request {existing.id} resubmitted by user {user_id}")
        return self._get_request(db, existing.id)

    def list_pending_requests(self, db: Session, group_id: Optional[int] = None) -> List[DriverRequest]:
        query = db.query(DriverRequest).filter(DriverRequest.status == "pending")
        if group_id is not None:
            query = query.join(Event, Event.id == DriverRequest.event_id).filter(Event.group_id == group_id)
        return query.order_by(DriverRequest.created_at.asc()).all()

    def approve_request(
        self,
        db: Session,
        admin_id: int,
        request_id: int,
        group_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Approve a pending request and assign the driver to the event.

        If the driver was revoked since the request was filed, the request
        is rejected instead and ConflictError is raised.
        """
        request = self._get_request(db, request_id, group_id)
        if request.status != "pending":
            raise ConflictError(
                f"Request is already {request.status}",
                details={"request_id": request_id, "status": request.status},
            )

        # Re-check immediately before writing the assignment
        if trust_service.current_trust_status(db, request.user_id) == TRUST_REVOKED:
            db.query(DriverRequest).filter(
                DriverRequest.id == request_id,
                DriverRequest.status == "pending"
            ).update({"status": "rejected"}, synchronize_session=False)
            db.commit()
            logger.warning(
                f"Admin {admin_id} approval of request {request_id} blocked: "
                f"user {request.user_id} is revoked"
            )
            raise ConflictError(
                "Driver privilege was revoked; the request has been rejected",
                details={"request_id": request_id, "status": "rejected", "trust_status": TRUST_REVOKED},
            )

        claimed = db.query(DriverRequest).filter(
            DriverRequest.id == request_id,
            DriverRequest.status == "pending"
        ).update({"status": "approved"}, synchronize_session=False)
        if not claimed:
            db.rollback()
            raise ConflictError("Request was resolved concurrently; re-fetch it")

        assignment = self._upsert_assignment(db, request.event_id, request.user_id)
        db.commit()

        logger.info(
            f"Admin {admin_id} approved request {request_id}: "
            f"user {request.user_id} assigned to event {request.event_id}"
        )
        return {
            "request": self._get_request(db, request_id),
            "assignment": assignment,
        }

    def reject_request(
        self,
        db: Session,
        admin_id: int,
        request_id: int,
        group_id: Optional[int] = None
    ) -> DriverRequest:
        request = self._get_request(db, request_id, group_id)
        updated = db.query(DriverRequest).filter(
            DriverRequest.id == request_id,
            DriverRequest.status == "pending"
        ).update({"status": "rejected"}, synchronize_session=False)
        db.commit()
        if not updated:
            raise ConflictError(
                f"Request is already {request.status}",
                details={"request_id": request_id, "status": request.status},
            )

        logger.info(f"Admin {admin_id} rejected request {request_id}")
        return self._get_request(db, request_id)

    # ------------------------------------------------------------------
    # Revocation adjudication
    # ------------------------------------------------------------------

    def _require_member(self, db: Session, user_id: int, group_id: Optional[int]) -> None:
        query = db.query(User.id).filter(User.id == user_id)
        if group_id is not None:
            query = query.filter(User.group_id == group_id)
        if query.first() is None:
            raise NotFoundError("User", user_id)

    def _require_revoked(self, db: Session, user_id: int) -> None:
        status = trust_service.current_trust_status(db, user_id)
        if status != TRUST_REVOKED:
            raise ConflictError(
                "Driver is not revoked",
                details={"user_id": user_id, "trust_status": status},
            )

    def _resolve_alerts(self, db: Session, admin_id: int, user_id: int, event_id=None) -> int:
        query = db.query(AdminAlert).filter(
            AdminAlert.user_id == user_id,
            AdminAlert.resolved_at.is_(None)
        )
        if event_id is not None:
            query = query.filter(AdminAlert.event_id == event_id)
        return query.update(
            {"resolved_at": datetime.utcnow(), "resolved_by_admin_id": admin_id},
            synchronize_session=False
        )

    def reinstate(
        self,
        db: Session,
        admin_id: int,
        user_id: int,
        event_id: int,
        group_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Restore driving privilege.

        Reinstatement is global like revocation: every open alert for the
        driver is resolved, but only the given event's assignment is restored.
        """
        event_service.get_event(db, event_id, group_id)
        self._require_member(db, user_id, group_id)
        self._require_revoked(db, user_id)

        updated = db.query(DriverProfile).filter(
            DriverProfile.user_id == user_id,
            DriverProfile.trust_status == TRUST_REVOKED
        ).update({"trust_status": TRUST_ACTIVE, "updated_at": datetime.utcnow()}, synchronize_session=False)
        if not updated:
            db.rollback()
            raise ConflictError("Trust status changed concurrently; re-fetch it")

        assignment = self._upsert_assignment(db, event_id, user_id)
        resolved = self._resolve_alerts(db, admin_id, user_id)
        db.commit()

        logger.info(
            f"Admin {admin_id} reinstated user {user_id} for event {event_id}; "
            f"resolved {resolved} alert(s)"
        )
        return {
            "user_id": user_id,
            "trust_status": trust_service.current_trust_status(db, user_id),
            "assignment": assignment,
            "alerts_resolved": resolved,
        }

    def finalize(
        self,
        db: Session,
        admin_id: int,
        user_id: int,
        event_id: int,
        group_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Keep the driver revoked; close only this event's alerts"""
        event_service.get_event(db, event_id, group_id)
        self._require_member(db, user_id, group_id)
        self._require_revoked(db, user_id)

        resolved = self._resolve_alerts(db, admin_id, user_id, event_id=event_id)
        db.commit()

        logger.info(
            f"Admin {admin_id} kept user {user_id} revoked for event {event_id}; "
            f"resolved {resolved} alert(s)"
        )
        return {
            "user_id": user_id,
            "trust_status": trust_service.current_trust_status(db, user_id),
            "alerts_resolved": resolved,
        }

    def list_open_alerts(self, db: Session, group_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Unresolved alerts with the failing attempt measured against baseline.

        Alerts follow the driver, so scoping is by the driver's group.
        """
        query = db.query(AdminAlert, Attempt, Baseline, User).join(
            Attempt, Attempt.id == AdminAlert.attempt_id
        ).outerjoin(
            Baseline, Baseline.user_id == AdminAlert.user_id
        ).join(
            User, User.id == AdminAlert.user_id
        ).filter(
            AdminAlert.resolved_at.is_(None)
        )
        if group_id is not None:
            query = query.filter(User.group_id == group_id)
        rows = query.order_by(AdminAlert.created_at.asc()).all()

        alerts = []
        for alert, attempt, baseline, user in rows:
            alerts.append({
                "id": alert.id,
                "type": alert.type,
                "user_id": alert.user_id,
                "user_name": user.name,
                "event_id": alert.event_id,
                "attempt_id": alert.attempt_id,
                "created_at": alert.created_at,
                "measured": {
                    "reaction_latency_ms": attempt.reaction_latency_ms,
                    "phrase_duration_sec": attempt.phrase_duration_sec,
                },
                "baseline": {
                    "reaction_latency_ms": baseline.reaction_latency_ms,
                    "phrase_duration_sec": baseline.phrase_duration_sec,
                } if baseline else None,
            })
        return alerts


# Singleton instance
adjudication_service = AdjudicationService()
