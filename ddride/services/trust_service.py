"""
Trust Service - driver trust-status state machine and revocation cascade

States:
    none --(opt-in)--> active --(failed verification)--> revoked
    revoked --(reinstate)--> active        (adjudication_service)
    revoked --(finalize)--> revoked        (adjudication_service)

A failed verification is a signal about the person, so revocation is
global across events. The cascade runs as five independent, predicate-guarded
bulk updates, each committed on its own; there is no cross-table transaction.
Every step only touches rows not yet in the target state, so the whole
sequence can be re-run and converges to the same end state.
"""
import logging
from datetime import datetime
from typing import Dict, Any, Optional, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ddride.db.models import (
    DriverProfile, Assignment, DriverRequest, DriverSession, AdminAlert,
    ALERT_VERIFY_FAIL, TRUST_NONE, TRUST_ACTIVE, TRUST_REVOKED
)
from ddride.errors import ConflictError, PartialCascadeError

logger = logging.getLogger(__name__)

CASCADE_STEPS = (
    "revoke_profile",
    "revoke_assignments",
    "reject_requests",
    "end_sessions",
    "open_alert",
)

VEHICLE_FIELDS = ("car_make", "car_model", "car_plate")


class TrustService:
    """Owns DriverProfile.trust_status and the revocation cascade"""

    def current_trust_status(self, db: Session, user_id: int) -> str:
        """
        Authoritative trust status read.

        Selects the column directly so the answer always comes from the
        store, never from an object already loaded in this session.
        """
        status = db.query(DriverProfile.trust_status).filter(
            DriverProfile.user_id == user_id
        ).scalar()
        return status or TRUST_NONE

    def get_profile(self, db: Session, user_id: int) -> Optional[DriverProfile]:
        return db.query(DriverProfile).filter(
            DriverProfile.user_id == user_id
        ).populate_existing().first()

    def opt_in(
        self,
        db: Session,
        user_id: int,
        vehicle: Optional[Dict[str, Optional[str]]] = None
    ) -> DriverProfile:
        """
        Become a driver (none -> active). No verification is required here;
        only starting a session is gated on a passing attempt.
        """
        vehicle = {k: v for k, v in (vehicle or {}).items() if k in VEHICLE_FIELDS and v is not None}

        profile = self.get_profile(db, user_id)
        if profile is None:
            profile = DriverProfile(user_id=user_id, trust_status=TRUST_ACTIVE, **vehicle)
            db.add(profile)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                # Concurrent opt-in created the row first
                profile = self.get_profile(db, user_id)
                if profile is None:
                    raise
            else:
                db.refresh(profile)
                logger.info(f"User {user_id} opted in as driver")
                return profile

        if profile.trust_status == TRUST_REVOKED:
            raise ConflictError(
                "Driver privilege is revoked; an admin must reinstate it",
                details={"trust_status": TRUST_REVOKED},
            )

        values: Dict[str, Any] = dict(vehicle)
        values["updated_at"] = datetime.utcnow()
        query = db.query(DriverProfile).filter(DriverProfile.user_id == user_id)
        if profile.trust_status == TRUST_NONE:
            values["trust_status"] = TRUST_ACTIVE
            query = query.filter(DriverProfile.trust_status == TRUST_NONE)
        else:
            query = query.filter(DriverProfile.trust_status == TRUST_ACTIVE)

        updated = query.update(values, synchronize_session=False)
        db.commit()
        if not updated:
            raise ConflictError("Trust status changed during opt-in; re-fetch and retry")

        logger.info(f"User {user_id} opt-in refreshed (was {profile.trust_status})")
        return self.get_profile(db, user_id)

    # ------------------------------------------------------------------
    # Revocation cascade
    # ------------------------------------------------------------------

    def revoke(
        self,
        db: Session,
        user_id: int,
        event_id: Optional[int] = None,
        attempt_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Run the revocation cascade for a failed verification.

        Steps run in order and independently; a failing step is logged and
        the rest still run. The profile is revoked first so that even a
        fully failed cascade leaves the driver untrusted.

        Returns:
            Per-step report with affected row counts.

        Raises:
            PartialCascadeError: one or more steps failed (completed steps
                are kept)
        """
        steps = [
            ("revoke_profile", lambda: self._revoke_profile(db, user_id)),
            ("revoke_assignments", lambda: self._revoke_assignments(db, user_id)),
            ("reject_requests", lambda: self._reject_requests(db, user_id)),
            ("end_sessions", lambda: self._end_sessions(db, user_id)),
        ]
        if attempt_id is not None:
            steps.append(
                ("open_alert", lambda: self._open_alert(db, user_id, event_id, attempt_id))
            )
        return self._run_steps(db, user_id, steps)

    def reconcile(self, db: Session, user_id: int) -> Dict[str, Any]:
        """
        Re-apply the cleanup steps for an already revoked driver.

        Used by the operator cleanup pass; it never changes trust status
        and never opens alerts. Each step re-checks the stored status in
        its own UPDATE, so a driver reinstated after the revoked list was
        read is left untouched.
        """
        steps = [
            ("revoke_assignments", lambda: self._revoke_assignments(db, user_id, only_if_revoked=True)),
            ("reject_requests", lambda: self._reject_requests(db, user_id, only_if_revoked=True)),
            ("end_sessions", lambda: self._end_sessions(db, user_id, only_if_revoked=True)),
        ]
        return self._run_steps(db, user_id, steps)

    def reconcile_revoked(self, db: Session) -> Dict[str, Any]:
        """Run reconcile() for every revoked driver"""
        user_ids = [
            row[0] for row in db.query(DriverProfile.user_id).filter(
                DriverProfile.trust_status == TRUST_REVOKED
            ).all()
        ]

        repaired: List[Dict[str, Any]] = []
        failed: List[int] = []
        for user_id in user_ids:
            try:
                report = self.reconcile(db, user_id)
            except PartialCascadeError as e:
                logger.error(f"Reconcile incomplete: {e}")
                failed.append(user_id)
                continue
            if any(report[step] for step in ("revoke_assignments", "reject_requests", "end_sessions")):
                repaired.append(report)

        logger.info(
            f"Reconcile pass: {len(user_ids)} revoked drivers, "
            f"{len(repaired)} repaired, {len(failed)} failed"
        )
        return {
            "revoked_drivers": len(user_ids),
            "repaired": repaired,
            "failed_user_ids": failed,
        }

    def _run_steps(self, db: Session, user_id: int, steps) -> Dict[str, Any]:
        report: Dict[str, Any] = {"user_id": user_id}
        failed_steps: List[str] = []

        for name, step in steps:
            try:
                report[name] = step()
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                report[name] = None
                failed_steps.append(name)
                logger.error(f"Cascade step {name} failed for user {user_id}: {e}")

        report["failed_steps"] = failed_steps
        if failed_steps:
            logger.error(f"Partial cascade for user {user_id}: {report}")
            raise PartialCascadeError(user_id, failed_steps, report)

        logger.info(f"Cascade applied for user {user_id}: {report}")
        return report

    def _revoke_profile(self, db: Session, user_id: int) -> int:
        updated = db.query(DriverProfile).filter(
            DriverProfile.user_id == user_id,
            DriverProfile.trust_status != TRUST_REVOKED
        ).update(
            {"trust_status": TRUST_REVOKED, "updated_at": datetime.utcnow()},
            synchronize_session=False
        )
        if updated:
            return updated

        exists = db.query(DriverProfile.id).filter(DriverProfile.user_id == user_id).first()
        if exists is None:
            db.add(DriverProfile(user_id=user_id, trust_status=TRUST_REVOKED))
            db.flush()
            return 1
        return 0

    def _still_revoked(self, user_id: int):
        """Subquery matching user_id only while the stored status is revoked"""
        return select(DriverProfile.user_id).where(
            DriverProfile.user_id == user_id,
            DriverProfile.trust_status == TRUST_REVOKED
        )

    def _revoke_assignments(self, db: Session, user_id: int, only_if_revoked: bool = False) -> int:
        query = db.query(Assignment).filter(
            Assignment.user_id == user_id,
            Assignment.status != "revoked"
        )
        if only_if_revoked:
            query = query.filter(Assignment.user_id.in_(self._still_revoked(user_id)))
        return query.update(
            {"status": "revoked", "updated_at": datetime.utcnow()},
            synchronize_session=False
        )

    def _reject_requests(self, db: Session, user_id: int, only_if_revoked: bool = False) -> int:
        query = db.query(DriverRequest).filter(
            DriverRequest.user_id == user_id,
            DriverRequest.status.in_(["pending", "approved"])
        )
        if only_if_revoked:
            query = query.filter(DriverRequest.user_id.in_(self._still_revoked(user_id)))
        return query.update({"status": "rejected"}, synchronize_session=False)

    def _end_sessions(self, db: Session, user_id: int, only_if_revoked: bool = False) -> int:
        query = db.query(DriverSession).filter(
            DriverSession.user_id == user_id,
            DriverSession.is_active.is_(True)
        )
        if only_if_revoked:
            query = query.filter(DriverSession.user_id.in_(self._still_revoked(user_id)))
        return query.update(
            {"is_active": False, "ended_at": datetime.utcnow()},
            synchronize_session=False
        )

    def _open_alert(
        self,
        db: Session,
        user_id: int,
        event_id: Optional[int],
        attempt_id: int
    ) -> bool:
        """One alert per failing attempt; returns False if it already exists"""
        existing = db.query(AdminAlert.id).filter(AdminAlert.attempt_id == attempt_id).first()
        if existing is not None:
            return False

        db.add(AdminAlert(
            type=ALERT_VERIFY_FAIL,
            user_id=user_id,
            event_id=event_id,
            attempt_id=attempt_id
        ))
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            # Another run inserted the alert between the check and the insert
            if db.query(AdminAlert.id).filter(AdminAlert.attempt_id == attempt_id).first():
                return False
            raise
        return True


# Singleton instance
trust_service = TrustService()
