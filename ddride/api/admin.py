"""
Admin Router - request approval, revocation adjudication, ride log, reconcile

All endpoints require an admin caller and only reach the admin's own
group, except /reconcile which takes the internal API key so operators
and schedulers can call it.
"""
import logging
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ddride.dependencies import get_db, require_admin, verify_api_key
from ddride.db.models import User
from ddride.schemas import (
    DriverRequestOut, AssignmentOut, ApprovalOut, AdjudicationRequest,
    ReinstateOut, FinalizeOut, AlertOut, RideRequestOut, ReconcileOut
)
from ddride.services.adjudication_service import adjudication_service
from ddride.services.ride_service import ride_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/requests", response_model=List[DriverRequestOut])
async def list_pending_requests(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return adjudication_service.list_pending_requests(db, group_id=admin.group_id)


@router.post("/requests/{request_id}/approve", response_model=ApprovalOut)
async def approve_request(
    request_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Approve a pending request to drive.

    If the driver has been revoked since requesting, the request is
    auto-rejected and 409 is returned.
    """
    result = adjudication_service.approve_request(db, admin.id, request_id, group_id=admin.group_id)
    return ApprovalOut(
        request=DriverRequestOut.model_validate(result["request"]),
        assignment=AssignmentOut.model_validate(result["assignment"])
    )


@router.post("/requests/{request_id}/reject", response_model=DriverRequestOut)
async def reject_request(
    request_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return adjudication_service.reject_request(db, admin.id, request_id, group_id=admin.group_id)


@router.get("/alerts", response_model=List[AlertOut])
async def list_open_alerts(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Unresolved verification failures with measured vs. baseline figures"""
    return adjudication_service.list_open_alerts(db, group_id=admin.group_id)


@router.post("/drivers/{user_id}/reinstate", response_model=ReinstateOut)
async def reinstate_driver(
    user_id: int,
    request: AdjudicationRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Reinstate a revoked driver.

    Resolves the driver's open alerts for every event, and restores the
    assignment for the given event only.
    """
    result = adjudication_service.reinstate(
        db, admin.id, user_id, request.event_id, group_id=admin.group_id
    )
    return ReinstateOut(
        user_id=result["user_id"],
        trust_status=result["trust_status"],
        assignment=AssignmentOut.model_validate(result["assignment"]),
        alerts_resolved=result["alerts_resolved"]
    )


@router.post("/drivers/{user_id}/finalize", response_model=FinalizeOut)
async def finalize_revocation(
    user_id: int,
    request: AdjudicationRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Keep the driver revoked and close this event's alerts"""
    return adjudication_service.finalize(
        db, admin.id, user_id, request.event_id, group_id=admin.group_id
    )


@router.get("/events/{event_id}/rides", response_model=List[RideRequestOut])
async def get_ride_log(
    event_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return ride_service.ride_log(db, event_id, group_id=admin.group_id)


@router.post("/reconcile", response_model=ReconcileOut, dependencies=[Depends(verify_api_key)])
async def trigger_reconcile():
    """
    Queue a cleanup pass that re-applies the revocation cascade to every
    revoked driver. Safe to run at any time.
    """
    from ddride.worker.tasks import reconcile_revoked_drivers

    task = reconcile_revoked_drivers.delay()
    logger.info(f"Reconcile pass queued: {task.id}")
    return ReconcileOut(task_id=task.id)
