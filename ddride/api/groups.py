"""
Groups Router - group creation and membership
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ddride.dependencies import get_db, get_current_user, require_member, verify_api_key
from ddride.db.models import User
from ddride.schemas import GroupCreate, GroupJoin, GroupOut
from ddride.services.group_service import group_service

router = APIRouter()


@router.post("", response_model=GroupOut, dependencies=[Depends(verify_api_key)])
async def create_group(
    request: GroupCreate,
    db: Session = Depends(get_db)
):
    """Create a group. Operators hand the access code to its members."""
    return group_service.create_group(db, request.name, request.access_code)


@router.post("/join", response_model=GroupOut)
async def join_group(
    request: GroupJoin,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Join a group by access code (case-insensitive)"""
    return group_service.join_group(db, user.id, request.access_code)


@router.get("/me", response_model=GroupOut)
async def get_my_group(
    user: User = Depends(require_member),
    db: Session = Depends(get_db)
):
    return group_service.get_group(db, user.group_id)
