"""
Group Service - organizations and membership

Every event belongs to one group, and members only see their own group's
events, drivers and rides. Users join by access code; codes are matched
case-insensitively and stored upper-case.
"""
import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ddride.db.models import Group, User
from ddride.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def normalize_access_code(access_code: Optional[str]) -> str:
    return (access_code or "").strip().upper()


class GroupService:
    """Service for groups and group membership"""

    def create_group(self, db: Session, name: str, access_code: str) -> Group:
        name = (name or "").strip()
        access_code = normalize_access_code(access_code)
        if not name:
            raise ValidationError("Group name is required")
        if not access_code:
            raise ValidationError("Access code is required")

        group = Group(name=name, access_code=access_code)
        db.add(group)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Access code is already in use", details={"access_code": access_code})
        db.refresh(group)

        logger.info(f"Group {group.id} created: {name}")
        return group

    def get_group(self, db: Session, group_id: int) -> Group:
        group = db.query(Group).filter(Group.id == group_id).first()
        if not group:
            raise NotFoundError("Group", group_id)
        return group

    def join_group(self, db: Session, user_id: int, access_code: str) -> Group:
        """
        Join the group behind an access code.

        Joining the group the user is already in is a no-op. Membership in
        another group is never replaced.
        """
        code = normalize_access_code(access_code)
        if not code:
            raise ValidationError("Access code is required")

        group = db.query(Group).filter(Group.access_code == code).first()
        if not group:
            raise NotFoundError("Group", code)

        updated = db.query(User).filter(
            User.id == user_id,
            or_(User.group_id.is_(None), User.group_id == group.id)
        ).update({"group_id": group.id}, synchronize_session=False)
        db.commit()
        if not updated:
            current = db.query(User.group_id).filter(User.id == user_id).scalar()
            raise ConflictError(
                "Already a member of another group",
                details={"group_id": current},
            )

        logger.info(f"User {user_id} joined group {group.id}")
        return group


# Singleton instance
group_service = GroupService()
