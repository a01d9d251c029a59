"""
FastAPI dependencies for the DDRide service
"""
from typing import Generator, Optional
from fastapi import Depends, HTTPException, Header, status
from sqlalchemy.orm import Session
from ddride.db.database import SessionLocal
from ddride.db.models import User
from ddride.config import settings
from ddride.errors import AuthenticationError, PermissionDeniedError


def get_db() -> Generator[Session, None, None]:
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def verify_api_key(x_api_key: Optional[str] = Header(None)) -> str:
    """Verify API key for internal endpoints"""
    if not x_api_key or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
    return x_api_key


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> User:
    """
    Resolve the caller from the identity issuer.

    The issuer is upstream of this service; it forwards the authenticated
    subject as X-User-Id.
    """
    if not x_user_id or not x_user_id.isdigit():
        raise AuthenticationError()
    user = db.query(User).filter(User.id == int(x_user_id)).first()
    if user is None:
        raise AuthenticationError("Unknown caller")
    return user


def require_member(user: User = Depends(get_current_user)) -> User:
    """Caller must belong to a group; everything event-scoped is per group"""
    if user.group_id is None:
        raise PermissionDeniedError("Join a group with its access code first")
    return user


def require_admin(user: User = Depends(require_member)) -> User:
    if user.role != "admin":
        raise PermissionDeniedError("Admin role required")
    return user
