import structlog
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidCredentials
from app.db.session import get_db
from app.models.user import User, UserRole

logger = structlog.get_logger()

# Authentication happens upstream; the gateway forwards the verified user id.
USER_ID_HEADER = "X-User-Id"


def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the authenticated user forwarded by the gateway."""
    if not x_user_id:
        raise InvalidCredentials()

    try:
        user_id = int(x_user_id)
    except ValueError:
        logger.warning("invalid_user_header", value=x_user_id)
        raise InvalidCredentials()

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise InvalidCredentials()

    structlog.contextvars.bind_contextvars(user_id=user.id)
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Require admin role"""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
