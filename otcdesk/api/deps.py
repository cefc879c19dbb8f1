"""
Reusable FastAPI dependencies for authentication and authorization.

Dependencies:
  - get_current_user   — extracts the user from the JWT (401 if invalid)
  - require_operator   — additionally requires the operator role (403)
"""

import uuid

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.core.security import verify_token
from otcdesk.database import get_db
from otcdesk.models.user import User, UserRole, UserStatus


async def get_current_user(
    authorization: str = Header(..., description="Bearer <access_token>"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Parse the ``Authorization: Bearer <token>`` header, verify the JWT,
    look up the User in the database, and return it.

    Raises 401 if the token is missing, malformed, expired, or the user
    is not found / deactivated.
    """
    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )

    token = authorization[len("Bearer "):]
    payload = verify_token(token, expected_type="access")

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
        )

    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if user.status in (UserStatus.SUSPENDED, UserStatus.BLOCKED):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated",
        )

    return user


async def require_operator(user: User = Depends(get_current_user)) -> User:
    """Role check from the stored identity record, never from the email address."""
    if user.role != UserRole.OPERATOR:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operator access required",
        )
    return user
