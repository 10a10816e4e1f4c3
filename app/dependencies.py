"""
Authentication Dependencies

FastAPI dependencies for authentication and authorization.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status, Header

from app.exceptions import UniRideError
from app.models.result import ServiceResult
from app.models.user import User
from app.services.auth_service import AuthService
from app.services.ride_store import ensure_participant, load_ride
from app.services.user_service import UserService
from app.utils.http import unwrap


auth_service = AuthService()
user_service = UserService()


async def get_current_user(
    authorization: Optional[str] = Header(None)
) -> User:
    """
    Get current authenticated user from Firebase token.

    SECURITY: This is the primary authentication gate.
    All protected endpoints should depend on this.

    Expects Authorization header: Bearer <firebase_id_token>
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"}
        )

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization format. Use: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"}
        )

    token = authorization[7:]  # Remove "Bearer " prefix

    claims = auth_service.verify_firebase_token(token)
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    user, _ = await user_service.get_or_create_user(claims)
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """Reject deactivated accounts."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated"
        )
    return current_user


async def require_ride_participant(ride_id: str, user: User) -> None:
    """Raise the mapped HTTP error unless user drives or rides on ride_id."""
    try:
        ensure_participant(await load_ride(ride_id), user.user_id)
    except UniRideError as e:
        unwrap(ServiceResult.fail(e))
