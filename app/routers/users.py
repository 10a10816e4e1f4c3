"""
Users Router

Profile management and driver/rider role switching.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_current_active_user
from app.models.user import RoleSwitch, User, UserUpdate
from app.services.user_service import UserService
from app.utils.http import unwrap


router = APIRouter()
user_service = UserService()


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_active_user)):
    return current_user


@router.patch("/me")
async def update_me(
    data: UserUpdate,
    current_user: User = Depends(get_current_active_user)
):
    """
    Update own profile.

    Name, phone, photo and gender are copied onto open rides and active
    bookings.
    """
    return unwrap(await user_service.update_profile(
        current_user.user_id, data.model_dump(exclude_unset=True)
    ))


@router.put("/me/role")
async def switch_role(
    data: RoleSwitch,
    current_user: User = Depends(get_current_active_user)
):
    """Switch between driver and rider. Blocked while rides or bookings are open."""
    return unwrap(await user_service.switch_role(current_user.user_id, data.role))


@router.get("/{user_id}")
async def get_public_profile(
    user_id: str,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await user_service.get_public_profile(user_id))
