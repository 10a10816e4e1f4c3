"""
Chat Router

Per-ride group chat and typing indicators.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from app.dependencies import get_current_active_user, require_ride_participant
from app.models.chat_message import ChatMessageCreate, TypingUpdate
from app.models.user import User
from app.services.chat_service import ChatService
from app.utils.http import unwrap


router = APIRouter()
chat_service = ChatService()


@router.get("/{ride_id}/messages")
async def get_messages(
    ride_id: str,
    limit: Optional[int] = None,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await chat_service.get_chat_messages(ride_id, current_user.user_id, limit))


@router.post("/{ride_id}/messages")
async def send_message(
    ride_id: str,
    data: ChatMessageCreate,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await chat_service.send_message(
        ride_id, current_user.user_id, data.text, data.message_type
    ))


@router.delete("/{ride_id}/messages/{message_id}")
async def delete_message(
    ride_id: str,
    message_id: str,
    current_user: User = Depends(get_current_active_user)
):
    """Delete own message, or any message as the ride's driver."""
    return {"deleted": unwrap(await chat_service.delete_message(ride_id, message_id, current_user.user_id))}


@router.get("/{ride_id}/unread")
async def get_unread_count(
    ride_id: str,
    current_user: User = Depends(get_current_active_user)
):
    return {"unread_count": unwrap(await chat_service.get_unread_count(ride_id, current_user.user_id))}


@router.post("/{ride_id}/read")
async def mark_read(
    ride_id: str,
    current_user: User = Depends(get_current_active_user)
):
    return {"marked": unwrap(await chat_service.mark_messages_as_read(ride_id, current_user.user_id))}


@router.put("/{ride_id}/typing")
async def set_typing(
    ride_id: str,
    data: TypingUpdate,
    current_user: User = Depends(get_current_active_user)
):
    return {"is_typing": unwrap(await chat_service.set_typing(ride_id, current_user.user_id, data.is_typing))}


@router.get("/{ride_id}/typing")
async def get_typing(
    ride_id: str,
    current_user: User = Depends(get_current_active_user)
):
    await require_ride_participant(ride_id, current_user)
    return {"users": unwrap(await chat_service.get_typing_users(ride_id, current_user.user_id))}
