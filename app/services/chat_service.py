"""
Chat Service - Per-ride group chat and typing indicators.

Messages are stored as a capped Redis list per ride. Only the driver and
booked riders may read or post.
"""

import json
import logging
import uuid
from typing import List, Optional

from app.config import settings
from app.database import get_redis
from app.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.models.chat_message import ChatMessage, MessageType
from app.models.result import service_operation
from app.services.redis_service import RedisKeys, RedisService
from app.services.ride_store import ensure_participant, load_ride, require_id
from app.services.user_service import UserService
from app.utils.timezone_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

SYSTEM_SENDER = "system"
MAX_MESSAGE_LENGTH = 1000


class ChatService:
    """Ride chat over the realtime store."""

    def __init__(self):
        self.redis = RedisService()
        self.user_service = UserService()

    async def _append(self, message: ChatMessage) -> None:
        await self.redis.append_json(
            RedisKeys.chat_messages(message.ride_id),
            message.model_dump(mode="json"),
            settings.chat_max_messages,
        )

    @service_operation
    async def send_message(
        self,
        ride_id: str,
        sender_id: str,
        text: str,
        message_type: str = MessageType.TEXT.value
    ) -> ChatMessage:
        require_id(sender_id, "sender_id")
        text = (text or "").strip() if isinstance(text, str) else ""
        if not text:
            raise ValidationError("Message text is required", field="text", constraint="non-empty")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                f"Message must be at most {MAX_MESSAGE_LENGTH} characters",
                field="text",
                constraint=f"len <= {MAX_MESSAGE_LENGTH}"
            )
        try:
            message_type = MessageType(message_type).value
        except ValueError:
            raise ValidationError(
                "Invalid message type", field="message_type", constraint="text or location"
            )
        if message_type == MessageType.SYSTEM.value:
            raise ValidationError(
                "Users cannot send system messages", field="message_type", constraint="text or location"
            )

        ride = await load_ride(ride_id)
        role = ensure_participant(ride, sender_id)
        sender = await self.user_service.require_user(sender_id, field="sender_id")

        message = ChatMessage(
            message_id=str(uuid.uuid4()),
            ride_id=ride_id,
            sender_id=sender_id,
            sender_name=sender.name,
            sender_photo_url=sender.photo_url,
            sender_role=role,
            text=text,
            message_type=message_type,
            read_by=[sender_id],
        )
        await self._append(message)
        return message

    async def send_system_message(self, ride_id: str, text: str) -> ChatMessage:
        """Post a notice (booking, cancellation) into the ride chat."""
        message = ChatMessage(
            message_id=str(uuid.uuid4()),
            ride_id=ride_id,
            sender_id=SYSTEM_SENDER,
            sender_name="UniRide",
            sender_role=SYSTEM_SENDER,
            text=text,
            message_type=MessageType.SYSTEM,
        )
        await self._append(message)
        return message

    @service_operation
    async def get_chat_messages(self, ride_id: str, user_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        """Latest messages, oldest first."""
        limit = limit or settings.chat_history_limit
        if limit < 1:
            raise ValidationError("Limit must be positive", field="limit", constraint=">= 1")

        ride = await load_ride(ride_id)
        ensure_participant(ride, user_id)

        raw = await self.redis.list_json(RedisKeys.chat_messages(ride_id), -limit, -1)
        return [ChatMessage(**m) for m in raw]

    @service_operation
    async def get_unread_count(self, ride_id: str, user_id: str) -> int:
        ride = await load_ride(ride_id)
        ensure_participant(ride, user_id)

        messages = await self.redis.list_json(RedisKeys.chat_messages(ride_id))
        return sum(
            1 for m in messages
            if m["sender_id"] != user_id and user_id not in m.get("read_by", [])
        )

    @service_operation
    async def mark_messages_as_read(self, ride_id: str, user_id: str) -> int:
        """Add user_id to read_by of every unread message. Returns count marked."""
        ride = await load_ride(ride_id)
        ensure_participant(ride, user_id)

        redis = get_redis()
        key = RedisKeys.chat_messages(ride_id)
        raw_messages = await redis.lrange(key, 0, -1)

        marked = 0
        for index, raw in enumerate(raw_messages):
            message = json.loads(raw)
            if message["sender_id"] == user_id or user_id in message.get("read_by", []):
                continue
            message["read_by"] = message.get("read_by", []) + [user_id]
            await redis.lset(key, index, json.dumps(message))
            marked += 1
        return marked

    @service_operation
    async def delete_message(self, ride_id: str, message_id: str, user_id: str) -> bool:
        """Senders may delete their own messages; the driver may delete any."""
        ride = await load_ride(ride_id)

        redis = get_redis()
        key = RedisKeys.chat_messages(ride_id)
        for raw in await redis.lrange(key, 0, -1):
            message = json.loads(raw)
            if message["message_id"] != message_id:
                continue
            if message["sender_id"] != user_id and ride.driver_id != user_id:
                raise AuthorizationError(
                    "You can only delete your own messages or messages in your ride (if driver)",
                    field="user_id",
                    constraint="sender or ride driver"
                )
            await redis.lrem(key, 1, raw)
            return True

        raise NotFoundError("Message not found", field="message_id")

    @service_operation
    async def set_typing(self, ride_id: str, user_id: str, is_typing: bool = True) -> bool:
        ride = await load_ride(ride_id)
        ensure_participant(ride, user_id)

        redis = get_redis()
        key = RedisKeys.typing(ride_id)
        if is_typing:
            pipe = redis.pipeline()
            pipe.hset(key, user_id, utc_now().isoformat())
            pipe.expire(key, settings.typing_ttl_seconds)
            await pipe.execute()
        else:
            await redis.hdel(key, user_id)
        return is_typing

    @service_operation
    async def get_typing_users(self, ride_id: str, exclude_user_id: Optional[str] = None) -> List[str]:
        """Users whose last keystroke is within TYPING_TTL_SECONDS."""
        require_id(ride_id, "ride_id")
        data = await get_redis().hgetall(RedisKeys.typing(ride_id))

        now = utc_now()
        typing = []
        for uid, stamp in (data or {}).items():
            if uid == exclude_user_id:
                continue
            if (now - ensure_utc(stamp)).total_seconds() <= settings.typing_ttl_seconds:
                typing.append(uid)
        return sorted(typing)

    async def clear_chat(self, ride_id: str) -> None:
        await self.redis.delete(RedisKeys.chat_messages(ride_id), RedisKeys.typing(ride_id))
