"""Tests for ride chat and typing indicators."""

from datetime import timedelta

import pytest

from app.services.chat_service import ChatService
from app.utils.timezone_utils import utc_now


@pytest.fixture
def service():
    return ChatService()


@pytest.fixture
def ride_with_rider(make_user, make_ride):
    async def _make():
        await make_user("driver-1", role="driver", name="Devi")
        await make_user("rider-1", name="Arun")
        return await make_ride(riders=["rider-1"], seats_available=3)

    return _make


class TestChatMessages:

    @pytest.mark.asyncio
    async def test_send_and_read(self, service, ride_with_rider):
        ride = await ride_with_rider()

        sent = await service.send_message(ride.ride_id, "rider-1", "  On my way  ")
        history = await service.get_chat_messages(ride.ride_id, "driver-1")

        assert sent.data.text == "On my way"
        assert sent.data.sender_role == "rider"
        assert sent.data.read_by == ["rider-1"]
        assert [m.message_id for m in history.data] == [sent.data.message_id]

    @pytest.mark.asyncio
    async def test_outsiders_rejected(self, service, ride_with_rider, make_user):
        ride = await ride_with_rider()
        await make_user("stranger")

        sent = await service.send_message(ride.ride_id, "stranger", "hello")
        read = await service.get_chat_messages(ride.ride_id, "stranger")

        assert sent.error_code == "authorization_error"
        assert read.error_code == "authorization_error"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text,message_type", [
        ("", "text"),
        ("x" * 1001, "text"),
        ("hi", "system"),
        ("hi", "sticker"),
    ])
    async def test_invalid_messages(self, service, ride_with_rider, text, message_type):
        ride = await ride_with_rider()

        result = await service.send_message(ride.ride_id, "rider-1", text, message_type)

        assert result.error_code == "validation_error"

    @pytest.mark.asyncio
    async def test_history_limit_keeps_latest(self, service, ride_with_rider):
        ride = await ride_with_rider()
        for i in range(5):
            await service.send_message(ride.ride_id, "rider-1", f"message {i}")

        result = await service.get_chat_messages(ride.ride_id, "rider-1", 2)

        assert [m.text for m in result.data] == ["message 3", "message 4"]

    @pytest.mark.asyncio
    async def test_unread_and_mark_read(self, service, ride_with_rider):
        ride = await ride_with_rider()
        await service.send_message(ride.ride_id, "rider-1", "one")
        await service.send_message(ride.ride_id, "rider-1", "two")
        await service.send_message(ride.ride_id, "driver-1", "reply")

        unread = await service.get_unread_count(ride.ride_id, "driver-1")
        marked = await service.mark_messages_as_read(ride.ride_id, "driver-1")
        after = await service.get_unread_count(ride.ride_id, "driver-1")

        assert unread.data == 2
        assert marked.data == 2
        assert after.data == 0

    @pytest.mark.asyncio
    async def test_delete_rules(self, service, ride_with_rider):
        ride = await ride_with_rider()
        rider_msg = await service.send_message(ride.ride_id, "rider-1", "mine")
        driver_msg = await service.send_message(ride.ride_id, "driver-1", "driver's")

        denied = await service.delete_message(ride.ride_id, driver_msg.data.message_id, "rider-1")
        by_driver = await service.delete_message(ride.ride_id, rider_msg.data.message_id, "driver-1")
        missing = await service.delete_message(ride.ride_id, "nope", "driver-1")

        assert denied.error_code == "authorization_error"
        assert by_driver.data is True
        assert missing.error_code == "not_found"

        history = await service.get_chat_messages(ride.ride_id, "driver-1")
        assert [m.text for m in history.data] == ["driver's"]

    @pytest.mark.asyncio
    async def test_system_message(self, service, ride_with_rider):
        ride = await ride_with_rider()

        await service.send_system_message(ride.ride_id, "Arun joined the ride")
        history = await service.get_chat_messages(ride.ride_id, "rider-1")

        assert history.data[0].sender_id == "system"
        assert history.data[0].message_type == "system"


class TestTyping:

    @pytest.mark.asyncio
    async def test_typing_users(self, service, ride_with_rider, redis):
        ride = await ride_with_rider()

        await service.set_typing(ride.ride_id, "rider-1", True)
        await service.set_typing(ride.ride_id, "driver-1", True)
        others = await service.get_typing_users(ride.ride_id, "driver-1")

        assert others.data == ["rider-1"]

        await service.set_typing(ride.ride_id, "rider-1", False)
        assert (await service.get_typing_users(ride.ride_id, "driver-1")).data == []

    @pytest.mark.asyncio
    async def test_stale_typing_ignored(self, service, ride_with_rider, redis):
        ride = await ride_with_rider()
        stale = (utc_now() - timedelta(seconds=30)).isoformat()
        await redis.hset(f"uniride:typing:{ride.ride_id}", "rider-1", stale)

        result = await service.get_typing_users(ride.ride_id)

        assert result.data == []
