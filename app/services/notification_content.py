"""
UniRide Notification Content

Title/body templates for every notification type. No emojis.
"""

from typing import Any, Dict, Tuple

from app.models.notification import NotificationType


TEMPLATES: Dict[str, Tuple[str, str]] = {
    NotificationType.NEW_BOOKING.value: (
        "New Booking",
        "{rider_name} booked {seats_booked} seat(s) for your ride to {destination}",
    ),
    NotificationType.BOOKING_CANCELLED.value: (
        "Booking Cancelled",
        "{rider_name} cancelled their booking for the ride to {destination}",
    ),
    NotificationType.RIDE_FULL.value: (
        "Ride Full",
        "Your ride to {destination} is now full",
    ),
    NotificationType.RIDE_REMINDER.value: (
        "Ride Reminder",
        "Your ride to {destination} starts in {minutes} minutes",
    ),
    NotificationType.RIDE_CANCELLED.value: (
        "Ride Cancelled",
        "The ride to {destination} on {date} has been cancelled",
    ),
    NotificationType.RATING_REQUEST.value: (
        "Rate Your Ride",
        "How was your ride to {destination}? Please rate your experience",
    ),
    NotificationType.DRIVER_NEARBY.value: (
        "Driver Nearby",
        "{driver_name} is about {eta_minutes} minutes away",
    ),
}

DEFAULT_TEMPLATE = ("Notification", "You have a new notification")


class _Defaults(dict):
    """Leave unknown placeholders readable instead of raising KeyError."""

    def __missing__(self, key):
        return ""


def render(notification_type, data: Dict[str, Any]) -> Tuple[str, str]:
    """Return (title, body) for a notification type."""
    key = getattr(notification_type, "value", notification_type)
    title, body = TEMPLATES.get(key, DEFAULT_TEMPLATE)
    return title, body.format_map(_Defaults(data))
