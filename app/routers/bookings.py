"""
Bookings Router

Seat booking and cancellation.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from app.dependencies import get_current_active_user
from app.models.booking import BookingCreate
from app.models.user import User
from app.services.booking_service import BookingService
from app.utils.http import unwrap


router = APIRouter()
booking_service = BookingService()


@router.post("")
async def book_seat(
    data: BookingCreate,
    current_user: User = Depends(get_current_active_user)
):
    """
    Book seats on a ride.

    - Ride must be active with enough seats left
    - Gender-restricted rides only admit matching riders
    - One active booking per ride
    """
    return unwrap(await booking_service.book_seat(
        data.ride_id, current_user.user_id, data.seats_booked
    ))


@router.get("/mine")
async def get_my_bookings(
    status: Optional[str] = None,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await booking_service.get_my_bookings(current_user.user_id, status))


@router.get("/stats")
async def get_booking_stats(current_user: User = Depends(get_current_active_user)):
    return unwrap(await booking_service.get_booking_stats(current_user.user_id))


@router.get("/ride/{ride_id}")
async def get_ride_bookings(
    ride_id: str,
    current_user: User = Depends(get_current_active_user)
):
    """Active bookings on one of the caller's rides."""
    return unwrap(await booking_service.get_ride_bookings(ride_id, current_user.user_id))


@router.get("/ride/{ride_id}/check")
async def has_booked(
    ride_id: str,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await booking_service.has_user_booked_ride(ride_id, current_user.user_id))


@router.get("/{booking_id}")
async def get_booking(
    booking_id: str,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await booking_service.get_booking_by_id(booking_id))


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    current_user: User = Depends(get_current_active_user)
):
    """Cancel a booking at least 2 hours before departure. Returns the refund."""
    return unwrap(await booking_service.cancel_booking(booking_id, current_user.user_id))
