"""
Rides Router

Ride offers: creation, search, updates and status transitions.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_active_user
from app.models.ride import (
    LocationSearchType, RideCancel, RideCreate, RideStatusUpdate, RideUpdate,
)
from app.models.user import User
from app.services.ride_service import RideService
from app.services.search_service import SearchService
from app.utils.http import unwrap


router = APIRouter()
ride_service = RideService()
search_service = SearchService()


@router.post("")
async def create_ride(
    data: RideCreate,
    current_user: User = Depends(get_current_active_user)
):
    """
    Offer a new ride.

    - Caller must have the driver role
    - Departure must be in the future
    - 1 to 8 seats, non-negative cost per seat
    """
    return unwrap(await ride_service.create_ride(current_user.user_id, data))


@router.get("/search")
async def search_rides(
    pickup: Optional[str] = None,
    destination: Optional[str] = None,
    date: Optional[str] = None,
    time_from: Optional[str] = None,
    seats_needed: int = 1,
    max_cost: Optional[float] = None,
    gender_preference: Optional[str] = None,
    limit: Optional[int] = None,
    current_user: User = Depends(get_current_active_user)
):
    """Available rides matching the filters, earliest departure first."""
    filters = {
        "pickup": pickup,
        "destination": destination,
        "date": date,
        "time_from": time_from,
        "seats_needed": seats_needed,
        "max_cost": max_cost,
        "gender_preference": gender_preference,
    }
    if limit is not None:
        filters["limit"] = limit
    return unwrap(await search_service.get_available_rides(filters))


@router.get("/nearby")
async def search_nearby(
    lat: float,
    lng: float,
    radius_km: Optional[float] = None,
    search_type: LocationSearchType = LocationSearchType.PICKUP,
    date: Optional[str] = None,
    current_user: User = Depends(get_current_active_user)
):
    """Rides with pickup (or destination) within radius_km, nearest first."""
    return unwrap(await search_service.search_rides_by_location(
        lat, lng, radius_km=radius_km, search_type=search_type.value, date=date
    ))


@router.get("/mine")
async def get_my_rides(
    role: str = Query("all", pattern="^(all|driver|rider)$"),
    current_user: User = Depends(get_current_active_user)
):
    """Rides the current user drives or has booked."""
    return unwrap(await ride_service.get_my_rides(current_user.user_id, role))


@router.get("/driver/{driver_id}")
async def get_driver_rides(
    driver_id: str,
    status: Optional[str] = None,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await ride_service.get_driver_rides(driver_id, status))


@router.get("/{ride_id}")
async def get_ride(
    ride_id: str,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await ride_service.get_ride_by_id(ride_id))


@router.patch("/{ride_id}")
async def update_ride(
    ride_id: str,
    data: RideUpdate,
    current_user: User = Depends(get_current_active_user)
):
    """
    Edit an open ride. Driver only.

    Reducing total_seats below the seats already booked is rejected.
    """
    return unwrap(await ride_service.update_ride_details(
        current_user.user_id, ride_id, data.model_dump(exclude_unset=True)
    ))


@router.post("/{ride_id}/status")
async def update_ride_status(
    ride_id: str,
    data: RideStatusUpdate,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await ride_service.update_ride_status(ride_id, data.status, current_user.user_id))


@router.post("/{ride_id}/cancel")
async def cancel_ride(
    ride_id: str,
    data: Optional[RideCancel] = None,
    current_user: User = Depends(get_current_active_user)
):
    """Cancel a ride. Active bookings are cancelled and riders notified."""
    reason = data.reason if data else None
    return unwrap(await ride_service.cancel_ride(ride_id, current_user.user_id, reason))


@router.post("/{ride_id}/complete")
async def complete_ride(
    ride_id: str,
    current_user: User = Depends(get_current_active_user)
):
    """Mark a ride completed and request ratings from participants."""
    return unwrap(await ride_service.complete_ride(ride_id, current_user.user_id))
