"""
Tracking Router

Live location sharing for a ride.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_current_active_user, require_ride_participant
from app.models.activity import LocationUpdate
from app.models.user import User
from app.services.tracking_service import TrackingService
from app.utils.http import unwrap


router = APIRouter()
tracking_service = TrackingService()


@router.put("/{ride_id}/driver")
async def update_driver_location(
    ride_id: str,
    data: LocationUpdate,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await tracking_service.update_driver_location(
        ride_id, current_user.user_id, data.lat, data.lng
    ))


@router.put("/{ride_id}/passenger")
async def update_passenger_location(
    ride_id: str,
    data: LocationUpdate,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await tracking_service.update_passenger_location(
        ride_id, current_user.user_id, data.lat, data.lng
    ))


@router.get("/{ride_id}")
async def get_locations(
    ride_id: str,
    current_user: User = Depends(get_current_active_user)
):
    """Driver and passenger locations. Ride participants only."""
    await require_ride_participant(ride_id, current_user)
    return {
        "driver": unwrap(await tracking_service.get_driver_location(ride_id)),
        "passengers": unwrap(await tracking_service.get_all_passenger_locations(ride_id)),
    }


@router.get("/{ride_id}/eta")
async def get_eta(
    ride_id: str,
    lat: float,
    lng: float,
    current_user: User = Depends(get_current_active_user)
):
    """Straight-line ETA from the driver's last position to a point."""
    await require_ride_participant(ride_id, current_user)
    return unwrap(await tracking_service.estimate_eta_minutes(ride_id, lat, lng))
