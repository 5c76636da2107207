"""
Shuttle Routes Module

Route browsing and management for the ULimo party-bus shuttles:

- Upcoming route listings filtered by city and pickup/dropoff location
- Route detail with per-time-slot seat availability
- Route confirmation status against the minimum seat threshold
- Pickup/dropoff location management

Key Components:
- capacity_service.py: the single source of seat availability arithmetic
- service.py: route and location queries and admin mutations
- router.py: FastAPI endpoints (imported by the application, not here,
  because the refund-all endpoint depends on src.bookings)
- schemas.py: Pydantic request/response models
"""

from .service import RouteService
from .capacity_service import CapacityCalculator, calculate_remaining_seats, is_route_confirmed
from .schemas import (
    RouteCreate, RouteUpdate, RouteSummary, RouteDetail, RouteListResponse,
    RouteCapacity, SlotAvailability, Location, LocationCreate
)

__all__ = [
    "RouteService",
    "CapacityCalculator",
    "calculate_remaining_seats",
    "is_route_confirmed",
    "RouteCreate",
    "RouteUpdate",
    "RouteSummary",
    "RouteDetail",
    "RouteListResponse",
    "RouteCapacity",
    "SlotAvailability",
    "Location",
    "LocationCreate"
]
