from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from src.database import get_db
from src.auth.dependencies import require_admin
from src.routes.schemas import (
    RouteCreate, RouteUpdate, RouteStatusUpdate, RouteListResponse, RouteDetail,
    Location, LocationCreate
)
from src.routes.service import RouteService
from src.bookings.booking_service import BookingService
from src.bookings.schemas import RefundResult

router = APIRouter()

# Location Endpoints
@router.get("/locations", response_model=List[Location])
def get_locations(
    city: Optional[str] = Query(None, description="Filter by city"),
    include_inactive: bool = Query(False, description="Include inactive locations"),
    db: Session = Depends(get_db)
):
    """List pickup/dropoff locations"""
    return RouteService(db).list_locations(active_only=not include_inactive, city=city)

@router.post("/locations", response_model=Location, status_code=status.HTTP_201_CREATED)
def create_location(
    location: LocationCreate,
    db: Session = Depends(get_db),
    admin = Depends(require_admin)
):
    """Add a pickup/dropoff location (admin)"""
    return RouteService(db).create_location(location)

# Route Endpoints
@router.get("/", response_model=RouteListResponse)
def list_routes(
    city: Optional[str] = Query(None, description="Filter by city"),
    pickup_location: Optional[int] = Query(None, description="Filter by pickup location ID"),
    dropoff_location: Optional[int] = Query(None, description="Filter by dropoff location ID"),
    include_past: bool = Query(False, description="Include routes dated before today"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Browse upcoming shuttle routes with seat availability"""
    return RouteService(db).list_routes(
        city=city,
        pickup_location=pickup_location,
        dropoff_location=dropoff_location,
        include_past=include_past,
        skip=skip,
        limit=limit
    )

@router.get("/{route_id}", response_model=RouteDetail)
def get_route(route_id: int, db: Session = Depends(get_db)):
    """Route detail with per-slot availability and confirmation status"""
    detail = RouteService(db).get_route_detail(route_id)
    if not detail:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Route not found"
        )
    return detail

@router.post("/", response_model=RouteDetail, status_code=status.HTTP_201_CREATED)
def create_route(
    route: RouteCreate,
    db: Session = Depends(get_db),
    admin = Depends(require_admin)
):
    """Create a shuttle route (admin)"""
    service = RouteService(db)
    try:
        db_route = service.create_route(route)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return service.get_route_detail(db_route.id)

@router.put("/{route_id}", response_model=RouteDetail)
def update_route(
    route_id: int,
    route_update: RouteUpdate,
    db: Session = Depends(get_db),
    admin = Depends(require_admin)
):
    """Update a shuttle route (admin)"""
    service = RouteService(db)
    try:
        db_route = service.update_route(route_id, route_update)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    if not db_route:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Route not found"
        )
    return service.get_route_detail(route_id)

@router.patch("/{route_id}/status", response_model=RouteDetail)
def update_route_status(
    route_id: int,
    status_update: RouteStatusUpdate,
    db: Session = Depends(get_db),
    admin = Depends(require_admin)
):
    """Activate, cancel or complete a route (admin)"""
    service = RouteService(db)
    if not service.set_status(route_id, status_update.status):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Route not found"
        )
    return service.get_route_detail(route_id)

@router.post("/{route_id}/refund-all", response_model=List[RefundResult])
def refund_route(
    route_id: int,
    db: Session = Depends(get_db),
    admin = Depends(require_admin)
):
    """Refund every confirmed booking on a route (admin)"""
    service = BookingService(db)
    try:
        return service.refund_route(route_id, refunded_by=admin.id)
    except LookupError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
