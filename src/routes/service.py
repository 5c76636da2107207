import logging
from collections import defaultdict
from typing import List, Optional, Dict

from sqlalchemy.orm import Session, joinedload

from src.models import Route, Location, TicketBooking
from src.routes.capacity_service import CapacityCalculator, INACTIVE_BOOKING_STATUSES
from src.routes.schemas import (
    RouteCreate, RouteUpdate, RouteSummary, RouteDetail, RouteListResponse,
    LocationCreate, LocationRef
)
from src.system_settings import SystemSettingsService
from src.utils.timezone import today

logger = logging.getLogger(__name__)

class RouteService:
    """Shuttle routes, pickup/dropoff locations and their seat availability"""

    def __init__(self, db: Session):
        self.db = db

    # Locations
    def list_locations(self, active_only: bool = True, city: Optional[str] = None) -> List[Location]:
        query = self.db.query(Location)
        if active_only:
            query = query.filter(Location.active.is_(True))
        if city:
            query = query.filter(Location.city == city)
        return query.order_by(Location.name).all()

    def create_location(self, location: LocationCreate) -> Location:
        db_location = Location(**location.dict())
        self.db.add(db_location)
        self.db.commit()
        self.db.refresh(db_location)
        logger.info("Created location %s (%s)", db_location.id, db_location.name)
        return db_location

    # Routes
    def get_route(self, route_id: int) -> Optional[Route]:
        return self.db.query(Route).options(
            joinedload(Route.pickup),
            joinedload(Route.dropoff)
        ).filter(Route.id == route_id).first()

    def get_active_bookings(self, route_ids: List[int]) -> Dict[int, List[TicketBooking]]:
        """Active (non-refunded) bookings grouped by route"""
        grouped = defaultdict(list)
        if not route_ids:
            return grouped
        bookings = self.db.query(TicketBooking).filter(
            TicketBooking.route_id.in_(route_ids),
            TicketBooking.status.notin_(list(INACTIVE_BOOKING_STATUSES))
        ).all()
        for booking in bookings:
            grouped[booking.route_id].append(booking)
        return grouped

    def list_routes(
        self,
        city: Optional[str] = None,
        pickup_location: Optional[int] = None,
        dropoff_location: Optional[int] = None,
        include_past: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> RouteListResponse:
        """Active routes from today onwards with computed availability"""
        query = self.db.query(Route).options(
            joinedload(Route.pickup),
            joinedload(Route.dropoff)
        ).filter(Route.status == "active")

        if pickup_location:
            query = query.filter(Route.pickup_location == pickup_location)
        if dropoff_location:
            query = query.filter(Route.dropoff_location == dropoff_location)
        if city:
            query = query.filter(Route.city == city)
        if not include_past:
            query = query.filter(Route.date >= today())

        hidden_cities = SystemSettingsService(self.db).get_hidden_cities()
        if hidden_cities and not city:
            query = query.filter((Route.city.is_(None)) | (Route.city.notin_(hidden_cities)))

        total = query.count()
        routes = query.order_by(Route.date.asc(), Route.id.asc()).offset(skip).limit(limit).all()

        bookings_by_route = self.get_active_bookings([r.id for r in routes])
        summaries = [self.build_summary(route, bookings_by_route.get(route.id, [])) for route in routes]

        return RouteListResponse(routes=summaries, total=total)

    def get_route_detail(self, route_id: int) -> Optional[RouteDetail]:
        route = self.get_route(route_id)
        if not route:
            return None

        bookings = self.get_active_bookings([route.id]).get(route.id, [])
        summary = self.build_summary(route, bookings)

        return RouteDetail(
            **summary.dict(),
            active_bookings=len(bookings),
            updated_at=route.updated_at
        )

    def build_summary(self, route: Route, bookings: List[TicketBooking]) -> RouteSummary:
        capacity = CapacityCalculator.for_route(route).summarize(bookings)
        return RouteSummary(
            id=route.id,
            date=route.date,
            time_slots=CapacityCalculator.for_route(route).time_slots,
            price=route.price,
            max_capacity_per_slot=route.max_capacity_per_slot,
            min_threshold=route.min_threshold,
            # tickets_sold is a cached counter; report the live active count
            tickets_sold=capacity.total_booked,
            status=route.status,
            city=route.city,
            pickup=LocationRef.from_orm(route.pickup) if route.pickup else None,
            dropoff=LocationRef.from_orm(route.dropoff) if route.dropoff else None,
            capacity=capacity
        )

    def create_route(self, route: RouteCreate) -> Route:
        self._validate_locations(route.pickup_location, route.dropoff_location)
        if route.min_threshold > route.max_capacity_per_slot * len(route.time_slots):
            raise ValueError("Minimum threshold cannot exceed total route capacity")

        db_route = Route(
            date=route.date,
            time_slots=route.time_slots,
            price=route.price,
            max_capacity_per_slot=route.max_capacity_per_slot,
            min_threshold=route.min_threshold,
            tickets_sold=0,
            status=route.status,
            pickup_location=route.pickup_location,
            dropoff_location=route.dropoff_location,
            city=route.city
        )
        self.db.add(db_route)
        self.db.commit()
        self.db.refresh(db_route)
        logger.info("Created route %s on %s", db_route.id, db_route.date)
        return db_route

    def update_route(self, route_id: int, route_update: RouteUpdate) -> Optional[Route]:
        db_route = self.get_route(route_id)
        if not db_route:
            return None

        update_data = route_update.dict(exclude_unset=True)
        if "pickup_location" in update_data or "dropoff_location" in update_data:
            self._validate_locations(
                update_data.get("pickup_location", db_route.pickup_location),
                update_data.get("dropoff_location", db_route.dropoff_location)
            )

        # Slots that already hold seats cannot be removed
        if "time_slots" in update_data:
            bookings = self.get_active_bookings([route_id]).get(route_id, [])
            booked_slots = {b.time_slot for b in bookings}
            removed = booked_slots - set(update_data["time_slots"])
            if removed:
                raise ValueError(f"Cannot remove time slots with active bookings: {', '.join(sorted(removed))}")

        for field, value in update_data.items():
            setattr(db_route, field, value)

        self.db.commit()
        self.db.refresh(db_route)
        logger.info("Updated route %s: %s", route_id, ", ".join(update_data))
        return db_route

    def set_status(self, route_id: int, status: str) -> Optional[Route]:
        db_route = self.get_route(route_id)
        if not db_route:
            return None
        db_route.status = status
        self.db.commit()
        self.db.refresh(db_route)
        logger.info("Route %s status set to %s", route_id, status)
        return db_route

    def _validate_locations(self, pickup_id: int, dropoff_id: int):
        if pickup_id == dropoff_id:
            raise ValueError("Pickup and dropoff locations cannot be the same")
        found = self.db.query(Location.id).filter(Location.id.in_([pickup_id, dropoff_id])).count()
        if found != 2:
            raise ValueError("Pickup or dropoff location not found")
