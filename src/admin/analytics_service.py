import logging
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from src.models import Route, TicketBooking, User, Role, UserHasRole
from src.admin.schemas import (
    AnalyticsReport, RevenueMetrics, TicketMetrics, UserMetrics, RouteStatusMetrics,
    RefundMetrics, RoutePerformance, TimeSlotUsage, DailyRevenue
)
from src.routes.capacity_service import CapacityCalculator, is_active_booking, slot_sort_key
from src.wallet.miles_service import to_money
from src.utils.timezone import now, to_local, today

logger = logging.getLogger(__name__)

REVENUE_STATUSES = ("confirmed", "completed")

class AnalyticsService:
    """Admin dashboard metrics over ticket bookings, routes and users"""

    def __init__(self, db: Session):
        self.db = db

    def get_report(self, days: int = 30) -> AnalyticsReport:
        generated_at = now()
        range_start = generated_at - timedelta(days=days)
        thirty_days_ago = generated_at - timedelta(days=30)

        bookings = self._bookings_since(range_start)

        earning = [b for b in bookings if b.status in REVENUE_STATUSES]
        recent = [b for b in earning if to_local(b.booking_date) >= thirty_days_ago]
        refunded = [b for b in bookings if b.status == "refunded"]

        revenue = RevenueMetrics(
            total=to_money(sum((Decimal(b.total_price or 0) for b in earning), Decimal("0"))),
            last_30_days=to_money(sum((Decimal(b.total_price or 0) for b in recent), Decimal("0")))
        )
        tickets = TicketMetrics(
            bookings=len(earning),
            tickets=sum(b.quantity or 0 for b in earning),
            tickets_last_30_days=sum(b.quantity or 0 for b in recent)
        )
        refunds = RefundMetrics(
            count=len(refunded),
            amount=to_money(sum((Decimal(b.total_price or 0) for b in refunded), Decimal("0")))
        )

        performance = self.get_route_performance()
        top_routes = sorted(performance, key=lambda p: p.revenue, reverse=True)[:5]

        report = AnalyticsReport(
            range_days=days,
            generated_at=generated_at,
            revenue=revenue,
            tickets=tickets,
            users=self.get_user_metrics(range_start),
            routes=self.get_route_status_metrics(),
            refunds=refunds,
            revenue_by_day=self._revenue_by_day(earning),
            route_performance=performance,
            top_routes=top_routes,
            time_slots=self._time_slot_usage(bookings)
        )
        logger.info("Analytics report generated for the last %s days", days)
        return report

    def get_route_performance(self) -> List[RoutePerformance]:
        """Per-route capacity, seats sold and fill rate"""
        routes = self.db.query(Route).options(
            joinedload(Route.pickup),
            joinedload(Route.dropoff),
            joinedload(Route.bookings)
        ).order_by(Route.date.desc(), Route.id.desc()).all()

        performance = []
        for route in routes:
            summary = CapacityCalculator.for_route(route).summarize(route.bookings)
            capacity = summary.total_capacity
            sold = summary.total_booked
            pickup = route.pickup.name if route.pickup else "Unknown"
            dropoff = route.dropoff.name if route.dropoff else "Unknown"
            performance.append(RoutePerformance(
                id=route.id,
                route=f"{pickup} to {dropoff}",
                date=route.date,
                capacity=capacity,
                threshold=route.min_threshold,
                sold=sold,
                revenue=to_money(Decimal(route.price or 0) * sold),
                fill_rate=round(sold / capacity * 100, 1) if capacity else 0.0,
                status=route.status,
                is_confirmed=summary.is_confirmed
            ))
        return performance

    def get_user_metrics(self, range_start) -> UserMetrics:
        users = self.db.query(User.id, User.created_at).all()
        new_in_range = sum(
            1 for _, created_at in users
            if created_at is not None and to_local(created_at) >= range_start
        )

        role_counts = self.db.query(Role.name, func.count(UserHasRole.id)).join(
            UserHasRole, UserHasRole.role_id == Role.id
        ).group_by(Role.name).all()

        return UserMetrics(
            total=len(users),
            new_in_range=new_in_range,
            by_role={name: count for name, count in role_counts}
        )

    def get_route_status_metrics(self) -> RouteStatusMetrics:
        counts = dict(
            self.db.query(Route.status, func.count(Route.id)).group_by(Route.status).all()
        )
        upcoming = self.db.query(Route).filter(
            Route.status == "active",
            Route.date > today()
        ).count()
        return RouteStatusMetrics(
            completed=counts.get("completed", 0),
            cancelled=counts.get("cancelled", 0),
            upcoming=upcoming
        )

    def _bookings_since(self, range_start) -> List[TicketBooking]:
        # SQLite stores naive UTC timestamps, so compare after conversion
        bookings = self.db.query(TicketBooking).order_by(TicketBooking.booking_date.asc()).all()
        return [b for b in bookings if b.booking_date is not None and to_local(b.booking_date) >= range_start]

    def _revenue_by_day(self, bookings: List[TicketBooking]) -> List[DailyRevenue]:
        revenue: Dict = defaultdict(lambda: Decimal("0"))
        tickets: Dict = defaultdict(int)
        for booking in bookings:
            day = to_local(booking.booking_date).date()
            revenue[day] += Decimal(booking.total_price or 0)
            tickets[day] += booking.quantity or 0
        return [
            DailyRevenue(date=day, revenue=to_money(revenue[day]), tickets=tickets[day])
            for day in sorted(revenue)
        ]

    def _time_slot_usage(self, bookings: List[TicketBooking]) -> List[TimeSlotUsage]:
        seats: Dict[str, int] = defaultdict(int)
        counts: Dict[str, int] = defaultdict(int)
        for booking in bookings:
            if is_active_booking(booking) and booking.time_slot:
                seats[booking.time_slot] += booking.quantity or 0
                counts[booking.time_slot] += 1
        return [
            TimeSlotUsage(time_slot=slot, seats=seats[slot], bookings=counts[slot])
            for slot in sorted(seats, key=slot_sort_key)
        ]
