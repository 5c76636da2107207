import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from src.models import Route, TicketBooking as TicketBookingModel
from src.bookings.schemas import (
    TicketBookingRequest, TicketBooking, TicketBookingDetail, BookingRouteInfo,
    BookingResult, BookingFlowState, BookingStatus, RefundResult
)
from src.routes.capacity_service import CapacityCalculator, INACTIVE_BOOKING_STATUSES
from src.wallet.miles_service import to_money
from src.wallet.payment_service import PaymentService
from src.wallet.service import WalletService

logger = logging.getLogger(__name__)

class CapacityError(ValueError):
    def __init__(self, remaining: int, requested: int):
        self.remaining = remaining
        self.requested = requested
        super().__init__(f"Only {remaining} seats available for this time slot.")

class BookingStateError(ValueError):
    pass

class BookingSubmission:
    """
    Tracks a single booking attempt through
    idle -> checking -> processing -> success | error.
    """

    ALLOWED = {
        BookingFlowState.IDLE: {BookingFlowState.CHECKING},
        BookingFlowState.CHECKING: {BookingFlowState.PROCESSING, BookingFlowState.ERROR},
        BookingFlowState.PROCESSING: {BookingFlowState.SUCCESS, BookingFlowState.ERROR},
        BookingFlowState.SUCCESS: set(),
        BookingFlowState.ERROR: set(),
    }

    def __init__(self):
        self.state = BookingFlowState.IDLE
        self.history = [BookingFlowState.IDLE]
        self.error: Optional[str] = None

    def advance(self, new_state: BookingFlowState):
        if new_state not in self.ALLOWED[self.state]:
            raise BookingStateError(
                f"Invalid booking state transition: {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)

    def fail(self, message: str):
        self.advance(BookingFlowState.ERROR)
        self.error = message

    @property
    def is_terminal(self) -> bool:
        return self.state in (BookingFlowState.SUCCESS, BookingFlowState.ERROR)

class BookingService:
    """Service for shuttle ticket bookings and refunds"""

    def __init__(self, db: Session):
        self.db = db
        self.payment_service = PaymentService(db)
        self.wallet_service = WalletService(db)

    # Booking submission
    def submit_ticket_booking(self, user_id: int, request: TicketBookingRequest) -> BookingResult:
        """
        Validate and place a ticket booking in one transaction.

        The route and wallet rows are locked while capacity and balances are
        checked, so the seat count cannot change between the check and the
        insert. Any failure rolls back every write and leaves the submission
        in the error state.
        """
        submission = BookingSubmission()
        submission.advance(BookingFlowState.CHECKING)
        subtotal = Decimal("0.00")
        plan = None

        try:
            route = self._lock_route(request.route_id)
            if route is None:
                raise LookupError("Route not found")
            if route.status != "active":
                raise ValueError("This route is not available for booking")
            if request.quantity < 1:
                raise ValueError("Please select at least one ticket")

            bookings = self._active_bookings_for_route(route.id)
            remaining = CapacityCalculator.for_route(route).remaining_for_slot(request.time_slot, bookings)
            if remaining < request.quantity:
                raise CapacityError(remaining, request.quantity)

            subtotal = to_money(Decimal(route.price) * request.quantity)
            plan = self.payment_service.plan(
                user_id, subtotal, request.payment_method, request.miles_amount
            )

            submission.advance(BookingFlowState.PROCESSING)
            logger.info(
                "Booking %s seat(s) on route %s at %s for user %s (%s)",
                request.quantity, route.id, request.time_slot, user_id, plan.payment_method
            )

            booking = TicketBookingModel(
                user_id=user_id,
                route_id=route.id,
                time_slot=request.time_slot,
                quantity=request.quantity,
                total_price=plan.residual,
                status=BookingStatus.CONFIRMED.value,
                payment_method=plan.payment_method,
                miles_redeemed=plan.miles_to_redeem,
                miles_discount=plan.miles_discount
            )
            self.db.add(booking)
            self.db.flush()

            booking.payment_reference = self.payment_service.execute(
                plan, user_id, f"route ticket booking #{booking.id}", str(booking.id)
            )
            route.tickets_sold = (route.tickets_sold or 0) + request.quantity

            self.db.commit()
            self.db.refresh(booking)
        except (ValueError, LookupError) as e:
            self.db.rollback()
            logger.warning("Booking rejected for user %s on route %s: %s", user_id, request.route_id, e)
            if submission.is_terminal:
                raise
            submission.fail(str(e))
            return BookingResult(
                state=submission.state,
                history=submission.history,
                subtotal=subtotal,
                error=submission.error
            )
        except Exception:
            self.db.rollback()
            logger.error("Booking rolled back for user %s on route %s", user_id, request.route_id, exc_info=True)
            raise

        submission.advance(BookingFlowState.SUCCESS)
        logger.info("Booking %s confirmed", booking.id)

        return BookingResult(
            state=submission.state,
            history=submission.history,
            booking=TicketBooking.from_orm(booking),
            subtotal=subtotal,
            miles_discount=plan.miles_discount,
            amount_charged=plan.residual
        )

    # Queries
    def get_booking(self, booking_id: int) -> Optional[TicketBookingModel]:
        return self.db.query(TicketBookingModel).filter(TicketBookingModel.id == booking_id).first()

    def get_user_bookings(self, user_id: int) -> List[TicketBookingDetail]:
        """Caller's non-refunded bookings, newest first"""
        bookings = self.db.query(TicketBookingModel).options(
            joinedload(TicketBookingModel.route).joinedload(Route.pickup),
            joinedload(TicketBookingModel.route).joinedload(Route.dropoff)
        ).filter(
            TicketBookingModel.user_id == user_id,
            TicketBookingModel.status.notin_(list(INACTIVE_BOOKING_STATUSES))
        ).order_by(TicketBookingModel.booking_date.desc(), TicketBookingModel.id.desc()).all()

        route_ids = {b.route_id for b in bookings}
        active_by_route = {route_id: self._active_bookings_for_route(route_id) for route_id in route_ids}

        details = []
        for booking in bookings:
            route = booking.route
            route_bookings = active_by_route[route.id]
            capacity = CapacityCalculator.for_route(route).summarize(route_bookings)
            details.append(TicketBookingDetail(
                **TicketBooking.from_orm(booking).dict(),
                route=BookingRouteInfo(
                    id=route.id,
                    date=route.date,
                    price=route.price,
                    status=route.status,
                    city=route.city,
                    pickup_name=route.pickup.name if route.pickup else None,
                    dropoff_name=route.dropoff.name if route.dropoff else None,
                    is_confirmed=capacity.is_confirmed,
                    total_booked=capacity.total_booked,
                    min_threshold=route.min_threshold
                )
            ))
        return details

    # Refunds
    def refund_booking(self, booking_id: int, refunded_by: Optional[int] = None) -> RefundResult:
        """Refund a confirmed booking and return credits and miles to the wallets"""
        booking = self.db.query(TicketBookingModel).filter(
            TicketBookingModel.id == booking_id
        ).with_for_update().first()
        if booking is None:
            raise LookupError("Booking not found")

        try:
            result = self._refund(booking, refunded_by)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error("Refund of booking %s rolled back", booking_id, exc_info=True)
            raise
        return result

    def refund_route(self, route_id: int, refunded_by: Optional[int] = None) -> List[RefundResult]:
        """Refund every confirmed booking on a route"""
        route = self._lock_route(route_id)
        if route is None:
            raise LookupError("Route not found")

        bookings = self.db.query(TicketBookingModel).filter(
            TicketBookingModel.route_id == route_id,
            TicketBookingModel.status == BookingStatus.CONFIRMED.value
        ).with_for_update().all()

        try:
            results = [self._refund(booking, refunded_by) for booking in bookings]
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error("Refund of route %s rolled back", route_id, exc_info=True)
            raise

        logger.info("Refunded %s booking(s) on route %s", len(results), route_id)
        return results

    def _refund(self, booking: TicketBookingModel, refunded_by: Optional[int]) -> RefundResult:
        if booking.status != BookingStatus.CONFIRMED.value:
            raise ValueError(f"Only confirmed bookings can be refunded (booking is {booking.status})")

        reference_id = str(booking.id)
        description = f"Refund for route ticket booking #{booking.id}"
        amount = to_money(booking.total_price or 0)
        credits_refunded = Decimal("0.00")
        card_refunded = Decimal("0.00")
        refund_reference = None

        if amount > 0:
            if booking.payment_method == "wallet":
                self.wallet_service.add_credits(
                    booking.user_id, amount, description, reference_id, transaction_type="refund"
                )
                credits_refunded = amount
            elif booking.payment_method == "card":
                refund_reference = self.payment_service.refund_card_payment(
                    booking.payment_reference, amount
                )
                card_refunded = amount

        miles = booking.miles_redeemed or 0
        if miles > 0:
            self.wallet_service.award_miles(booking.user_id, miles, "refund", description, reference_id)

        route = self.db.query(Route).filter(Route.id == booking.route_id).first()
        if route is not None:
            route.tickets_sold = max(0, (route.tickets_sold or 0) - booking.quantity)

        booking.status = BookingStatus.REFUNDED.value
        logger.info(
            "Refunded booking %s (credits $%s, card $%s, %s miles) by %s",
            booking.id, credits_refunded, card_refunded, miles, refunded_by
        )

        return RefundResult(
            booking_id=booking.id,
            status=BookingStatus.REFUNDED,
            credits_refunded=credits_refunded,
            card_refunded=card_refunded,
            miles_refunded=miles,
            refund_reference=refund_reference
        )

    def _lock_route(self, route_id: int) -> Optional[Route]:
        return self.db.query(Route).filter(Route.id == route_id).with_for_update().first()

    def _active_bookings_for_route(self, route_id: int) -> List[TicketBookingModel]:
        return self.db.query(TicketBookingModel).filter(
            TicketBookingModel.route_id == route_id,
            TicketBookingModel.status.notin_(list(INACTIVE_BOOKING_STATUSES))
        ).all()
