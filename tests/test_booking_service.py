from decimal import Decimal

import pytest

from src.bookings.booking_service import BookingService, BookingSubmission, BookingStateError
from src.bookings.schemas import TicketBookingRequest, BookingFlowState
from src.system_settings import SystemSettingsService, POINT_VALUE
from src.models import TicketBooking, CreditTransaction, PointTransaction, WalletCredits, WalletPoints

def balances(db_session, user):
    credits = db_session.query(WalletCredits).filter(WalletCredits.user_id == user.id).one()
    points = db_session.query(WalletPoints).filter(WalletPoints.user_id == user.id).one()
    return Decimal(credits.balance), points.points

def test_state_machine_rejects_skipping_checks():
    submission = BookingSubmission()
    with pytest.raises(BookingStateError):
        submission.advance(BookingFlowState.PROCESSING)

def test_state_machine_is_terminal_after_success():
    submission = BookingSubmission()
    submission.advance(BookingFlowState.CHECKING)
    submission.advance(BookingFlowState.PROCESSING)
    submission.advance(BookingFlowState.SUCCESS)
    with pytest.raises(BookingStateError):
        submission.fail("too late")

def test_wallet_booking_debits_credits_and_counts_seats(db_session, make_user, make_route):
    user = make_user(credits=Decimal("50.00"))
    route = make_route(price=Decimal("10.00"))

    result = BookingService(db_session).submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=3)
    )

    assert result.state == BookingFlowState.SUCCESS
    assert result.history == [
        BookingFlowState.IDLE, BookingFlowState.CHECKING,
        BookingFlowState.PROCESSING, BookingFlowState.SUCCESS
    ]
    assert result.amount_charged == Decimal("30.00")
    assert result.booking.payment_method.value == "wallet"
    assert balances(db_session, user)[0] == Decimal("20.00")

    db_session.refresh(route)
    assert route.tickets_sold == 3

    transaction = db_session.query(CreditTransaction).filter(
        CreditTransaction.user_id == user.id, CreditTransaction.type == "purchase"
    ).one()
    assert transaction.amount == Decimal("-30.00")
    assert transaction.reference_id == str(result.booking.id)

def test_booking_over_capacity_is_rejected(db_session, make_user, make_route, add_booking):
    user = make_user(credits=Decimal("500.00"))
    other = make_user()
    route = make_route(max_capacity_per_slot=20)
    for _ in range(3):
        add_booking(route, other, 5)

    service = BookingService(db_session)
    result = service.submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=6)
    )

    assert result.state == BookingFlowState.ERROR
    assert result.error == "Only 5 seats available for this time slot."
    assert balances(db_session, user)[0] == Decimal("500.00")

    result = service.submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=5)
    )
    assert result.state == BookingFlowState.SUCCESS

def test_other_slots_keep_their_capacity(db_session, make_user, make_route, add_booking):
    user = make_user(credits=Decimal("500.00"))
    route = make_route(max_capacity_per_slot=4)
    add_booking(route, user, 4, time_slot="21:00")

    result = BookingService(db_session).submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="22:00", quantity=4)
    )
    assert result.state == BookingFlowState.SUCCESS

def test_unknown_time_slot_is_rejected(db_session, make_user, make_route):
    user = make_user(credits=Decimal("100.00"))
    route = make_route()

    result = BookingService(db_session).submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="03:00", quantity=1)
    )
    assert result.state == BookingFlowState.ERROR
    assert "not offered" in result.error

def test_inactive_route_cannot_be_booked(db_session, make_user, make_route):
    user = make_user(credits=Decimal("100.00"))
    route = make_route(status="cancelled")

    result = BookingService(db_session).submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=1)
    )
    assert result.state == BookingFlowState.ERROR

def test_miles_covering_total_make_a_miles_only_booking(db_session, make_user, make_route):
    user = make_user(miles=800, credits=Decimal("0"))
    route = make_route(price=Decimal("10.00"))

    result = BookingService(db_session).submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=1, miles_amount=800)
    )

    assert result.state == BookingFlowState.SUCCESS
    booking = result.booking
    assert booking.payment_method.value == "miles"
    assert booking.total_price == Decimal("0.00")
    assert booking.miles_redeemed == 500
    assert booking.miles_discount == Decimal("10.00")
    assert balances(db_session, user) == (Decimal("0.00"), 300)

    redeem = db_session.query(PointTransaction).filter(
        PointTransaction.user_id == user.id, PointTransaction.type == "redeem"
    ).one()
    assert redeem.points == -500
    assert redeem.reference_id == str(booking.id)

def test_partial_miles_with_wallet_residual(db_session, make_user, make_route):
    user = make_user(miles=250, credits=Decimal("20.00"))
    route = make_route(price=Decimal("10.00"))

    result = BookingService(db_session).submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=2, miles_amount=250)
    )

    assert result.state == BookingFlowState.SUCCESS
    assert result.miles_discount == Decimal("5.00")
    assert result.amount_charged == Decimal("15.00")
    assert balances(db_session, user) == (Decimal("5.00"), 0)

def test_partial_miles_below_minimum_residual_is_rejected(db_session, make_user, make_route):
    user = make_user(miles=480, credits=Decimal("20.00"))
    route = make_route(price=Decimal("10.00"))

    result = BookingService(db_session).submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=1, miles_amount=480)
    )

    assert result.state == BookingFlowState.ERROR
    assert "475 miles or less" in result.error
    assert db_session.query(TicketBooking).count() == 0

def test_insufficient_credits_roll_back_miles(db_session, make_user, make_route):
    user = make_user(miles=250, credits=Decimal("1.00"))
    route = make_route(price=Decimal("10.00"))

    result = BookingService(db_session).submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=1, miles_amount=250)
    )

    assert result.state == BookingFlowState.ERROR
    assert result.error.startswith("Insufficient credits")
    assert balances(db_session, user) == (Decimal("1.00"), 250)
    assert db_session.query(TicketBooking).count() == 0
    db_session.refresh(route)
    assert route.tickets_sold == 0

def test_card_payment_gets_processor_reference(db_session, make_user, make_route):
    user = make_user(credits=Decimal("0"))
    route = make_route(price=Decimal("12.50"))

    result = BookingService(db_session).submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="22:00", quantity=2, payment_method="card")
    )

    assert result.state == BookingFlowState.SUCCESS
    assert result.booking.payment_method.value == "card"
    assert result.booking.payment_reference.startswith("TXN")
    assert result.amount_charged == Decimal("25.00")

def test_refund_returns_credits_and_miles(db_session, make_user, make_route):
    user = make_user(miles=250, credits=Decimal("20.00"))
    route = make_route(price=Decimal("10.00"))
    service = BookingService(db_session)
    booking = service.submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=2, miles_amount=250)
    ).booking

    refund = service.refund_booking(booking.id, refunded_by=None)

    assert refund.credits_refunded == Decimal("15.00")
    assert refund.miles_refunded == 250
    assert balances(db_session, user) == (Decimal("20.00"), 250)
    db_session.refresh(route)
    assert route.tickets_sold == 0

    with pytest.raises(ValueError, match="Only confirmed bookings"):
        service.refund_booking(booking.id)

def test_refunded_booking_frees_seats(db_session, make_user, make_route):
    user = make_user(credits=Decimal("100.00"))
    route = make_route(max_capacity_per_slot=2)
    service = BookingService(db_session)
    booking = service.submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=2)
    ).booking

    service.refund_booking(booking.id)

    result = service.submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=2)
    )
    assert result.state == BookingFlowState.SUCCESS

def test_refund_route_refunds_every_confirmed_booking(db_session, make_user, make_route):
    first = make_user(credits=Decimal("50.00"))
    second = make_user(credits=Decimal("50.00"))
    route = make_route(price=Decimal("10.00"))
    service = BookingService(db_session)
    for user in (first, second):
        service.submit_ticket_booking(
            user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=1)
        )

    results = service.refund_route(route.id)

    assert len(results) == 2
    assert balances(db_session, first)[0] == Decimal("50.00")
    assert balances(db_session, second)[0] == Decimal("50.00")

def test_user_bookings_exclude_refunded(db_session, make_user, make_route, add_booking):
    user = make_user()
    route = make_route()
    kept = add_booking(route, user, 2)
    add_booking(route, user, 1, status="refunded")

    bookings = BookingService(db_session).get_user_bookings(user.id)

    assert [b.id for b in bookings] == [kept.id]
    assert bookings[0].route.pickup_name == "Campus Corner"
    assert bookings[0].route.total_booked == 2

def test_fractional_cent_rate_charges_subtotal_minus_discount(db_session, make_user, make_route):
    SystemSettingsService(db_session).set_value(POINT_VALUE, "0.015")
    db_session.commit()
    user = make_user(miles=333, credits=Decimal("20.00"))
    route = make_route(price=Decimal("10.00"))

    result = BookingService(db_session).submit_ticket_booking(
        user.id, TicketBookingRequest(route_id=route.id, time_slot="21:00", quantity=1, miles_amount=333)
    )

    assert result.state == BookingFlowState.SUCCESS
    assert result.miles_discount == Decimal("5.00")
    assert result.amount_charged == result.subtotal - result.miles_discount
    assert result.booking.total_price == Decimal("5.00")
    assert balances(db_session, user) == (Decimal("15.00"), 0)
