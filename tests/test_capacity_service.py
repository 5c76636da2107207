from types import SimpleNamespace

import pytest

from src.routes.capacity_service import (
    CapacityCalculator, calculate_remaining_seats, is_route_confirmed, sort_time_slots
)

def booking(quantity, time_slot="21:00", status="confirmed"):
    return SimpleNamespace(quantity=quantity, time_slot=time_slot, status=status)

def test_remaining_seats_subtracts_active_quantities():
    bookings = [booking(5), booking(5), booking(5)]
    remaining = calculate_remaining_seats(["21:00"], 20, bookings)
    assert remaining == {"21:00": 5}

def test_slot_without_bookings_has_full_capacity():
    remaining = calculate_remaining_seats(["21:00", "22:00"], 20, [booking(3, "21:00")])
    assert remaining["22:00"] == 20
    assert remaining["21:00"] == 17

def test_refunded_bookings_release_their_seats():
    bookings = [booking(8), booking(10, status="refunded")]
    assert calculate_remaining_seats(["21:00"], 20, bookings) == {"21:00": 12}

def test_remaining_seats_never_negative():
    bookings = [booking(15), booking(10)]
    assert calculate_remaining_seats(["21:00"], 20, bookings) == {"21:00": 0}

def test_confirmation_counts_all_slots_against_threshold():
    bookings = [booking(6, "21:00"), booking(4, "22:00")]
    assert is_route_confirmed(bookings, 10)
    assert not is_route_confirmed(bookings, 11)

def test_confirmation_ignores_refunded_bookings():
    bookings = [booking(9), booking(5, status="refunded")]
    assert not is_route_confirmed(bookings, 10)

def test_time_slots_sorted_by_hour_then_minute():
    assert sort_time_slots(["23:00", "9:30", "21:15", "21:00"]) == ["9:30", "21:00", "21:15", "23:00"]

def test_summary_default_slot_is_first_with_seats():
    calculator = CapacityCalculator(["22:00", "21:00"], 10, 5)
    summary = calculator.summarize([booking(10, "21:00"), booking(2, "22:00")])

    assert [s.time_slot for s in summary.slots] == ["21:00", "22:00"]
    assert summary.remaining_by_slot == {"21:00": 0, "22:00": 8}
    assert summary.default_time_slot == "22:00"
    assert summary.total_capacity == 20
    assert summary.total_booked == 12
    assert summary.is_confirmed

def test_default_slot_falls_back_to_first_when_sold_out():
    calculator = CapacityCalculator(["21:00", "22:00"], 2, 1)
    summary = calculator.summarize([booking(2, "21:00"), booking(2, "22:00")])
    assert summary.default_time_slot == "21:00"

def test_remaining_for_unknown_slot_is_rejected():
    calculator = CapacityCalculator(["21:00"], 20, 5)
    with pytest.raises(ValueError, match="not offered"):
        calculator.remaining_for_slot("23:00", [])
