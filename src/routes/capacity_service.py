from typing import Dict, Iterable, List, Optional, Protocol
from collections import defaultdict

from src.routes.schemas import SlotAvailability, RouteCapacity

# Bookings in this status no longer hold seats
INACTIVE_BOOKING_STATUSES = frozenset({"refunded"})

class BookingLike(Protocol):
    quantity: int
    time_slot: Optional[str]
    status: str

def is_active_booking(booking: BookingLike) -> bool:
    return booking.status not in INACTIVE_BOOKING_STATUSES

def slot_sort_key(time_slot: str):
    """Sort key for HH:MM or HH:MM:SS slot strings (hour, then minute)"""
    parts = time_slot.split(":")
    try:
        return (int(parts[0]), int(parts[1]) if len(parts) > 1 else 0)
    except ValueError:
        return (24, 0)

def sort_time_slots(time_slots: Iterable[str]) -> List[str]:
    return sorted(time_slots, key=slot_sort_key)

def booked_seats_by_slot(bookings: Iterable[BookingLike]) -> Dict[str, int]:
    """Sum active booking quantities per time slot"""
    booked = defaultdict(int)
    for booking in bookings:
        if is_active_booking(booking):
            booked[booking.time_slot or "default"] += booking.quantity or 0
    return dict(booked)

def total_active_quantity(bookings: Iterable[BookingLike]) -> int:
    return sum(b.quantity or 0 for b in bookings if is_active_booking(b))

def calculate_remaining_seats(
    time_slots: Iterable[str],
    max_capacity_per_slot: int,
    bookings: Iterable[BookingLike]
) -> Dict[str, int]:
    """Remaining seats per slot, clamped at zero"""
    booked = booked_seats_by_slot(bookings)
    return {
        slot: max(0, max_capacity_per_slot - booked.get(slot, 0))
        for slot in time_slots
    }

def is_route_confirmed(bookings: Iterable[BookingLike], min_threshold: int) -> bool:
    return total_active_quantity(bookings) >= min_threshold

class CapacityCalculator:
    """Seat availability and confirmation status for a shuttle route"""

    def __init__(self, time_slots: Iterable[str], max_capacity_per_slot: int, min_threshold: int):
        self.time_slots = sort_time_slots(time_slots or [])
        self.max_capacity_per_slot = max_capacity_per_slot
        self.min_threshold = min_threshold

    @classmethod
    def for_route(cls, route) -> "CapacityCalculator":
        return cls(route.time_slots, route.max_capacity_per_slot, route.min_threshold)

    def summarize(self, bookings: Iterable[BookingLike]) -> RouteCapacity:
        bookings = list(bookings)
        booked = booked_seats_by_slot(bookings)
        remaining = calculate_remaining_seats(self.time_slots, self.max_capacity_per_slot, bookings)
        total_booked = total_active_quantity(bookings)

        slots = [
            SlotAvailability(
                time_slot=slot,
                capacity=self.max_capacity_per_slot,
                booked=booked.get(slot, 0),
                remaining=remaining[slot]
            )
            for slot in self.time_slots
        ]

        return RouteCapacity(
            slots=slots,
            remaining_by_slot=remaining,
            total_capacity=self.max_capacity_per_slot * len(self.time_slots),
            total_booked=total_booked,
            min_threshold=self.min_threshold,
            is_confirmed=total_booked >= self.min_threshold,
            default_time_slot=self.default_time_slot(remaining)
        )

    def default_time_slot(self, remaining: Dict[str, int]) -> Optional[str]:
        """First chronological slot with seats left, else the first slot"""
        for slot in self.time_slots:
            if remaining.get(slot, 0) > 0:
                return slot
        return self.time_slots[0] if self.time_slots else None

    def remaining_for_slot(self, time_slot: str, bookings: Iterable[BookingLike]) -> int:
        if time_slot not in self.time_slots:
            raise ValueError(f"Time slot {time_slot} is not offered on this route")
        return calculate_remaining_seats([time_slot], self.max_capacity_per_slot, bookings)[time_slot]
