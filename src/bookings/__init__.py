"""
Booking & Ticketing Module

Shuttle ticket purchase for the ULimo party-bus routes. It includes:

- Booking submission (idle -> checking -> processing -> success | error)
  with seat capacity re-checked under a route lock
- Payment by wallet credits or card, with an optional loyalty-miles discount
- Refunds of single bookings or of every booking on a route
- Per-seat tickets with QR codes and driver-side verification

Key Components:
- booking_service.py: booking submission state machine, queries and refunds
- ticket_service.py: QR code rendering and ticket check/redeem
- router.py: FastAPI endpoints for bookings and tickets
- schemas.py: Pydantic models for booking and ticket data structures

Features:
- Booking rows, wallet debits, miles redemption and the route's sold-seat
  counter are written in one transaction
- Miles-only bookings when the discount covers the whole total
- A ticket can be redeemed once; later scans report the first redemption
"""

from .router import router
from .booking_service import BookingService, BookingSubmission, CapacityError, BookingStateError
from .ticket_service import TicketService
from .schemas import (
    TicketBookingRequest, TicketBooking, TicketBookingDetail, BookingResult,
    BookingFlowState, BookingStatus, PaymentMethod, RefundResult,
    TicketInfo, TicketVerificationResponse, TicketQRCode
)

__all__ = [
    "router",
    "BookingService",
    "BookingSubmission",
    "CapacityError",
    "BookingStateError",
    "TicketService",
    "TicketBookingRequest",
    "TicketBooking",
    "TicketBookingDetail",
    "BookingResult",
    "BookingFlowState",
    "BookingStatus",
    "PaymentMethod",
    "RefundResult",
    "TicketInfo",
    "TicketVerificationResponse",
    "TicketQRCode"
]
