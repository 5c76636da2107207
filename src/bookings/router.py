from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from src.database import get_db
from src.auth.dependencies import get_current_user, require_admin, require_ticket_verifier
from src.auth.service import UserService
from src.bookings.schemas import (
    TicketBookingRequest, TicketBookingDetail, BookingResult, BookingFlowState,
    RefundResult, TicketQRCode, TicketVerificationResponse
)
from src.bookings.booking_service import BookingService
from src.bookings.ticket_service import TicketService
from src.models import Route

router = APIRouter()

# Booking Endpoints
@router.post("/", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
def create_booking(
    booking_request: TicketBookingRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Book seats on a route time slot, paying by wallet or card with optional miles"""
    if db.query(Route.id).filter(Route.id == booking_request.route_id).first() is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Route not found"
        )

    try:
        result = BookingService(db).submit_ticket_booking(current_user.id, booking_request)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create booking: {str(e)}"
        )

    if result.state == BookingFlowState.ERROR:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.error
        )
    return result

@router.get("/me", response_model=List[TicketBookingDetail])
def get_my_bookings(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Get the current user's bookings, newest first"""
    return BookingService(db).get_user_bookings(current_user.id)

@router.post("/{booking_id}/refund", response_model=RefundResult)
def refund_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    admin = Depends(require_admin)
):
    """Refund a confirmed booking (admin)"""
    try:
        return BookingService(db).refund_booking(booking_id, refunded_by=admin.id)
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

# Ticket Endpoints
@router.get("/{booking_id}/tickets/{ticket_number}/qr", response_model=TicketQRCode)
def get_ticket_qr_code(
    booking_id: int,
    ticket_number: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """QR code for one ticket of a booking"""
    booking = BookingService(db).get_booking(booking_id)
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found"
        )

    if booking.user_id != current_user.id and not UserService.is_admin(db, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions"
        )

    try:
        return TicketService(db).generate_qr_code(booking, ticket_number)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.get("/{booking_id}/tickets/{ticket_number}/verify", response_model=TicketVerificationResponse)
def check_ticket(
    booking_id: int,
    ticket_number: int,
    db: Session = Depends(get_db),
    verifier = Depends(require_ticket_verifier)
):
    """Look up a ticket and its redemption status (driver/admin)"""
    return TicketService(db).check_ticket(booking_id, ticket_number)

@router.post("/{booking_id}/tickets/{ticket_number}/verify", response_model=TicketVerificationResponse)
def redeem_ticket(
    booking_id: int,
    ticket_number: int,
    db: Session = Depends(get_db),
    verifier = Depends(require_ticket_verifier)
):
    """Redeem a ticket at pickup (driver/admin)"""
    return TicketService(db).redeem_ticket(booking_id, ticket_number, verified_by=verifier.id)
