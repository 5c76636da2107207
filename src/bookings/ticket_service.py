import base64
import logging
from io import BytesIO
from typing import Optional

import qrcode
from qrcode import constants
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from src.config import settings
from src.models import Route, TicketBooking, TicketVerification
from src.bookings.schemas import (
    BookingStatus, TicketInfo, TicketVerificationResponse, TicketQRCode
)

logger = logging.getLogger(__name__)

class TicketService:
    """Per-seat tickets of a booking: QR codes and door verification"""

    def __init__(self, db: Session):
        self.db = db

    def verification_url(self, booking_id: int, ticket_number: int) -> str:
        return f"{settings.TICKET_VERIFY_BASE_URL.rstrip('/')}/{booking_id}/{ticket_number}"

    def generate_qr_code(self, booking: TicketBooking, ticket_number: int) -> TicketQRCode:
        """Render the verification URL of one ticket as a base64 PNG"""
        if ticket_number < 1 or ticket_number > booking.quantity:
            raise ValueError(f"Ticket number must be between 1 and {booking.quantity}")

        url = self.verification_url(booking.id, ticket_number)

        qr = qrcode.QRCode(
            version=1,
            error_correction=constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(url)
        qr.make(fit=True)

        qr_image = qr.make_image(fill_color="black", back_color="white")

        buffer = BytesIO()
        qr_image.save(buffer, format="PNG")
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")

        return TicketQRCode(
            booking_id=booking.id,
            ticket_number=ticket_number,
            verification_url=url,
            qr_code_base64=encoded
        )

    def check_ticket(self, booking_id: int, ticket_number: int) -> TicketVerificationResponse:
        """Report whether a ticket is valid and whether it was already redeemed"""
        booking = self._get_booking(booking_id)
        invalid = self._invalid_reason(booking, ticket_number)
        if invalid:
            return TicketVerificationResponse(success=False, status="invalid", error=invalid)

        verification = self._get_verification(booking_id, ticket_number)
        ticket = self._ticket_info(booking, ticket_number)
        if verification:
            return TicketVerificationResponse(
                success=True,
                status="verified",
                is_verified=True,
                ticket=ticket,
                verified_at=verification.verified_at,
                verified_by=verification.verified_by
            )
        return TicketVerificationResponse(success=True, status="valid", ticket=ticket)

    def redeem_ticket(self, booking_id: int, ticket_number: int, verified_by: int) -> TicketVerificationResponse:
        """Record the ticket as used; a second redemption is reported, not repeated"""
        booking = self._get_booking(booking_id)
        invalid = self._invalid_reason(booking, ticket_number)
        if invalid:
            logger.warning("Rejected ticket %s/%s: %s", booking_id, ticket_number, invalid)
            return TicketVerificationResponse(success=False, status="invalid", error=invalid)

        ticket = self._ticket_info(booking, ticket_number)
        existing = self._get_verification(booking_id, ticket_number)
        if existing:
            return self._already_verified(ticket, existing)

        verification = TicketVerification(
            booking_id=booking_id,
            ticket_number=ticket_number,
            verified_by=verified_by
        )
        self.db.add(verification)
        try:
            self.db.commit()
        except IntegrityError:
            # concurrent redemption of the same ticket
            self.db.rollback()
            existing = self._get_verification(booking_id, ticket_number)
            if existing is None:
                raise
            return self._already_verified(ticket, existing)

        self.db.refresh(verification)
        logger.info("Ticket %s/%s redeemed by user %s", booking_id, ticket_number, verified_by)

        return TicketVerificationResponse(
            success=True,
            status="verified",
            is_verified=True,
            ticket=ticket,
            verified_at=verification.verified_at,
            verified_by=verification.verified_by
        )

    def _already_verified(self, ticket: TicketInfo, verification: TicketVerification) -> TicketVerificationResponse:
        return TicketVerificationResponse(
            success=False,
            status="verified",
            is_verified=True,
            ticket=ticket,
            verified_at=verification.verified_at,
            verified_by=verification.verified_by,
            error="This ticket has already been verified"
        )

    def _get_booking(self, booking_id: int) -> Optional[TicketBooking]:
        return self.db.query(TicketBooking).options(
            joinedload(TicketBooking.user),
            joinedload(TicketBooking.route).joinedload(Route.pickup),
            joinedload(TicketBooking.route).joinedload(Route.dropoff)
        ).filter(TicketBooking.id == booking_id).first()

    def _get_verification(self, booking_id: int, ticket_number: int) -> Optional[TicketVerification]:
        return self.db.query(TicketVerification).filter(
            TicketVerification.booking_id == booking_id,
            TicketVerification.ticket_number == ticket_number
        ).first()

    def _invalid_reason(self, booking: Optional[TicketBooking], ticket_number: int) -> Optional[str]:
        if booking is None:
            return "Ticket not found"
        if booking.status != BookingStatus.CONFIRMED.value:
            return f"Ticket is not valid (booking is {booking.status})"
        if ticket_number < 1 or ticket_number > booking.quantity:
            return f"Invalid ticket number {ticket_number} for a booking of {booking.quantity}"
        return None

    def _ticket_info(self, booking: TicketBooking, ticket_number: int) -> TicketInfo:
        route = booking.route
        return TicketInfo(
            booking_id=booking.id,
            ticket_number=ticket_number,
            quantity=booking.quantity,
            time_slot=booking.time_slot,
            route_id=route.id,
            route_date=route.date,
            pickup_name=route.pickup.name if route.pickup else None,
            dropoff_name=route.dropoff.name if route.dropoff else None,
            passenger_name=booking.user.display_name if booking.user else None,
            booking_status=booking.status
        )
