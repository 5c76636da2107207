from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import date as DateType, datetime
from decimal import Decimal
from enum import Enum

class BookingStatus(str, Enum):
    """Booking status enumeration"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    COMPLETED = "completed"

class PaymentMethod(str, Enum):
    """How the charged amount was paid"""
    WALLET = "wallet"
    CARD = "card"
    MILES = "miles"
    FREE = "free"

class BookingFlowState(str, Enum):
    """Progress of a booking submission"""
    IDLE = "idle"
    CHECKING = "checking"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"

# Booking Request Models
class TicketBookingRequest(BaseModel):
    """Request to book seats on a route time slot"""
    route_id: int
    time_slot: str
    quantity: int = Field(1, ge=1, le=20)
    payment_method: Literal["wallet", "card"] = "wallet"
    miles_amount: int = Field(0, ge=0)

# Booking Response Models
class TicketBooking(BaseModel):
    id: int
    user_id: int
    route_id: int
    time_slot: str
    quantity: int
    total_price: Decimal
    status: BookingStatus
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    miles_redeemed: int = 0
    miles_discount: Decimal = Decimal("0")
    booking_date: Optional[datetime] = None

    class Config:
        from_attributes = True

class BookingRouteInfo(BaseModel):
    """Route fields shown alongside a ticket"""
    id: int
    date: DateType
    price: Decimal
    status: str
    city: Optional[str] = None
    pickup_name: Optional[str] = None
    dropoff_name: Optional[str] = None
    is_confirmed: bool
    total_booked: int
    min_threshold: int

class TicketBookingDetail(TicketBooking):
    route: BookingRouteInfo

class BookingResult(BaseModel):
    """Outcome of a booking submission"""
    state: BookingFlowState
    history: List[BookingFlowState]
    booking: Optional[TicketBooking] = None
    subtotal: Decimal = Decimal("0")
    miles_discount: Decimal = Decimal("0")
    amount_charged: Decimal = Decimal("0")
    error: Optional[str] = None

class RefundResult(BaseModel):
    booking_id: int
    status: BookingStatus
    credits_refunded: Decimal = Decimal("0")
    card_refunded: Decimal = Decimal("0")
    miles_refunded: int = 0
    refund_reference: Optional[str] = None

# Ticket Verification Models
class TicketInfo(BaseModel):
    booking_id: int
    ticket_number: int
    quantity: int
    time_slot: str
    route_id: int
    route_date: DateType
    pickup_name: Optional[str] = None
    dropoff_name: Optional[str] = None
    passenger_name: Optional[str] = None
    booking_status: BookingStatus

class TicketVerificationResponse(BaseModel):
    success: bool
    status: Literal["valid", "verified", "invalid"]
    is_verified: bool = False
    ticket: Optional[TicketInfo] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[int] = None
    error: Optional[str] = None

class TicketQRCode(BaseModel):
    booking_id: int
    ticket_number: int
    verification_url: str
    qr_code_base64: str
    content_type: str = "image/png"
