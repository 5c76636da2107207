from pydantic import BaseModel, Field, validator
from typing import List, Optional, Literal
from datetime import date as DateType, datetime
from decimal import Decimal

from src.routes.schemas import TIME_SLOT_PATTERN

# Deal Models
class DealBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    deal_date: Optional[DateType] = None
    deal_time: Optional[str] = None
    city: Optional[str] = None
    image_url: Optional[str] = None
    featured: bool = False

    @validator('deal_time')
    def validate_deal_time(cls, v):
        if v is not None and not TIME_SLOT_PATTERN.match(v):
            raise ValueError('Deal time must be in HH:MM format')
        return v

class DealCreate(DealBase):
    pass

class DealUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    deal_date: Optional[DateType] = None
    deal_time: Optional[str] = None
    city: Optional[str] = None
    image_url: Optional[str] = None
    featured: Optional[bool] = None
    status: Optional[Literal["active", "inactive", "expired"]] = None

    @validator('deal_time')
    def validate_deal_time(cls, v):
        if v is not None and not TIME_SLOT_PATTERN.match(v):
            raise ValueError('Deal time must be in HH:MM format')
        return v

class Deal(DealBase):
    id: int
    status: str
    purchases: int = 0
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class DealListResponse(BaseModel):
    deals: List[Deal]
    total: int

# Purchase Models
class DealPurchaseRequest(BaseModel):
    quantity: int = Field(1, ge=1, le=20)
    payment_method: Literal["wallet", "card"] = "wallet"
    miles_amount: int = Field(0, ge=0)

class DealBooking(BaseModel):
    id: int
    user_id: int
    deal_id: int
    quantity: int
    total_price: Decimal
    status: str
    payment_method: str
    payment_reference: Optional[str] = None
    miles_redeemed: int = 0
    miles_discount: Decimal = Decimal("0")
    booking_date: Optional[datetime] = None

    class Config:
        from_attributes = True

class DealBookingDetail(DealBooking):
    deal_title: str
    deal_date: Optional[DateType] = None
    deal_time: Optional[str] = None
    location_name: Optional[str] = None

class DealPurchaseResult(BaseModel):
    booking: DealBooking
    subtotal: Decimal
    miles_discount: Decimal
    amount_charged: Decimal

# Function Endpoint Models (camelCase bodies)
class MilesPaymentRequest(BaseModel):
    user_id: Optional[int] = Field(None, alias="userId")
    deal_id: Optional[int] = Field(None, alias="dealId")
    quantity: Optional[int] = None
    miles_amount: Optional[int] = Field(None, alias="milesAmount")
    miles_value: Optional[Decimal] = Field(None, alias="milesValue")

    class Config:
        populate_by_name = True

class FreeClaimRequest(BaseModel):
    user_id: Optional[int] = Field(None, alias="userId")
    deal_id: Optional[int] = Field(None, alias="dealId")
    quantity: int = 1

    class Config:
        populate_by_name = True
