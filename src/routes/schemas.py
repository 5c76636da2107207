from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict, Literal
from datetime import date as DateType, datetime
from decimal import Decimal
import re

TIME_SLOT_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

# Location Models
class LocationBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    city: Optional[str] = None

class LocationCreate(LocationBase):
    active: bool = True

class Location(LocationBase):
    id: int
    active: bool

    class Config:
        from_attributes = True

class LocationRef(BaseModel):
    """Pickup/dropoff reference embedded in route responses"""
    id: int
    name: str
    address: Optional[str] = None

    class Config:
        from_attributes = True

# Capacity Models
class SlotAvailability(BaseModel):
    """Seat availability for one departure time"""
    time_slot: str
    capacity: int
    booked: int
    remaining: int

class RouteCapacity(BaseModel):
    """Aggregate capacity status of a route"""
    slots: List[SlotAvailability]
    remaining_by_slot: Dict[str, int]
    total_capacity: int
    total_booked: int
    min_threshold: int
    is_confirmed: bool
    default_time_slot: Optional[str] = None

# Route Request Models
class RouteCreate(BaseModel):
    """Create a shuttle route"""
    date: DateType
    time_slots: List[str] = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    max_capacity_per_slot: int = Field(..., ge=1)
    min_threshold: int = Field(..., ge=1)
    pickup_location: int
    dropoff_location: int
    city: Optional[str] = None
    status: Literal["active", "cancelled", "completed"] = "active"

    @validator('time_slots')
    def validate_time_slots(cls, v):
        for slot in v:
            if not TIME_SLOT_PATTERN.match(slot):
                raise ValueError(f'Invalid time slot "{slot}", expected HH:MM')
        if len(set(v)) != len(v):
            raise ValueError('Time slots must be unique')
        return v

class RouteUpdate(BaseModel):
    """Partial route update"""
    date: Optional[DateType] = None
    time_slots: Optional[List[str]] = None
    price: Optional[Decimal] = Field(None, ge=0)
    max_capacity_per_slot: Optional[int] = Field(None, ge=1)
    min_threshold: Optional[int] = Field(None, ge=1)
    pickup_location: Optional[int] = None
    dropoff_location: Optional[int] = None
    city: Optional[str] = None

    @validator('time_slots')
    def validate_time_slots(cls, v):
        if v is None:
            return v
        if not v:
            raise ValueError('At least one time slot is required')
        for slot in v:
            if not TIME_SLOT_PATTERN.match(slot):
                raise ValueError(f'Invalid time slot "{slot}", expected HH:MM')
        return v

class RouteStatusUpdate(BaseModel):
    status: Literal["active", "cancelled", "completed"]

# Route Response Models
class RouteSummary(BaseModel):
    """Route with computed availability for listings"""
    id: int
    date: DateType
    time_slots: List[str]
    price: Decimal
    max_capacity_per_slot: int
    min_threshold: int
    tickets_sold: int
    status: str
    city: Optional[str] = None
    pickup: Optional[LocationRef] = None
    dropoff: Optional[LocationRef] = None
    capacity: RouteCapacity

class RouteDetail(RouteSummary):
    """Route detail page payload"""
    active_bookings: int
    updated_at: Optional[datetime] = None

class RouteListResponse(BaseModel):
    routes: List[RouteSummary]
    total: int
