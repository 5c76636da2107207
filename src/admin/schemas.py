from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Literal
from datetime import date as DateType, datetime
from decimal import Decimal

# Analytics Models
class RevenueMetrics(BaseModel):
    total: Decimal
    last_30_days: Decimal

class TicketMetrics(BaseModel):
    bookings: int
    tickets: int
    tickets_last_30_days: int

class UserMetrics(BaseModel):
    total: int
    new_in_range: int
    by_role: Dict[str, int]

class RouteStatusMetrics(BaseModel):
    completed: int
    cancelled: int
    upcoming: int

class RefundMetrics(BaseModel):
    count: int
    amount: Decimal

class RoutePerformance(BaseModel):
    id: int
    route: str
    date: DateType
    capacity: int
    threshold: int
    sold: int
    revenue: Decimal
    fill_rate: float
    status: str
    is_confirmed: bool

class TimeSlotUsage(BaseModel):
    time_slot: str
    seats: int
    bookings: int

class DailyRevenue(BaseModel):
    date: DateType
    revenue: Decimal
    tickets: int

class AnalyticsReport(BaseModel):
    range_days: int
    generated_at: datetime
    revenue: RevenueMetrics
    tickets: TicketMetrics
    users: UserMetrics
    routes: RouteStatusMetrics
    refunds: RefundMetrics
    revenue_by_day: List[DailyRevenue]
    route_performance: List[RoutePerformance]
    top_routes: List[RoutePerformance]
    time_slots: List[TimeSlotUsage]

# User Management Models
class AdminUserSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    roles: List[str]
    credits_balance: Decimal
    miles_balance: int
    created_at: Optional[datetime] = None

class RoleUpdate(BaseModel):
    role: Literal["user", "admin", "promoter", "driver"]

# System Settings Models
class SystemSettingValue(BaseModel):
    key: str
    value: str
    description: Optional[str] = None

class SystemSettingUpdate(BaseModel):
    value: str = Field(..., min_length=1)
