"""
Nightlife Deals Module

Deals offered by partner venues (clubs, bars, events) alongside the shuttle
routes:

- Deal catalogue filtered by city and category, featured deals first
- Deal management for admins and promoters
- Purchases paid by wallet credits or card with an optional miles discount
- Miles-only payments and free-deal claims under /functions/v1, answering
  with a {success, error} envelope

Key Components:
- service.py: catalogue queries and transactional purchases
- router.py: the /deals API and the function endpoints
- schemas.py: Pydantic request/response models
"""

from .router import router, functions_router
from .service import DealService, DealNotFoundError, DealNotFreeError, InsufficientMilesBalanceError
from .schemas import (
    Deal, DealCreate, DealUpdate, DealListResponse, DealPurchaseRequest,
    DealPurchaseResult, DealBooking, DealBookingDetail
)

__all__ = [
    "router",
    "functions_router",
    "DealService",
    "DealNotFoundError",
    "DealNotFreeError",
    "InsufficientMilesBalanceError",
    "Deal",
    "DealCreate",
    "DealUpdate",
    "DealListResponse",
    "DealPurchaseRequest",
    "DealPurchaseResult",
    "DealBooking",
    "DealBookingDetail"
]
