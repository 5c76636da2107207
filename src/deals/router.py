from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from sqlalchemy.orm import Session
from typing import Callable, List, Optional

from src.database import get_db
from src.auth.dependencies import get_current_user, require_deal_manager
from src.auth.service import UserService
from src.deals.schemas import (
    Deal, DealCreate, DealUpdate, DealListResponse, DealPurchaseRequest, DealPurchaseResult,
    DealBooking, DealBookingDetail, MilesPaymentRequest, FreeClaimRequest
)
from src.deals.service import DealService

router = APIRouter()

def _error(message: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})

class FunctionRoute(APIRoute):
    """Route whose malformed request bodies are answered with the {success, error} envelope"""

    def get_route_handler(self) -> Callable:
        handler = super().get_route_handler()

        async def envelope_handler(request: Request):
            try:
                return await handler(request)
            except RequestValidationError as e:
                first = e.errors()[0]
                field = ".".join(str(part) for part in first["loc"] if part != "body")
                message = f"{field}: {first['msg']}" if field else first["msg"]
                return _error(f"Invalid request body: {message}")

        return envelope_handler

# Function endpoints keep the {success, error} response envelope
functions_router = APIRouter(route_class=FunctionRoute)

def _check_caller(current_user, user_id: int, db: Session) -> Optional[JSONResponse]:
    if current_user.id != user_id and not UserService.is_admin(db, current_user.id):
        return _error("Cannot make purchases for another user", status.HTTP_403_FORBIDDEN)
    return None

# Deal Catalogue Endpoints
@router.get("/", response_model=DealListResponse)
def list_deals(
    city: Optional[str] = Query(None, description="Filter by city"),
    category: Optional[str] = Query(None, description="Filter by category"),
    include_past: bool = Query(False, description="Include deals dated before today"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Browse active nightlife deals"""
    return DealService(db).list_deals(
        city=city, category=category, include_past=include_past, skip=skip, limit=limit
    )

@router.get("/bookings/me", response_model=List[DealBookingDetail])
def get_my_deal_bookings(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Get the current user's deal bookings, newest first"""
    return DealService(db).get_user_deal_bookings(current_user.id)

@router.get("/{deal_id}", response_model=Deal)
def get_deal(deal_id: int, db: Session = Depends(get_db)):
    """Get deal details"""
    deal = DealService(db).get_deal(deal_id)
    if not deal:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found"
        )
    return deal

@router.post("/", response_model=Deal, status_code=status.HTTP_201_CREATED)
def create_deal(
    deal: DealCreate,
    db: Session = Depends(get_db),
    manager = Depends(require_deal_manager)
):
    """Create a deal (admin or promoter)"""
    return DealService(db).create_deal(deal, created_by=manager.id)

@router.put("/{deal_id}", response_model=Deal)
def update_deal(
    deal_id: int,
    deal_update: DealUpdate,
    db: Session = Depends(get_db),
    manager = Depends(require_deal_manager)
):
    """Update a deal (admin, or the promoter who created it)"""
    try:
        deal = DealService(db).update_deal(
            deal_id, deal_update, user_id=manager.id, is_admin=UserService.is_admin(db, manager.id)
        )
    except PermissionError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e)
        )
    if not deal:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found"
        )
    return deal

# Deal Purchase Endpoints
@router.post("/{deal_id}/purchase", response_model=DealPurchaseResult, status_code=status.HTTP_201_CREATED)
def purchase_deal(
    deal_id: int,
    purchase: DealPurchaseRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Buy a deal with wallet credits or card, optionally applying miles"""
    try:
        return DealService(db).purchase_deal(current_user.id, deal_id, purchase)
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
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to purchase deal: {str(e)}"
        )

@functions_router.post("/process-deal-miles-payment")
def process_deal_miles_payment(
    payment: MilesPaymentRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Pay for a deal entirely with miles"""
    if not payment.user_id or not payment.deal_id or not payment.quantity or not payment.miles_amount:
        return _error("Missing required fields")

    forbidden = _check_caller(current_user, payment.user_id, db)
    if forbidden:
        return forbidden

    try:
        DealService(db).process_miles_payment(
            user_id=payment.user_id,
            deal_id=payment.deal_id,
            quantity=payment.quantity,
            miles_amount=payment.miles_amount,
            miles_value=payment.miles_value
        )
    except (ValueError, LookupError) as e:
        return _error(str(e))

    return {"success": True, "message": "Deal purchased successfully with miles"}

@functions_router.post("/process-free-deal-claim")
def process_free_deal_claim(
    claim: FreeClaimRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Claim a free deal"""
    if not claim.user_id or not claim.deal_id:
        return _error("Missing required fields: userId, dealId")

    forbidden = _check_caller(current_user, claim.user_id, db)
    if forbidden:
        return forbidden

    try:
        booking = DealService(db).process_free_claim(claim.user_id, claim.deal_id, claim.quantity)
    except LookupError as e:
        return _error(str(e), status.HTTP_404_NOT_FOUND)
    except ValueError as e:
        return _error(str(e))

    return {
        "success": True,
        "booking": jsonable_encoder(DealBooking.from_orm(booking)),
        "message": "Free deal claimed successfully!"
    }
