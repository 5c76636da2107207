from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from src.database import get_db
from src.auth.dependencies import get_current_user, require_admin
from src.system_settings import SystemSettingsService
from src.wallet.schemas import (
    WalletSummary, WalletTransactions, MilesQuote, MilesQuoteRequest,
    CreditAdjustment, PointsAdjustment, ReferralInfo, ReferrerInfo
)
from src.wallet.miles_service import MilesDiscountCalculator
from src.wallet.referral_service import ReferralService
from src.wallet.service import WalletService

router = APIRouter()
referrals_router = APIRouter()

# Wallet Endpoints
@router.get("/", response_model=WalletSummary)
def get_wallet(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Credits balance, miles balance and what the miles are worth"""
    summary = WalletService(db).get_summary(current_user.id)
    db.commit()
    return summary

@router.get("/transactions", response_model=WalletTransactions)
def get_transactions(
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Credit and miles histories, newest first"""
    return WalletService(db).get_transactions(current_user.id, limit=limit)

@router.post("/miles/quote", response_model=MilesQuote)
def quote_miles(
    quote_request: MilesQuoteRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Preview the discount a number of miles buys on a total"""
    point_value = SystemSettingsService(db).get_point_value()
    balance = WalletService(db).get_points_wallet(current_user.id).points or 0
    try:
        return MilesDiscountCalculator(point_value).quote(
            quote_request.miles_amount, quote_request.total, miles_balance=balance
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

# Admin Adjustment Endpoints
@router.post("/credits", response_model=WalletSummary)
def adjust_credits(
    adjustment: CreditAdjustment,
    db: Session = Depends(get_db),
    admin = Depends(require_admin)
):
    """Add or remove credits for a user (admin)"""
    try:
        return WalletService(db).adjust_credits(adjustment)
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

@router.post("/points", response_model=WalletSummary)
def adjust_points(
    adjustment: PointsAdjustment,
    db: Session = Depends(get_db),
    admin = Depends(require_admin)
):
    """Add or remove miles for a user (admin)"""
    try:
        return WalletService(db).adjust_points(adjustment)
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

# Referral Endpoints
@router.get("/referral", response_model=ReferralInfo)
def get_referral_info(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """The current user's referral code and reward amounts"""
    return ReferralService(db).get_referral_info(current_user.id)

@referrals_router.get("/{code}", response_model=ReferrerInfo)
def get_referrer(code: str, db: Session = Depends(get_db)):
    """Who a referral code belongs to (shown on the sign-up form)"""
    referrer = ReferralService(db).get_referrer(code)
    if not referrer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Referral code not found"
        )
    return referrer
