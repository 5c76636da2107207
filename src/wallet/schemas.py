from pydantic import BaseModel, Field, validator
from typing import List, Optional, Literal
from datetime import datetime
from decimal import Decimal

class MilesQuote(BaseModel):
    """Result of applying miles to a cart total"""
    miles_requested: int
    miles_to_redeem: int
    point_value: Decimal
    total: Decimal
    discount: Decimal
    residual: Decimal
    fully_covered: bool
    max_partial_miles: int

class MilesQuoteRequest(BaseModel):
    miles_amount: int = Field(..., gt=0)
    total: Decimal = Field(..., ge=0)

class WalletSummary(BaseModel):
    user_id: int
    credits_balance: Decimal
    miles_balance: int
    point_value: Decimal
    miles_value: Decimal

class CreditTransaction(BaseModel):
    id: int
    amount: Decimal
    type: str
    description: Optional[str] = None
    reference_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PointTransaction(BaseModel):
    id: int
    points: int
    type: str
    description: Optional[str] = None
    reference_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class WalletTransactions(BaseModel):
    credit_transactions: List[CreditTransaction]
    point_transactions: List[PointTransaction]
    total_miles_redeemed: int

class CreditAdjustment(BaseModel):
    """Admin credit adjustment; negative amounts debit"""
    user_id: int
    amount: Decimal
    type: Literal["deposit", "adjustment", "refund"] = "adjustment"
    description: Optional[str] = None

    @validator('amount')
    def validate_amount(cls, v):
        if v == 0:
            raise ValueError('Amount must be non-zero')
        return v

class PointsAdjustment(BaseModel):
    """Admin miles adjustment; negative points debit"""
    user_id: int
    points: int
    type: Literal["earn", "bonus", "adjustment", "refund"] = "adjustment"
    description: Optional[str] = None

    @validator('points')
    def validate_points(cls, v):
        if v == 0:
            raise ValueError('Points must be non-zero')
        return v

class ReferralInfo(BaseModel):
    code: str
    times_used: int
    referral_reward: int
    registration_bonus: int

class ReferrerInfo(BaseModel):
    code: str
    referrer_name: str
