"""
Wallet & Loyalty Miles Module

Credits and miles balances, their transaction histories, the miles-to-currency
discount calculator and referral rewards.

Key Components:
- miles_service.py: miles discount arithmetic and its validation errors
- service.py: balance updates paired with transaction records
- payment_service.py: splits a purchase between miles and credits or card
- referral_service.py: referral codes and rewards
- router.py: FastAPI endpoints (imported by the application, not here,
  because registration in src.auth depends on the services below)
"""

from .miles_service import (
    MilesDiscountCalculator, MilesValidationError, InsufficientMilesError,
    PartialPaymentError, MilesNotCoveringError
)
from .service import WalletService, InsufficientCreditsError
from .payment_service import PaymentService, PaymentPlan
from .schemas import MilesQuote, WalletSummary, WalletTransactions

__all__ = [
    "MilesDiscountCalculator",
    "MilesValidationError",
    "InsufficientMilesError",
    "PartialPaymentError",
    "MilesNotCoveringError",
    "WalletService",
    "InsufficientCreditsError",
    "PaymentService",
    "PaymentPlan",
    "MilesQuote",
    "WalletSummary",
    "WalletTransactions"
]
