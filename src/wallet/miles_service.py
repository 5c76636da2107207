from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP
from typing import Optional

from src.config import settings
from src.wallet.schemas import MilesQuote

# Tolerance for treating a discount as exactly covering the total
FULL_PAYMENT_EPSILON = Decimal("0.001")
CENTS = Decimal("0.01")

class MilesValidationError(ValueError):
    """Requested miles cannot be applied"""

class InsufficientMilesError(MilesValidationError):
    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(f"You only have {available} miles available")

class PartialPaymentError(MilesValidationError):
    """Miles leave a residual below the minimum payable by another method"""

    def __init__(self, max_allowed_miles: int, minimum_residual: Decimal):
        self.max_allowed_miles = max_allowed_miles
        self.minimum_residual = minimum_residual
        super().__init__(
            f"For partial payment, please use {max_allowed_miles} miles or less to keep the "
            f"remaining payment at least ${minimum_residual:.2f}, or use enough miles to cover "
            f"the full amount."
        )

class MilesNotCoveringError(MilesValidationError):
    def __init__(self, discount: Decimal, total: Decimal):
        self.discount = discount
        self.total = total
        super().__init__(
            f"Miles discount ({discount:.2f}) doesn't cover total price ({total:.2f})"
        )

def to_money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)

def miles_needed_for(total: Decimal, point_value: Decimal) -> int:
    """Fewest whole miles whose value covers the total"""
    if total <= 0:
        return 0
    return int((Decimal(total) / point_value).to_integral_value(rounding=ROUND_CEILING))

def max_partial_miles(total: Decimal, point_value: Decimal, minimum_residual: Decimal) -> int:
    """floor((total - minimum_residual) / point_value), never negative"""
    allowed_discount = Decimal(total) - minimum_residual
    if allowed_discount <= 0:
        return 0
    return int((allowed_discount / point_value).to_integral_value(rounding=ROUND_FLOOR))

class MilesDiscountCalculator:
    """
    Converts loyalty miles into a currency discount on a cart total.

    The discount never exceeds the total. When it does not cover the total,
    what is left must be at least ``minimum_residual`` so it can still be paid
    by another method; otherwise the request is rejected with the largest
    partial amount that would be accepted.
    """

    def __init__(self, point_value: Decimal, minimum_residual: Optional[Decimal] = None):
        if point_value is None or Decimal(point_value) <= 0:
            raise ValueError("Miles value must be a positive amount")
        self.point_value = Decimal(point_value)
        self.minimum_residual = (
            Decimal(minimum_residual) if minimum_residual is not None else settings.MIN_CARD_PAYMENT
        )

    def quote(self, miles_amount: int, total: Decimal, miles_balance: Optional[int] = None) -> MilesQuote:
        """Validate a miles request against a total and return the resulting split"""
        total = Decimal(total)

        if miles_amount is None or miles_amount <= 0:
            raise MilesValidationError("Miles amount must be greater than zero")

        if miles_balance is not None and miles_balance < miles_amount:
            raise InsufficientMilesError(miles_balance, miles_amount)

        raw_discount = self.point_value * miles_amount

        if raw_discount >= total or abs(total - raw_discount) < FULL_PAYMENT_EPSILON:
            return MilesQuote(
                miles_requested=miles_amount,
                miles_to_redeem=min(miles_amount, miles_needed_for(total, self.point_value)),
                point_value=self.point_value,
                total=to_money(total),
                discount=to_money(total),
                residual=Decimal("0.00"),
                fully_covered=True,
                max_partial_miles=max_partial_miles(total, self.point_value, self.minimum_residual)
            )

        # discount + residual == total, in cents
        discount = to_money(raw_discount)
        residual = to_money(total) - discount
        if residual < self.minimum_residual:
            raise PartialPaymentError(
                max_partial_miles(total, self.point_value, self.minimum_residual),
                self.minimum_residual
            )

        return MilesQuote(
            miles_requested=miles_amount,
            miles_to_redeem=miles_amount,
            point_value=self.point_value,
            total=to_money(total),
            discount=discount,
            residual=residual,
            fully_covered=False,
            max_partial_miles=max_partial_miles(total, self.point_value, self.minimum_residual)
        )

    def require_full_coverage(self, miles_amount: int, total: Decimal, miles_balance: Optional[int] = None) -> MilesQuote:
        """Quote for a miles-only purchase; the discount must cover the whole total"""
        total = Decimal(total)
        raw_discount = self.point_value * (miles_amount or 0)
        if raw_discount < total and abs(total - raw_discount) >= FULL_PAYMENT_EPSILON:
            raise MilesNotCoveringError(raw_discount, total)
        if miles_balance is not None and miles_balance < miles_amount:
            raise InsufficientMilesError(miles_balance, miles_amount)
        return self.quote(miles_amount, total, miles_balance)
