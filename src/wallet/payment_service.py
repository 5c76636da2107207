import logging
import secrets
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from src.system_settings import SystemSettingsService
from src.wallet.miles_service import MilesDiscountCalculator, to_money
from src.wallet.schemas import MilesQuote
from src.wallet.service import WalletService, InsufficientCreditsError

logger = logging.getLogger(__name__)

@dataclass
class PaymentPlan:
    """How a purchase total is split between miles and another payment method"""
    subtotal: Decimal
    miles_quote: Optional[MilesQuote]
    residual: Decimal
    payment_method: str

    @property
    def miles_to_redeem(self) -> int:
        return self.miles_quote.miles_to_redeem if self.miles_quote else 0

    @property
    def miles_discount(self) -> Decimal:
        return self.miles_quote.discount if self.miles_quote else Decimal("0.00")

class PaymentService:
    """
    Validates and collects payment for a purchase.

    ``plan`` runs every check (miles quote, miles balance, credits balance)
    without writing anything; ``execute`` performs the debits. Neither
    commits, so the caller can wrap them with its own inserts in a single
    transaction.
    """

    def __init__(self, db: Session):
        self.db = db
        self.wallet_service = WalletService(db)

    def plan(self, user_id: int, subtotal: Decimal, payment_method: str, miles_amount: int = 0) -> PaymentPlan:
        subtotal = to_money(subtotal)
        quote = None

        if miles_amount and miles_amount > 0:
            point_value = SystemSettingsService(self.db).get_point_value()
            points_wallet = self.wallet_service.get_points_wallet(user_id, lock=True)
            quote = MilesDiscountCalculator(point_value).quote(
                miles_amount, subtotal, miles_balance=points_wallet.points or 0
            )

        residual = quote.residual if quote else subtotal

        if residual <= 0:
            method = "miles" if quote else "free"
        else:
            method = payment_method

        if method == "wallet":
            credits = self.wallet_service.get_credits_wallet(user_id, lock=True)
            balance = Decimal(credits.balance or 0)
            if balance < residual:
                raise InsufficientCreditsError(balance, residual)
        elif method not in ("card", "miles", "free"):
            raise ValueError(f"Unsupported payment method '{payment_method}'")

        return PaymentPlan(subtotal=subtotal, miles_quote=quote, residual=residual, payment_method=method)

    def execute(self, plan: PaymentPlan, user_id: int, description: str, reference_id: str) -> Optional[str]:
        """Debit miles and the residual; returns the card payment reference if any"""
        payment_reference = None

        if plan.miles_to_redeem > 0:
            self.wallet_service.redeem_miles(
                user_id, plan.miles_to_redeem, f"Miles redeemed for {description}", reference_id
            )

        if plan.residual > 0:
            if plan.payment_method == "wallet":
                self.wallet_service.debit_credits(
                    user_id, plan.residual, f"Payment for {description}", reference_id
                )
            elif plan.payment_method == "card":
                payment_reference = self.process_card_payment(plan.residual, description)

        return payment_reference

    def process_card_payment(self, amount: Decimal, description: str) -> str:
        """Charge a card (simulated processor, always succeeds)"""
        transaction_id = f"TXN{secrets.token_hex(8).upper()}"
        logger.info("Card payment %s of $%s for %s", transaction_id, to_money(amount), description)
        return transaction_id

    def refund_card_payment(self, payment_reference: str, amount: Decimal) -> str:
        refund_id = f"RFD{secrets.token_hex(8).upper()}"
        logger.info("Card refund %s of $%s for payment %s", refund_id, to_money(amount), payment_reference)
        return refund_id
