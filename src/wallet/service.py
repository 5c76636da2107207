import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from src.models import WalletCredits, WalletPoints, CreditTransaction, PointTransaction, User
from src.system_settings import SystemSettingsService
from src.wallet.miles_service import InsufficientMilesError, to_money
from src.wallet.schemas import (
    WalletSummary, WalletTransactions, CreditAdjustment, PointsAdjustment
)

logger = logging.getLogger(__name__)

class InsufficientCreditsError(ValueError):
    def __init__(self, available: Decimal, required: Decimal):
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient credits. You need ${required:.2f} but have ${available:.2f}"
        )

class WalletService:
    """
    Credits and miles balances.

    Balance changes always write a transaction row next to the balance update.
    Methods below do not commit; the caller owns the transaction so a purchase
    can debit a wallet and insert its booking atomically.
    """

    def __init__(self, db: Session):
        self.db = db

    def ensure_wallets(self, user_id: int):
        credits = self.db.query(WalletCredits).filter(WalletCredits.user_id == user_id).first()
        if credits is None:
            credits = WalletCredits(user_id=user_id, balance=Decimal("0"))
            self.db.add(credits)
        points = self.db.query(WalletPoints).filter(WalletPoints.user_id == user_id).first()
        if points is None:
            points = WalletPoints(user_id=user_id, points=0)
            self.db.add(points)
        self.db.flush()
        return credits, points

    def get_credits_wallet(self, user_id: int, lock: bool = False) -> WalletCredits:
        query = self.db.query(WalletCredits).filter(WalletCredits.user_id == user_id)
        if lock:
            query = query.with_for_update()
        wallet = query.first()
        if wallet is None:
            wallet, _ = self.ensure_wallets(user_id)
        return wallet

    def get_points_wallet(self, user_id: int, lock: bool = False) -> WalletPoints:
        query = self.db.query(WalletPoints).filter(WalletPoints.user_id == user_id)
        if lock:
            query = query.with_for_update()
        wallet = query.first()
        if wallet is None:
            _, wallet = self.ensure_wallets(user_id)
        return wallet

    def get_summary(self, user_id: int) -> WalletSummary:
        credits = self.get_credits_wallet(user_id)
        points = self.get_points_wallet(user_id)
        point_value = SystemSettingsService(self.db).get_point_value()
        return WalletSummary(
            user_id=user_id,
            credits_balance=to_money(credits.balance or 0),
            miles_balance=points.points or 0,
            point_value=point_value,
            miles_value=to_money(point_value * (points.points or 0))
        )

    # Credits
    def debit_credits(
        self,
        user_id: int,
        amount: Decimal,
        description: str,
        reference_id: Optional[str] = None,
        transaction_type: str = "purchase"
    ) -> CreditTransaction:
        wallet = self.get_credits_wallet(user_id, lock=True)
        balance = Decimal(wallet.balance or 0)
        amount = to_money(amount)
        if balance < amount:
            raise InsufficientCreditsError(balance, amount)

        wallet.balance = balance - amount
        transaction = CreditTransaction(
            user_id=user_id,
            amount=-amount,
            type=transaction_type,
            description=description,
            reference_id=reference_id
        )
        self.db.add(transaction)
        logger.info("Debited $%s credits from user %s (%s)", amount, user_id, description)
        return transaction

    def add_credits(
        self,
        user_id: int,
        amount: Decimal,
        description: str,
        reference_id: Optional[str] = None,
        transaction_type: str = "deposit"
    ) -> CreditTransaction:
        wallet = self.get_credits_wallet(user_id, lock=True)
        amount = to_money(amount)
        wallet.balance = Decimal(wallet.balance or 0) + amount
        transaction = CreditTransaction(
            user_id=user_id,
            amount=amount,
            type=transaction_type,
            description=description,
            reference_id=reference_id
        )
        self.db.add(transaction)
        logger.info("Added $%s credits to user %s (%s)", amount, user_id, description)
        return transaction

    # Miles
    def redeem_miles(
        self,
        user_id: int,
        miles: int,
        description: str,
        reference_id: Optional[str] = None
    ) -> PointTransaction:
        wallet = self.get_points_wallet(user_id, lock=True)
        available = wallet.points or 0
        if available < miles:
            raise InsufficientMilesError(available, miles)

        wallet.points = available - miles
        transaction = PointTransaction(
            user_id=user_id,
            points=-miles,
            type="redeem",
            description=description,
            reference_id=reference_id
        )
        self.db.add(transaction)
        logger.info("Redeemed %s miles for user %s (%s)", miles, user_id, description)
        return transaction

    def award_miles(
        self,
        user_id: int,
        miles: int,
        transaction_type: str,
        description: str,
        reference_id: Optional[str] = None
    ) -> PointTransaction:
        wallet = self.get_points_wallet(user_id, lock=True)
        wallet.points = (wallet.points or 0) + miles
        transaction = PointTransaction(
            user_id=user_id,
            points=miles,
            type=transaction_type,
            description=description,
            reference_id=reference_id
        )
        self.db.add(transaction)
        logger.info("Awarded %s miles to user %s (%s)", miles, user_id, transaction_type)
        return transaction

    def get_transactions(self, user_id: int, limit: int = 100) -> WalletTransactions:
        credit_rows = self.db.query(CreditTransaction).filter(
            CreditTransaction.user_id == user_id
        ).order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc()).limit(limit).all()

        point_rows = self.db.query(PointTransaction).filter(
            PointTransaction.user_id == user_id
        ).order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc()).limit(limit).all()

        redeemed = sum(-t.points for t in point_rows if t.type == "redeem")

        return WalletTransactions(
            credit_transactions=credit_rows,
            point_transactions=point_rows,
            total_miles_redeemed=redeemed
        )

    # Admin adjustments
    def adjust_credits(self, adjustment: CreditAdjustment) -> WalletSummary:
        self._require_user(adjustment.user_id)
        description = adjustment.description or "Admin credit adjustment"
        try:
            if adjustment.amount < 0:
                self.debit_credits(
                    adjustment.user_id, -adjustment.amount, description,
                    transaction_type=adjustment.type
                )
            else:
                self.add_credits(
                    adjustment.user_id, adjustment.amount, description,
                    transaction_type=adjustment.type
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return self.get_summary(adjustment.user_id)

    def adjust_points(self, adjustment: PointsAdjustment) -> WalletSummary:
        self._require_user(adjustment.user_id)
        description = adjustment.description or "Admin miles adjustment"
        try:
            if adjustment.points < 0:
                wallet = self.get_points_wallet(adjustment.user_id, lock=True)
                available = wallet.points or 0
                if available < -adjustment.points:
                    raise InsufficientMilesError(available, -adjustment.points)
                wallet.points = available + adjustment.points
                self.db.add(PointTransaction(
                    user_id=adjustment.user_id,
                    points=adjustment.points,
                    type=adjustment.type,
                    description=description
                ))
            else:
                self.award_miles(adjustment.user_id, adjustment.points, adjustment.type, description)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return self.get_summary(adjustment.user_id)

    def _require_user(self, user_id: int):
        if self.db.query(User.id).filter(User.id == user_id).first() is None:
            raise LookupError("User not found")
