import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from src.models import Deal, DealBooking
from src.deals.schemas import (
    DealCreate, DealUpdate, DealListResponse, DealPurchaseRequest, DealPurchaseResult,
    DealBooking as DealBookingSchema, DealBookingDetail
)
from src.system_settings import SystemSettingsService
from src.wallet.miles_service import (
    MilesDiscountCalculator, MilesValidationError, to_money
)
from src.wallet.payment_service import PaymentService
from src.wallet.service import WalletService
from src.utils.timezone import today

logger = logging.getLogger(__name__)

class DealNotFoundError(LookupError):
    def __init__(self):
        super().__init__("Deal not found")

class DealNotFreeError(ValueError):
    def __init__(self):
        super().__init__("This deal is not free")

class InsufficientMilesBalanceError(MilesValidationError):
    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(f"Insufficient miles balance ({available} available, {required} required)")

class DealService:
    """Nightlife deals catalogue and deal purchases"""

    def __init__(self, db: Session):
        self.db = db
        self.wallet_service = WalletService(db)
        self.payment_service = PaymentService(db)

    # Catalogue
    def list_deals(
        self,
        city: Optional[str] = None,
        category: Optional[str] = None,
        include_past: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> DealListResponse:
        """Active deals, featured first then by date"""
        query = self.db.query(Deal).filter(Deal.status == "active")

        if city:
            query = query.filter(Deal.city == city)
        if category:
            query = query.filter(Deal.category == category)
        if not include_past:
            query = query.filter((Deal.deal_date.is_(None)) | (Deal.deal_date >= today()))

        hidden_cities = SystemSettingsService(self.db).get_hidden_cities()
        if hidden_cities and not city:
            query = query.filter((Deal.city.is_(None)) | (Deal.city.notin_(hidden_cities)))

        total = query.count()
        deals = query.order_by(
            Deal.featured.desc(), Deal.deal_date.asc(), Deal.created_at.desc(), Deal.id.desc()
        ).offset(skip).limit(limit).all()

        return DealListResponse(deals=deals, total=total)

    def get_deal(self, deal_id: int, lock: bool = False) -> Optional[Deal]:
        query = self.db.query(Deal).filter(Deal.id == deal_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def create_deal(self, deal_data: DealCreate, created_by: int) -> Deal:
        db_deal = Deal(**deal_data.dict(), status="active", purchases=0, created_by=created_by)
        self.db.add(db_deal)
        self.db.commit()
        self.db.refresh(db_deal)
        logger.info("Deal %s created by user %s", db_deal.id, created_by)
        return db_deal

    def update_deal(self, deal_id: int, deal_update: DealUpdate, user_id: int, is_admin: bool) -> Optional[Deal]:
        """Update a deal; promoters may only edit deals they created"""
        db_deal = self.get_deal(deal_id)
        if not db_deal:
            return None
        if not is_admin and db_deal.created_by != user_id:
            raise PermissionError("You can only edit deals you created")

        for field, value in deal_update.dict(exclude_unset=True).items():
            setattr(db_deal, field, value)

        self.db.commit()
        self.db.refresh(db_deal)
        logger.info("Deal %s updated by user %s", deal_id, user_id)
        return db_deal

    # Purchases
    def purchase_deal(self, user_id: int, deal_id: int, request: DealPurchaseRequest) -> DealPurchaseResult:
        """Buy a deal with wallet credits or card, optionally discounted by miles"""
        try:
            deal = self._get_active_deal(deal_id)
            subtotal = to_money(Decimal(deal.price) * request.quantity)
            plan = self.payment_service.plan(
                user_id, subtotal, request.payment_method, request.miles_amount
            )

            booking = DealBooking(
                user_id=user_id,
                deal_id=deal.id,
                quantity=request.quantity,
                total_price=plan.residual,
                status="confirmed",
                payment_method=plan.payment_method,
                miles_redeemed=plan.miles_to_redeem,
                miles_discount=plan.miles_discount
            )
            self.db.add(booking)
            self.db.flush()

            booking.payment_reference = self.payment_service.execute(
                plan, user_id, f"deal purchase: {deal.title}", str(booking.id)
            )
            deal.purchases = (deal.purchases or 0) + request.quantity

            self.db.commit()
            self.db.refresh(booking)
        except (ValueError, LookupError) as e:
            self.db.rollback()
            logger.warning("Deal purchase rejected for user %s on deal %s: %s", user_id, deal_id, e)
            raise
        except Exception:
            self.db.rollback()
            logger.error("Deal purchase rolled back for user %s on deal %s", user_id, deal_id, exc_info=True)
            raise

        logger.info("Deal booking %s confirmed (%s)", booking.id, plan.payment_method)
        return DealPurchaseResult(
            booking=DealBookingSchema.from_orm(booking),
            subtotal=subtotal,
            miles_discount=plan.miles_discount,
            amount_charged=plan.residual
        )

    def process_miles_payment(
        self,
        user_id: int,
        deal_id: int,
        quantity: int,
        miles_amount: int,
        miles_value: Optional[Decimal] = None
    ) -> DealBooking:
        """
        Buy a deal entirely with miles.

        The configured miles value is authoritative; a client-supplied value
        must match it. Only the miles needed to cover the total are debited.
        """
        try:
            if quantity < 1 or miles_amount < 1:
                raise ValueError("Quantity and miles amount must be positive")

            deal = self.get_deal(deal_id, lock=True)
            if deal is None:
                raise ValueError("Deal not found")

            point_value = SystemSettingsService(self.db).get_point_value()
            if miles_value is not None and Decimal(str(miles_value)) != point_value:
                raise ValueError(f"Miles value {miles_value} does not match the current rate {point_value}")

            total = to_money(Decimal(deal.price) * quantity)
            quote = MilesDiscountCalculator(point_value).require_full_coverage(miles_amount, total)

            points_wallet = self.wallet_service.get_points_wallet(user_id, lock=True)
            available = points_wallet.points or 0
            if available < miles_amount:
                raise InsufficientMilesBalanceError(available, miles_amount)

            booking = DealBooking(
                user_id=user_id,
                deal_id=deal.id,
                quantity=quantity,
                total_price=Decimal("0.00"),
                status="confirmed",
                payment_method="miles",
                miles_redeemed=quote.miles_to_redeem,
                miles_discount=quote.discount
            )
            self.db.add(booking)
            self.db.flush()

            if quote.miles_to_redeem > 0:
                self.wallet_service.redeem_miles(
                    user_id, quote.miles_to_redeem,
                    f"Miles redeemed for deal purchase: {deal.title}", str(booking.id)
                )
            deal.purchases = (deal.purchases or 0) + quantity

            self.db.commit()
            self.db.refresh(booking)
        except (ValueError, LookupError) as e:
            self.db.rollback()
            logger.warning("Miles payment rejected for user %s on deal %s: %s", user_id, deal_id, e)
            raise
        except Exception:
            self.db.rollback()
            logger.error("Miles payment rolled back for user %s on deal %s", user_id, deal_id, exc_info=True)
            raise

        logger.info("Deal booking %s paid with %s miles", booking.id, booking.miles_redeemed)
        return booking

    def process_free_claim(self, user_id: int, deal_id: int, quantity: int = 1) -> DealBooking:
        """Claim a zero-priced deal"""
        try:
            if quantity < 1:
                raise ValueError("Quantity must be at least 1")

            deal = self.get_deal(deal_id, lock=True)
            if deal is None:
                raise DealNotFoundError()
            if Decimal(deal.price) != 0:
                raise DealNotFreeError()

            booking = DealBooking(
                user_id=user_id,
                deal_id=deal.id,
                quantity=quantity,
                total_price=Decimal("0.00"),
                status="confirmed",
                payment_method="free"
            )
            self.db.add(booking)
            deal.purchases = (deal.purchases or 0) + quantity

            self.db.commit()
            self.db.refresh(booking)
        except (ValueError, LookupError) as e:
            self.db.rollback()
            logger.warning("Free claim rejected for user %s on deal %s: %s", user_id, deal_id, e)
            raise
        except Exception:
            self.db.rollback()
            logger.error("Free claim rolled back for user %s on deal %s", user_id, deal_id, exc_info=True)
            raise

        logger.info("Free deal %s claimed by user %s (booking %s)", deal_id, user_id, booking.id)
        return booking

    def get_user_deal_bookings(self, user_id: int) -> List[DealBookingDetail]:
        bookings = self.db.query(DealBooking).options(joinedload(DealBooking.deal)).filter(
            DealBooking.user_id == user_id,
            DealBooking.status != "refunded"
        ).order_by(DealBooking.booking_date.desc(), DealBooking.id.desc()).all()

        return [
            DealBookingDetail(
                **DealBookingSchema.from_orm(booking).dict(),
                deal_title=booking.deal.title,
                deal_date=booking.deal.deal_date,
                deal_time=booking.deal.deal_time,
                location_name=booking.deal.location_name
            )
            for booking in bookings
        ]

    def _get_active_deal(self, deal_id: int) -> Deal:
        deal = self.get_deal(deal_id, lock=True)
        if deal is None:
            raise DealNotFoundError()
        if deal.status != "active":
            raise ValueError("This deal is no longer available")
        return deal
