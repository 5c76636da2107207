import logging
import secrets
import string
from typing import Optional

from sqlalchemy.orm import Session

from src.models import ReferralCode, User
from src.system_settings import SystemSettingsService
from src.wallet.schemas import ReferralInfo, ReferrerInfo
from src.wallet.service import WalletService

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8

class ReferralService:
    """Referral codes and referral rewards"""

    def __init__(self, db: Session):
        self.db = db
        self.settings = SystemSettingsService(db)

    def get_code(self, code: str) -> Optional[ReferralCode]:
        return self.db.query(ReferralCode).filter(ReferralCode.code == code.strip().upper()).first()

    def create_code_for_user(self, user_id: int) -> ReferralCode:
        existing = self.db.query(ReferralCode).filter(ReferralCode.user_id == user_id).first()
        if existing:
            return existing

        code = self._generate_code()
        while self.get_code(code) is not None:
            code = self._generate_code()

        referral = ReferralCode(user_id=user_id, code=code, times_used=0)
        self.db.add(referral)
        self.db.flush()
        return referral

    def apply_referral(self, code: str, new_user_id: int) -> ReferralCode:
        """Reward the owner of ``code`` for referring ``new_user_id``; caller commits"""
        referral = self.get_code(code)
        if referral is None:
            raise ValueError("Invalid referral code")
        if referral.user_id == new_user_id:
            raise ValueError("Referral code cannot be used by its owner")

        reward = self.settings.get_referral_reward()
        referral.times_used = (referral.times_used or 0) + 1
        if reward > 0:
            WalletService(self.db).award_miles(
                referral.user_id,
                reward,
                "referral",
                f"Referral reward for inviting user {new_user_id}",
                reference_id=str(new_user_id)
            )
        logger.info("Referral code %s used by user %s", referral.code, new_user_id)
        return referral

    def get_referral_info(self, user_id: int) -> ReferralInfo:
        referral = self.create_code_for_user(user_id)
        self.db.commit()
        return ReferralInfo(
            code=referral.code,
            times_used=referral.times_used or 0,
            referral_reward=self.settings.get_referral_reward(),
            registration_bonus=self.settings.get_registration_bonus()
        )

    def get_referrer(self, code: str) -> Optional[ReferrerInfo]:
        referral = self.get_code(code)
        if referral is None:
            return None
        user = self.db.query(User).filter(User.id == referral.user_id).first()
        if user is None:
            return None
        return ReferrerInfo(code=referral.code, referrer_name=user.display_name)

    def _generate_code(self) -> str:
        return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
