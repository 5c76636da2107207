import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from src.config import settings
from src.models import SystemSetting

logger = logging.getLogger(__name__)

POINT_VALUE = "point_value"
REFERRAL_REWARD = "referral_reward"
REGISTRATION_MILES_BONUS = "registration_miles_bonus"
HIDDEN_CITIES = "hidden_cities"

DEFAULT_SETTINGS = {
    POINT_VALUE: (str(settings.DEFAULT_POINT_VALUE), "Currency value of one mile"),
    REFERRAL_REWARD: (str(settings.DEFAULT_REFERRAL_REWARD), "Miles credited to a referrer per signup"),
    REGISTRATION_MILES_BONUS: (str(settings.DEFAULT_REGISTRATION_BONUS), "Miles credited on registration"),
    HIDDEN_CITIES: ("[]", "Cities hidden from route listings"),
}

class SystemSettingsService:
    """Typed access to the key/value system_settings table"""

    def __init__(self, db: Session):
        self.db = db

    def get_raw(self, key: str) -> Optional[str]:
        row = self.db.query(SystemSetting).filter(SystemSetting.key == key).first()
        if row is not None:
            return row.value
        default = DEFAULT_SETTINGS.get(key)
        return default[0] if default else None

    def get_all(self) -> Dict[str, str]:
        values = {key: default for key, (default, _) in DEFAULT_SETTINGS.items()}
        for row in self.db.query(SystemSetting).all():
            values[row.key] = row.value
        return values

    def get_point_value(self) -> Decimal:
        raw = self.get_raw(POINT_VALUE)
        try:
            value = Decimal(raw)
        except (InvalidOperation, TypeError):
            logger.warning("Invalid point_value setting %r, using default", raw)
            return settings.DEFAULT_POINT_VALUE
        if value <= 0:
            logger.warning("Non-positive point_value setting %r, using default", raw)
            return settings.DEFAULT_POINT_VALUE
        return value

    def get_int(self, key: str, default: int = 0) -> int:
        raw = self.get_raw(key)
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning("Invalid integer setting %s=%r, using %s", key, raw, default)
            return default

    def get_referral_reward(self) -> int:
        return self.get_int(REFERRAL_REWARD, settings.DEFAULT_REFERRAL_REWARD)

    def get_registration_bonus(self) -> int:
        return self.get_int(REGISTRATION_MILES_BONUS, settings.DEFAULT_REGISTRATION_BONUS)

    def get_hidden_cities(self) -> List[str]:
        raw = self.get_raw(HIDDEN_CITIES) or "[]"
        try:
            cities = json.loads(raw)
        except json.JSONDecodeError:
            cities = [c.strip() for c in raw.split(",")]
        return [c for c in cities if c]

    def set_value(self, key: str, value: str, updated_by: Optional[int] = None) -> SystemSetting:
        """Insert or update a setting; caller commits"""
        row = self.db.query(SystemSetting).filter(SystemSetting.key == key).first()
        if row is None:
            description = DEFAULT_SETTINGS.get(key, (None, None))[1]
            row = SystemSetting(key=key, value=value, description=description, updated_by=updated_by)
            self.db.add(row)
        else:
            row.value = value
            row.updated_by = updated_by
        return row
