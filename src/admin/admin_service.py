import json
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from src.models import User, UserHasRole
from src.admin.schemas import AdminUserSummary, SystemSettingValue
from src.auth.service import UserService
from src.system_settings import (
    SystemSettingsService, DEFAULT_SETTINGS, POINT_VALUE, REFERRAL_REWARD,
    REGISTRATION_MILES_BONUS, HIDDEN_CITIES
)
from src.wallet.miles_service import to_money

logger = logging.getLogger(__name__)

class AdminManagementService:
    """User administration and system settings"""

    def __init__(self, db: Session):
        self.db = db
        self.settings = SystemSettingsService(db)

    # User management
    def list_users(self, search: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[AdminUserSummary]:
        query = self.db.query(User).options(
            joinedload(User.user_roles).joinedload(UserHasRole.role),
            joinedload(User.wallet_credits),
            joinedload(User.wallet_points)
        )
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                User.name.ilike(pattern) | User.email.ilike(pattern) | User.phone.ilike(pattern)
            )

        users = query.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit).all()

        return [
            AdminUserSummary(
                id=user.id,
                name=user.display_name,
                email=user.email,
                phone=user.phone,
                roles=[ur.role.name for ur in user.user_roles],
                credits_balance=to_money(user.wallet_credits.balance if user.wallet_credits else 0),
                miles_balance=user.wallet_points.points if user.wallet_points else 0,
                created_at=user.created_at
            )
            for user in users
        ]

    def set_user_role(self, user_id: int, role: str, changed_by: int) -> List[str]:
        if user_id == changed_by and role != "admin":
            raise ValueError("You cannot remove your own admin role")
        roles = UserService.set_user_role(self.db, user_id, role)
        logger.info("User %s changed role of user %s to %s", changed_by, user_id, role)
        return roles

    # System settings
    def get_settings(self) -> List[SystemSettingValue]:
        values = self.settings.get_all()
        return [
            SystemSettingValue(
                key=key,
                value=value,
                description=DEFAULT_SETTINGS.get(key, (None, None))[1]
            )
            for key, value in sorted(values.items())
        ]

    def update_setting(self, key: str, value: str, updated_by: int) -> SystemSettingValue:
        """Validate and store a setting value"""
        if key not in DEFAULT_SETTINGS:
            raise LookupError(f"Unknown setting '{key}'")

        value = self._validate(key, value.strip())
        row = self.settings.set_value(key, value, updated_by=updated_by)
        self.db.commit()
        self.db.refresh(row)

        logger.info("Setting %s set to %r by user %s", key, value, updated_by)
        return SystemSettingValue(key=row.key, value=row.value, description=row.description)

    def _validate(self, key: str, value: str) -> str:
        if key == POINT_VALUE:
            try:
                number = Decimal(value)
            except InvalidOperation:
                raise ValueError("Miles value must be a number")
            if not number.is_finite() or number <= 0:
                raise ValueError("Miles value must be greater than zero")
            return str(number)

        if key in (REFERRAL_REWARD, REGISTRATION_MILES_BONUS):
            try:
                number = int(value)
            except ValueError:
                raise ValueError(f"{key} must be a whole number of miles")
            if number < 0:
                raise ValueError(f"{key} cannot be negative")
            return str(number)

        if key == HIDDEN_CITIES:
            try:
                cities = json.loads(value)
            except json.JSONDecodeError:
                cities = [c.strip() for c in value.split(",")]
            if not isinstance(cities, list) or not all(isinstance(c, str) for c in cities):
                raise ValueError("hidden_cities must be a list of city names")
            return json.dumps([c for c in cities if c])

        return value
