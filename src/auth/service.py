import logging
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from src.models import User, Role, UserHasRole, ReferralCode
from src.auth.schemas import UserCreate, UserUpdate, LoginRequest, UserProfile
from src.auth.utils import get_password_hash, verify_password
from src.system_settings import SystemSettingsService
from src.wallet.referral_service import ReferralService
from src.wallet.service import WalletService
from typing import Optional, List

logger = logging.getLogger(__name__)

ROLE_NAMES = ("user", "admin", "promoter", "driver")
ADMIN_ROLES = ("admin",)

class UserService:
    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email"""
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_or_create_role(db: Session, name: str) -> Role:
        role = db.query(Role).filter(Role.name == name).first()
        if role is None:
            role = Role(name=name)
            db.add(role)
            db.flush()
        return role

    @staticmethod
    def create_user(db: Session, user: UserCreate) -> User:
        """
        Register a user.

        Besides the account this creates both wallets, credits the registration
        miles bonus, issues a personal referral code and, when the signup came
        through someone's referral code, rewards that referrer. Everything is
        committed together.
        """
        hashed_password = get_password_hash(user.password)
        db_user = User(
            name=user.name,
            first_name=user.first_name,
            last_name=user.last_name,
            phone=user.phone,
            email=user.email,
            password=hashed_password
        )

        try:
            db.add(db_user)
            db.flush()

            # Assign default 'user' role
            user_role = UserService.get_or_create_role(db, "user")
            db.add(UserHasRole(user_id=db_user.id, role_id=user_role.id))

            wallet_service = WalletService(db)
            wallet_service.ensure_wallets(db_user.id)

            bonus = SystemSettingsService(db).get_registration_bonus()
            if bonus > 0:
                wallet_service.award_miles(
                    db_user.id, bonus, "bonus", "Registration miles bonus"
                )

            referral_service = ReferralService(db)
            referral_service.create_code_for_user(db_user.id)
            if user.referral_code:
                referral_service.apply_referral(user.referral_code, db_user.id)

            db.commit()
            db.refresh(db_user)
            logger.info("Registered user %s (%s)", db_user.id, db_user.email)
            return db_user

        except IntegrityError:
            db.rollback()
            raise ValueError("Email already registered")
        except ValueError:
            db.rollback()
            raise

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
        """Authenticate user with email and password"""
        user = UserService.get_user_by_email(db, email)
        if not user:
            return None
        if not verify_password(password, user.password):
            return None
        return user

    @staticmethod
    def authenticate(db: Session, login_data: LoginRequest) -> Optional[UserProfile]:
        user = UserService.authenticate_user(db, login_data.email, login_data.password)
        if not user:
            logger.warning("Failed login for %s", login_data.email)
            return None
        return UserService.get_profile(db, user.id)

    @staticmethod
    def update_user(db: Session, user_id: int, user_update: UserUpdate) -> Optional[User]:
        """Update user information"""
        db_user = UserService.get_user_by_id(db, user_id)
        if not db_user:
            return None

        update_data = user_update.dict(exclude_unset=True)

        # Hash password if it's being updated
        if "password" in update_data:
            update_data["password"] = get_password_hash(update_data["password"])

        for field, value in update_data.items():
            setattr(db_user, field, value)

        try:
            db.commit()
            db.refresh(db_user)
            return db_user
        except IntegrityError:
            db.rollback()
            raise ValueError("Email already exists")

    @staticmethod
    def get_user_roles(db: Session, user_id: int) -> List[str]:
        """Get user's roles"""
        rows = db.query(Role.name).join(UserHasRole, UserHasRole.role_id == Role.id).filter(
            UserHasRole.user_id == user_id
        ).all()
        return [name for (name,) in rows]

    @staticmethod
    def is_admin(db: Session, user_id: int) -> bool:
        return any(role in ADMIN_ROLES for role in UserService.get_user_roles(db, user_id))

    @staticmethod
    def set_user_role(db: Session, user_id: int, role_name: str) -> List[str]:
        """Replace a user's roles with a single role"""
        if role_name not in ROLE_NAMES:
            raise ValueError(f"Unknown role '{role_name}'")
        if not UserService.get_user_by_id(db, user_id):
            raise LookupError("User not found")

        role = UserService.get_or_create_role(db, role_name)
        db.query(UserHasRole).filter(UserHasRole.user_id == user_id).delete()
        db.add(UserHasRole(user_id=user_id, role_id=role.id))
        db.commit()
        logger.info("Set role of user %s to %s", user_id, role_name)
        return [role_name]

    @staticmethod
    def get_profile(db: Session, user_id: int) -> Optional[UserProfile]:
        user = UserService.get_user_by_id(db, user_id)
        if not user:
            return None

        roles = UserService.get_user_roles(db, user.id)
        referral = db.query(ReferralCode).filter(ReferralCode.user_id == user.id).first()

        return UserProfile(
            id=user.id,
            name=user.name,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            phone=user.phone,
            created_at=user.created_at,
            updated_at=user.updated_at,
            roles=roles,
            is_admin=any(role in ADMIN_ROLES for role in roles),
            referral_code=referral.code if referral else None
        )
