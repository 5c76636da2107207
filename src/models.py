from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime, Date, Text, ForeignKey, Numeric, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from src.database import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns
PrimaryKey = BigInteger().with_variant(Integer, "sqlite")

# ================================
# Users & Roles
# ================================
class User(Base):
    __tablename__ = "users"

    id = Column(PrimaryKey, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)
    phone = Column(String(50))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user_roles = relationship("UserHasRole", back_populates="user")
    ticket_bookings = relationship("TicketBooking", back_populates="user")
    deal_bookings = relationship("DealBooking", back_populates="user")
    wallet_credits = relationship("WalletCredits", back_populates="user", uselist=False)
    wallet_points = relationship("WalletPoints", back_populates="user", uselist=False)
    referral_code = relationship("ReferralCode", back_populates="user", uselist=False)

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.name

class Role(Base):
    __tablename__ = "roles"

    id = Column(PrimaryKey, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user_roles = relationship("UserHasRole", back_populates="role")

class UserHasRole(Base):
    __tablename__ = "user_has_roles"

    id = Column(PrimaryKey, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    role_id = Column(BigInteger, ForeignKey("roles.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="user_roles")
    role = relationship("Role", back_populates="user_roles")

# ================================
# Locations & Shuttle Routes
# ================================
class Location(Base):
    __tablename__ = "locations"

    id = Column(PrimaryKey, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    address = Column(String(500))
    city = Column(String(100), index=True)
    active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    pickup_routes = relationship("Route", foreign_keys="Route.pickup_location", back_populates="pickup")
    dropoff_routes = relationship("Route", foreign_keys="Route.dropoff_location", back_populates="dropoff")

class Route(Base):
    __tablename__ = "routes"

    id = Column(PrimaryKey, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    time_slots = Column(JSON, nullable=False, default=list)
    price = Column(Numeric(10, 2), nullable=False)
    max_capacity_per_slot = Column(Integer, nullable=False)
    min_threshold = Column(Integer, nullable=False)
    tickets_sold = Column(Integer, nullable=False, default=0)
    status = Column(String(50), default='active', index=True)
    pickup_location = Column(BigInteger, ForeignKey("locations.id"), nullable=False, index=True)
    dropoff_location = Column(BigInteger, ForeignKey("locations.id"), nullable=False, index=True)
    city = Column(String(100), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    pickup = relationship("Location", foreign_keys=[pickup_location], back_populates="pickup_routes")
    dropoff = relationship("Location", foreign_keys=[dropoff_location], back_populates="dropoff_routes")
    bookings = relationship("TicketBooking", back_populates="route")

# ================================
# Ticket Bookings
# ================================
class TicketBooking(Base):
    __tablename__ = "ticket_bookings"

    id = Column(PrimaryKey, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    route_id = Column(BigInteger, ForeignKey("routes.id"), nullable=False, index=True)
    time_slot = Column(String(5), nullable=False)
    quantity = Column(Integer, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    status = Column(String(50), default='confirmed', index=True)
    payment_method = Column(String(20), nullable=False)
    payment_reference = Column(String(100))
    miles_redeemed = Column(Integer, default=0)
    miles_discount = Column(Numeric(10, 2), default=0)
    booking_date = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="ticket_bookings")
    route = relationship("Route", back_populates="bookings")
    verifications = relationship("TicketVerification", back_populates="booking")

class TicketVerification(Base):
    __tablename__ = "ticket_verifications"
    __table_args__ = (UniqueConstraint("booking_id", "ticket_number", name="uq_ticket_verification"),)

    id = Column(PrimaryKey, primary_key=True, index=True)
    booking_id = Column(BigInteger, ForeignKey("ticket_bookings.id"), nullable=False, index=True)
    ticket_number = Column(Integer, nullable=False)
    verified_by = Column(BigInteger, ForeignKey("users.id"))
    verified_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    booking = relationship("TicketBooking", back_populates="verifications")

# ================================
# Nightlife Deals
# ================================
class Deal(Base):
    __tablename__ = "deals"

    id = Column(PrimaryKey, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    category = Column(String(50), index=True)
    price = Column(Numeric(10, 2), nullable=False)
    location_name = Column(String(255))
    location_address = Column(String(500))
    deal_date = Column(Date)
    deal_time = Column(String(5))
    status = Column(String(50), default='active', index=True)
    city = Column(String(100), index=True)
    purchases = Column(Integer, nullable=False, default=0)
    image_url = Column(String(500))
    featured = Column(Boolean, default=False)
    created_by = Column(BigInteger, ForeignKey("users.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    bookings = relationship("DealBooking", back_populates="deal")

class DealBooking(Base):
    __tablename__ = "deal_bookings"

    id = Column(PrimaryKey, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    deal_id = Column(BigInteger, ForeignKey("deals.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    total_price = Column(Numeric(10, 2), nullable=False)
    status = Column(String(50), default='confirmed', index=True)
    payment_method = Column(String(20), nullable=False)
    payment_reference = Column(String(100))
    miles_redeemed = Column(Integer, default=0)
    miles_discount = Column(Numeric(10, 2), default=0)
    booking_date = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Relationships
    user = relationship("User", back_populates="deal_bookings")
    deal = relationship("Deal", back_populates="bookings")

# ================================
# Wallets (credits & miles)
# ================================
class WalletCredits(Base):
    __tablename__ = "wallet_credits"

    id = Column(PrimaryKey, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), unique=True, nullable=False)
    balance = Column(Numeric(10, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="wallet_credits")

class CreditTransaction(Base):
    __tablename__ = "credit_transactions"

    id = Column(PrimaryKey, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    type = Column(String(20), nullable=False)
    description = Column(Text)
    reference_id = Column(String(100), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

class WalletPoints(Base):
    __tablename__ = "wallet_points"

    id = Column(PrimaryKey, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), unique=True, nullable=False)
    points = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="wallet_points")

class PointTransaction(Base):
    __tablename__ = "point_transactions"

    id = Column(PrimaryKey, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    points = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False)
    description = Column(Text)
    reference_id = Column(String(100), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

# ================================
# Referrals & System Settings
# ================================
class ReferralCode(Base):
    __tablename__ = "referral_codes"

    id = Column(PrimaryKey, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), unique=True, nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)
    times_used = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="referral_code")

class SystemSetting(Base):
    __tablename__ = "system_settings"

    id = Column(PrimaryKey, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)
    description = Column(Text)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    updated_by = Column(BigInteger, ForeignKey("users.id"))
