#!/usr/bin/env python3

from datetime import timedelta
from decimal import Decimal

from src.database import Base, SessionLocal, engine
from src.models import (
    Location, Route, Deal, DealBooking, TicketVerification, TicketBooking,
    SystemSetting
)
from src.auth.schemas import UserCreate
from src.auth.service import UserService, ROLE_NAMES
from src.system_settings import SystemSettingsService, DEFAULT_SETTINGS
from src.wallet.service import WalletService
from src.utils.timezone import today

DEMO_PASSWORD = "ulimo123"

def create_seed_data():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        print("🚀 Creating seed data for ULimo...")

        # Clear existing demo data (in reverse dependency order)
        print("Clearing existing routes, deals and bookings...")
        db.query(TicketVerification).delete()
        db.query(TicketBooking).delete()
        db.query(DealBooking).delete()
        db.query(Route).delete()
        db.query(Deal).delete()
        db.query(Location).delete()
        db.query(SystemSetting).delete()
        db.flush()

        # 1. Roles and system settings
        print("Creating roles and settings...")
        for role_name in ROLE_NAMES:
            UserService.get_or_create_role(db, role_name)
        settings_service = SystemSettingsService(db)
        for key, (value, _) in DEFAULT_SETTINGS.items():
            settings_service.set_value(key, value)
        db.commit()

        # 2. Demo accounts
        print("Creating demo accounts...")
        accounts = [
            ("Admin", "admin@ulimo.app", "admin"),
            ("Promoter", "promoter@ulimo.app", "promoter"),
            ("Driver", "driver@ulimo.app", "driver"),
            ("Rider", "rider@ulimo.app", "user"),
        ]
        users = {}
        for name, email, role in accounts:
            user = UserService.get_user_by_email(db, email)
            if user is None:
                user = UserService.create_user(db, UserCreate(name=name, email=email, password=DEMO_PASSWORD))
            if role != "user":
                UserService.set_user_role(db, user.id, role)
            users[role] = user

        rider = users["user"]
        wallet_service = WalletService(db)
        wallet_service.add_credits(rider.id, Decimal("100.00"), "Demo wallet top-up")
        db.commit()

        # 3. Locations
        print("Creating pickup/dropoff locations...")
        locations = [
            Location(name="Campus Corner", address="100 College Ave", city="State College"),
            Location(name="Downtown Strip", address="200 Main St", city="State College"),
            Location(name="Stadium Lot", address="1 Stadium Dr", city="State College"),
            Location(name="Old Town Square", address="15 Market St", city="Pittsburgh"),
            Location(name="Riverfront", address="300 Water St", city="Pittsburgh"),
        ]
        db.add_all(locations)
        db.flush()

        # 4. Routes for the coming weekends
        print("Creating routes...")
        start = today()
        routes = []
        for week in range(3):
            route_date = start + timedelta(days=7 * week + 1)
            routes.append(Route(
                date=route_date,
                time_slots=["21:00", "22:00", "23:00"],
                price=Decimal("15.00"),
                max_capacity_per_slot=20,
                min_threshold=15,
                tickets_sold=0,
                status="active",
                pickup_location=locations[0].id,
                dropoff_location=locations[1].id,
                city="State College"
            ))
            routes.append(Route(
                date=route_date,
                time_slots=["20:30", "22:30"],
                price=Decimal("20.00"),
                max_capacity_per_slot=14,
                min_threshold=10,
                tickets_sold=0,
                status="active",
                pickup_location=locations[3].id,
                dropoff_location=locations[4].id,
                city="Pittsburgh"
            ))
        db.add_all(routes)
        db.flush()

        # 5. Deals
        print("Creating deals...")
        promoter = users["promoter"]
        deals = [
            Deal(title="Skip-the-line Club Entry", description="Priority entry before midnight",
                 category="club", price=Decimal("10.00"), location_name="The Basement",
                 location_address="210 Main St", deal_date=start + timedelta(days=1), deal_time="22:00",
                 status="active", city="State College", featured=True, created_by=promoter.id),
            Deal(title="Half-price Appetizers", description="Before 9pm with a ULimo ticket",
                 category="restaurant", price=Decimal("5.00"), location_name="Corner Grill",
                 location_address="105 College Ave", deal_date=start + timedelta(days=1), deal_time="19:00",
                 status="active", city="State College", created_by=promoter.id),
            Deal(title="Free Rooftop Guest List", description="Guest list spot, 21+",
                 category="lounge", price=Decimal("0.00"), location_name="Skyline Lounge",
                 location_address="40 Water St", deal_date=start + timedelta(days=2), deal_time="21:30",
                 status="active", city="Pittsburgh", created_by=promoter.id),
        ]
        db.add_all(deals)

        # Commit all changes
        db.commit()
        print("✅ Successfully created seed data for ULimo!")
        print(f"Created:")
        print(f"  - {len(accounts)} demo accounts (password: {DEMO_PASSWORD})")
        print(f"  - {len(locations)} locations")
        print(f"  - {len(routes)} routes")
        print(f"  - {len(deals)} deals")
        print(f"  - {len(DEFAULT_SETTINGS)} system settings")

    except Exception as e:
        print(f"❌ Error creating seed data: {e}")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_seed_data()
