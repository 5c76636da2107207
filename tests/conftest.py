"""Shared fixtures: an in-memory database wired into the FastAPI app."""
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.database import Base, get_db
from src.main import app
from src.models import Location, Route, Deal, TicketBooking, WalletCredits, WalletPoints
from src.auth.schemas import UserCreate
from src.auth.service import UserService
from src.auth.utils import create_access_token
from src.utils.timezone import today

API = "/api/v1"

@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()

@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def make_user(db_session):
    """Create a user with a role and exact wallet balances"""
    counter = {"n": 0}

    def _make_user(role: str = "user", miles: int = 0, credits: Decimal = Decimal("0"), **fields):
        counter["n"] += 1
        data = {
            "name": f"Test User {counter['n']}",
            "email": f"user{counter['n']}@example.com",
            "password": "secret123",
        }
        data.update(fields)
        user = UserService.create_user(db_session, UserCreate(**data))
        if role != "user":
            UserService.set_user_role(db_session, user.id, role)

        db_session.query(WalletPoints).filter(WalletPoints.user_id == user.id).update({"points": miles})
        db_session.query(WalletCredits).filter(WalletCredits.user_id == user.id).update({"balance": credits})
        db_session.commit()
        return user

    return _make_user

@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers

@pytest.fixture
def locations(db_session):
    pickup = Location(name="Campus Corner", address="100 College Ave", city="State College")
    dropoff = Location(name="Downtown Strip", address="200 Main St", city="State College")
    db_session.add_all([pickup, dropoff])
    db_session.commit()
    return pickup, dropoff

@pytest.fixture
def make_route(db_session, locations):
    def _make_route(**fields):
        pickup, dropoff = locations
        data = {
            "date": today() + timedelta(days=1),
            "time_slots": ["21:00", "22:00"],
            "price": Decimal("10.00"),
            "max_capacity_per_slot": 20,
            "min_threshold": 10,
            "tickets_sold": 0,
            "status": "active",
            "pickup_location": pickup.id,
            "dropoff_location": dropoff.id,
            "city": "State College",
        }
        data.update(fields)
        route = Route(**data)
        db_session.add(route)
        db_session.commit()
        db_session.refresh(route)
        return route
    return _make_route

@pytest.fixture
def add_booking(db_session):
    """Insert a booking row directly, bypassing payment"""
    def _add_booking(route, user, quantity, time_slot="21:00", status="confirmed", **fields):
        data = {
            "user_id": user.id,
            "route_id": route.id,
            "time_slot": time_slot,
            "quantity": quantity,
            "total_price": Decimal(route.price) * quantity,
            "status": status,
            "payment_method": "wallet",
        }
        data.update(fields)
        booking = TicketBooking(**data)
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking
    return _add_booking

@pytest.fixture
def make_deal(db_session):
    def _make_deal(**fields):
        data = {
            "title": "Skip-the-line Entry",
            "category": "club",
            "price": Decimal("10.00"),
            "location_name": "The Basement",
            "deal_date": today() + timedelta(days=1),
            "deal_time": "22:00",
            "status": "active",
            "city": "State College",
            "purchases": 0,
        }
        data.update(fields)
        deal = Deal(**data)
        db_session.add(deal)
        db_session.commit()
        db_session.refresh(deal)
        return deal
    return _make_deal
