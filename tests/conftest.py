import itertools
import os
from datetime import date, timedelta
from decimal import Decimal

# Settings are read at import time, so point them at an in-memory database first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["SMTP_EMAIL"] = ""
os.environ["SMTP_PASSWORD"] = ""

import pytest
from fastapi.testclient import TestClient

from galerago import auth, models
from galerago.access import Caller
from galerago.database import Base, SessionLocal, engine
from galerago.main import app
from galerago.references import generate_reference

PASSWORD = "secret123"
_counter = itertools.count(1)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def db():
    """Fresh schema and session for every test"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """FastAPI test client sharing the in-memory database"""
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(role=models.ROLE_TOURIST, suspended=False, **fields):
        n = next(_counter)
        user = models.User(
            username=fields.pop("username", f"user{n}"),
            email=fields.pop("email", f"user{n}@example.com"),
            password=auth.get_password_hash(PASSWORD),
            first_name=fields.pop("first_name", "Test"),
            last_name=fields.pop("last_name", f"User{n}"),
            contact_number=fields.pop("contact_number", "09171234567"),
            role=role,
            is_suspended=suspended,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_tourist(db, make_user):
    """Tourist account with its profile already filled in"""
    def _make(**fields):
        user = make_user(models.ROLE_TOURIST, **fields)
        db.add(models.Tourist(
            user_id=user.id,
            first_name="Juan",
            last_name="Dela Cruz",
            email=user.email,
            phone="09181112222",
            nationality="Filipino",
        ))
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_package(db):
    def _make(provider, **fields):
        values = {
            "name": "Coron Island Hopping",
            "activity_type": "Island Hopping",
            "description": "Five islands and two lagoons",
            "price": Decimal("1500.00"),
            "duration": 6,
            "max_participants": 10,
            "includes": "Boat, lunch, guide",
            "gcash_number": "09170000000",
            "gcash_name": "Coron Tours",
        }
        values.update(fields)
        package = models.Package(created_by=provider.id, **values)
        db.add(package)
        db.commit()
        db.refresh(package)
        return package
    return _make


@pytest.fixture
def make_booking(db):
    """Insert a booking directly in any status, bypassing the lifecycle rules"""
    def _make(tourist_user, package, status=models.STATUS_PENDING, participants=1, **fields):
        booking = models.Booking(
            user_id=tourist_user.id,
            tourist_id=tourist_user.tourist.id,
            package_id=package.id,
            booking_reference=generate_reference("GG"),
            booking_date=fields.pop("booking_date", date.today() + timedelta(days=7)),
            number_of_participants=participants,
            total_amount=package.price * participants,
            contact_number=fields.pop("contact_number", "09171234567"),
            payment_method=fields.pop("payment_method", models.PAYMENT_CASH),
            status=status,
            activity_completed=status == models.STATUS_COMPLETED,
            **fields,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking
    return _make


@pytest.fixture
def tourist(make_tourist):
    return make_tourist()


@pytest.fixture
def provider(make_user):
    return make_user(models.ROLE_ACTIVITY_PROVIDER)


@pytest.fixture
def admin(make_user):
    return make_user(models.ROLE_ADMIN)


@pytest.fixture
def package(make_package, provider):
    return make_package(provider)


def caller_for(user) -> Caller:
    return Caller.from_user(user)


def headers_for(user) -> dict:
    return {"Authorization": f"Bearer {auth.token_for(user)}"}
