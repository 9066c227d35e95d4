"""Pytest configuration and fixtures."""

import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIR", os.path.join(tempfile.gettempdir(), "franchisehub-test-uploads"))
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")

import pytest
from decimal import Decimal
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from franchisehub.core.security import create_access_token, get_password_hash
from franchisehub.db.base import Base
from franchisehub.db.session import get_db
from franchisehub.main import app
# Import all models to ensure they're registered with Base.metadata
from franchisehub.models import *
from franchisehub.models import Franchise, FranchiseStatus, Unit, UnitStatus, User, UserRole, UserStatus

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_PASSWORD = "Passw0rd!"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiting during tests to avoid flaky failures
    from franchisehub.core.rate_limit import limiter
    limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    limiter.enabled = True
    app.dependency_overrides.clear()


def make_user(db: Session, email: str, role: UserRole, name: str = None, **extra) -> User:
    user = User(
        name=name or email.split("@")[0].title(),
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD),
        role=role,
        status=extra.pop("status", UserStatus.ACTIVE),
        **extra,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def headers_for(user: User) -> dict:
    token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value}
    )
    return {"Authorization": f"Bearer {token}"}


# ============== Users ==============

@pytest.fixture
def admin_user(db_session: Session) -> User:
    return make_user(db_session, "admin@example.com", UserRole.ADMIN, name="Platform Admin")


@pytest.fixture
def franchisor_user(db_session: Session) -> User:
    return make_user(db_session, "owner@example.com", UserRole.FRANCHISOR, name="Brand Owner")


@pytest.fixture
def other_franchisor_user(db_session: Session) -> User:
    return make_user(db_session, "rival@example.com", UserRole.FRANCHISOR, name="Rival Owner")


@pytest.fixture
def franchisee_user(db_session: Session) -> User:
    return make_user(db_session, "manager@example.com", UserRole.FRANCHISEE, name="Unit Manager")


# ============== Tenants ==============

@pytest.fixture
def franchise(db_session: Session, franchisor_user: User) -> Franchise:
    franchise = Franchise(
        franchisor_id=franchisor_user.id,
        business_name="Coffee Corner",
        business_registration_number="BRN-0001",
        royalty_percentage=Decimal("6.00"),
        marketing_fee_percentage=Decimal("2.00"),
        status=FranchiseStatus.ACTIVE,
    )
    db_session.add(franchise)
    db_session.commit()
    db_session.refresh(franchise)
    return franchise


@pytest.fixture
def other_franchise(db_session: Session, other_franchisor_user: User) -> Franchise:
    franchise = Franchise(
        franchisor_id=other_franchisor_user.id,
        business_name="Burger Barn",
        business_registration_number="BRN-0002",
        royalty_percentage=Decimal("5.00"),
        marketing_fee_percentage=Decimal("1.00"),
        status=FranchiseStatus.ACTIVE,
    )
    db_session.add(franchise)
    db_session.commit()
    db_session.refresh(franchise)
    return franchise


@pytest.fixture
def unit(db_session: Session, franchise: Franchise, franchisee_user: User) -> Unit:
    unit = Unit(
        franchise_id=franchise.id,
        franchisee_id=franchisee_user.id,
        unit_name="Downtown",
        unit_code="COF-DOWNTO",
        city="Riyadh",
        status=UnitStatus.ACTIVE,
        monthly_revenue=Decimal("20000.00"),
    )
    db_session.add(unit)
    db_session.commit()
    db_session.refresh(unit)
    return unit


@pytest.fixture
def other_unit(db_session: Session, other_franchise: Franchise) -> Unit:
    unit = Unit(
        franchise_id=other_franchise.id,
        unit_name="Airport",
        unit_code="BUR-AIRPOR",
        status=UnitStatus.ACTIVE,
    )
    db_session.add(unit)
    db_session.commit()
    db_session.refresh(unit)
    return unit


@pytest.fixture
def broker_user(db_session: Session, franchise: Franchise) -> User:
    return make_user(
        db_session, "broker@example.com", UserRole.BROKER, name="Lead Broker", franchise_id=franchise.id
    )


# ============== Headers ==============

@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def franchisor_headers(franchisor_user: User, franchise: Franchise) -> dict:
    return headers_for(franchisor_user)


@pytest.fixture
def other_franchisor_headers(other_franchisor_user: User, other_franchise: Franchise) -> dict:
    return headers_for(other_franchisor_user)


@pytest.fixture
def franchisee_headers(franchisee_user: User, unit: Unit) -> dict:
    return headers_for(franchisee_user)


@pytest.fixture
def broker_headers(broker_user: User) -> dict:
    return headers_for(broker_user)
