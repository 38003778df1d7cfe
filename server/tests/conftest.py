"""Test configuration and fixtures."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hotel_booking.core.config import settings
from hotel_booking.core.database import Base, get_db
from hotel_booking.core.dependencies import get_notifier
from hotel_booking.core.identity import Caller, Role
from hotel_booking.models import Hotel, Room, RoomRate, RoomType
from hotel_booking.services.notification_service import Notifier

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CLIENT_ID = 1001
OTHER_CLIENT_ID = 1002
RECEPTION_ID = 2001
ADMIN_ID = 3001


class FakeNotifier(Notifier):
    """Records every email instead of sending it."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append({"to": to, "subject": subject, "body": body})
        return True


def make_token(user_id: int, role: Role, email: str | None = None, expires_in: int = 3600) -> str:
    """Sign a bearer token the way the identity service does."""
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "exp": int((datetime.now(timezone.utc) + timedelta(seconds=expires_in)).timestamp()),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.bearer_token_secret, algorithm="HS256")


def auth_headers(user_id: int, role: Role, email: str | None = None) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role, email)}"}


def stay(offset_days: int = 30, nights: int = 2) -> tuple[date, date]:
    """Check-in/check-out pair well outside the cancellation cutoff."""
    check_in = date.today() + timedelta(days=offset_days)
    return check_in, check_in + timedelta(days=nights)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def notifier():
    """Notifier capturing outgoing emails."""
    return FakeNotifier()


@pytest.fixture
def failing_notifier():
    """Notifier whose every send raises."""
    return FakeNotifier(fail=True)


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, notifier):
    """Create the application with the database and notifier swapped out."""
    from hotel_booking.main import create_app

    app = create_app()

    # Override database dependency
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture(scope="function")
async def seeded_hotel(test_session):
    """
    One hotel with a 'Standard Double' type of two rooms at 100.00 a night
    and a 'Suite' type of one room at 250.00.
    """
    hotel = Hotel(name="Harbour View Hotel", city="Lisbon", email="frontdesk@harbourview.example")
    test_session.add(hotel)
    await test_session.flush()

    standard = RoomType(hotel_id=hotel.id, name="Standard Double", capacity=2)
    suite = RoomType(hotel_id=hotel.id, name="Suite", capacity=4)
    test_session.add_all([standard, suite])
    await test_session.flush()

    rooms = [
        Room(hotel_id=hotel.id, room_type_id=standard.id, room_number="101", is_available=True),
        Room(hotel_id=hotel.id, room_type_id=standard.id, room_number="102", is_available=True),
        Room(hotel_id=hotel.id, room_type_id=suite.id, room_number="301", is_available=True),
    ]
    test_session.add_all(rooms)
    test_session.add_all([
        RoomRate(hotel_id=hotel.id, room_type_id=standard.id, base_price=Decimal("100.00")),
        RoomRate(hotel_id=hotel.id, room_type_id=suite.id, base_price=Decimal("250.00")),
    ])
    await test_session.commit()

    # Plain ids stay usable after a rollback expires the ORM instances
    return {
        "hotel_id": hotel.id,
        "standard_id": standard.id,
        "suite_id": suite.id,
        "room_ids": [room.id for room in rooms],
        "rooms": rooms,
    }


@pytest.fixture
def client_caller():
    return Caller(user_id=CLIENT_ID, role=Role.CLIENT, email="guest@example.com")


@pytest.fixture
def other_client_caller():
    return Caller(user_id=OTHER_CLIENT_ID, role=Role.CLIENT, email="other@example.com")


@pytest.fixture
def reception_caller():
    return Caller(user_id=RECEPTION_ID, role=Role.RECEPTION, email="reception@harbourview.example")


@pytest.fixture
def admin_caller():
    return Caller(user_id=ADMIN_ID, role=Role.ADMIN, email="admin@harbourview.example")


@pytest.fixture
def headers_for():
    """Build Authorization headers for a user id and role."""
    return auth_headers


@pytest.fixture
def stay_dates():
    """Factory for (check_in, check_out) pairs in the future."""
    return stay
