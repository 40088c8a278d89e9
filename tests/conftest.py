"""
Test configuration and fixtures
Each test gets its own SQLite file database, so separate sessions really are
separate connections and can race each other.
"""

import json
import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import uuid4
import os

from httpx import AsyncClient, ASGITransport
from jose import jwt

# Set test environment before anything reads settings
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./cinego-test.db"
os.environ["IDENTITY_JWT_SECRET"] = "test-identity-secret"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["RUN_JOB_WORKER"] = "false"
os.environ["LOG_FORMAT"] = "plain"

from cinego.config import settings
from cinego.core.database import build_engine, build_session_factory, init_db
from cinego.core.exceptions import PaymentProviderError, WebhookSignatureError
from cinego.core.security import CurrentUser
from cinego.models.movie import Movie
from cinego.models.show import Show
from cinego.services.checkout import CheckoutSession, PaymentGateway


class FakeGateway(PaymentGateway):
    """In-memory payment provider"""

    VALID_SIGNATURE = "valid-signature"

    def __init__(self):
        self.sessions = []
        self.fail = False
        self.intents: Dict[str, str] = {}

    async def create_session(
        self,
        amount_minor: int,
        currency: str,
        item_name: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_email: Optional[str] = None
    ) -> CheckoutSession:
        if self.fail:
            raise PaymentProviderError("Payment processing error: provider unavailable")
        session = CheckoutSession(
            id=f"cs_test_{len(self.sessions) + 1}",
            url=f"https://checkout.test/pay/{len(self.sessions) + 1}",
        )
        self.sessions.append({
            "id": session.id,
            "amount_minor": amount_minor,
            "currency": currency,
            "item_name": item_name,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "customer_email": customer_email,
        })
        return session

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        if signature != self.VALID_SIGNATURE:
            raise WebhookSignatureError()
        return json.loads(payload)

    async def find_booking_id_for_payment_intent(self, payment_intent_id: str) -> Optional[str]:
        return self.intents.get(payment_intent_id)


@pytest_asyncio.fixture(scope="function")
async def test_db(tmp_path):
    """Create a fresh database engine for each test"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'cinego.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_db):
    return build_session_factory(test_db)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    """Create database session for tests"""
    async with session_factory() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest_asyncio.fixture
async def client(session_factory, fake_gateway):
    """Create test client with dependency overrides"""
    from cinego.main import app
    from cinego.core.database import get_session
    from cinego.services.checkout import get_payment_gateway

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway

    try:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


def make_token(sub: str = "user_1", email: Optional[str] = "viewer@example.com", role: Optional[str] = None, **extra) -> str:
    claims = {"sub": sub, "email": email, **extra}
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.IDENTITY_JWT_SECRET, algorithm=settings.IDENTITY_JWT_ALGORITHM)


def auth_headers(**kwargs) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(**kwargs)}"}


@pytest.fixture
def test_user():
    return CurrentUser(id="user_1", email="viewer@example.com")


@pytest.fixture
def other_user():
    return CurrentUser(id="user_2", email="other@example.com")


@pytest_asyncio.fixture
async def test_movie(db_session):
    movie = Movie(
        tmdb_id="550",
        title="Fight Club",
        overview="An insomniac office worker...",
        poster_url="https://image.tmdb.org/t/p/w500/poster.jpg",
        genres=["Drama", "Thriller"],
        runtime=139,
    )
    db_session.add(movie)
    await db_session.commit()
    return movie


@pytest_asyncio.fixture
async def test_show(db_session, test_movie):
    """A show two days out at 150.00 per seat with an empty ledger"""
    show = Show(
        movie_id=test_movie.id,
        start_time=datetime.now(timezone.utc) + timedelta(days=2),
        price=Decimal("150.00"),
        occupied_seats={},
    )
    db_session.add(show)
    await db_session.commit()
    return show


def random_id() -> str:
    return str(uuid4())
