"""
Shared test fixtures for the OTC desk.

Provides mock Redis, mock database session, an async HTTP test client,
a small currency catalog and RSA keys for JWT testing.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient

from otcdesk.core import security
from otcdesk.database import get_db
from otcdesk.models.currency import AssetClass, Currency
from otcdesk.models.destination import configure_fernet
from otcdesk.models.quote import Quote, QuoteOrigin, QuoteStatus, TradeType
from otcdesk.models.user import User, UserRole, UserStatus
from otcdesk.redis_client import get_redis
from otcdesk.schemas.rate import RatePair
from otcdesk.services.events import set_event_sink
from otcdesk.services.fee_calculator import FeeConfiguration
from otcdesk.services.settings_service import MarkupDefaults, QuotePolicy, RuntimeConfig


# --- Fernet Key Fixture ---


@pytest.fixture(scope="session")
def test_fernet_key():
    """Generate a Fernet key for tests."""
    return Fernet.generate_key()


@pytest.fixture(autouse=True)
def setup_fernet(test_fernet_key):
    """Configure destination models to use the test Fernet key."""
    configure_fernet(test_fernet_key)


# --- RSA Key Fixtures ---


@pytest.fixture(scope="session")
def test_rsa_keys():
    """Generate a temporary RSA keypair for test JWT signing."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )

    return {"private_key": private_pem, "public_key": public_pem}


@pytest.fixture(autouse=True)
def security_with_keys(test_rsa_keys):
    """Configure token signing to use test RSA keys for every test."""
    security.configure_keys(
        private_key=test_rsa_keys["private_key"],
        public_key=test_rsa_keys["public_key"],
        algorithm="RS256",
    )


# --- Event sink ---


@pytest.fixture(autouse=True)
def event_sink():
    """Capture lifecycle events instead of queueing Celery tasks."""
    sink = MagicMock()
    set_event_sink(sink)
    yield sink
    set_event_sink(None)


# --- Mock Redis ---


@pytest.fixture
def mock_redis():
    """AsyncMock Redis client with common methods."""
    redis = AsyncMock()
    redis.setex = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.delete = AsyncMock()
    return redis


# --- Mock Database Session ---


@pytest.fixture
def mock_db():
    """AsyncMock database session."""
    db = AsyncMock()

    # Mock the result object returned by db.execute()
    mock_result = MagicMock()
    mock_result.scalar_one_or_none = MagicMock(return_value=None)
    mock_result.scalars.return_value.all.return_value = []
    mock_result.rowcount = 1
    db.execute = AsyncMock(return_value=mock_result)
    db.get = AsyncMock(return_value=None)
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()

    return db


def _result_with(*, scalar=None, rows=None, rowcount=1) -> MagicMock:
    """A db.execute() result returning *scalar* / *rows* / *rowcount*."""
    result = MagicMock()
    result.scalar_one_or_none = MagicMock(return_value=scalar)
    result.scalar_one = MagicMock(return_value=scalar)
    result.scalars.return_value.all.return_value = list(rows or [])
    result.rowcount = rowcount
    return result


@pytest.fixture
def result_with():
    """Factory fixture for db.execute() results."""
    return _result_with


# --- Users ---


def _make_user(**overrides) -> User:
    """Create a User instance with test defaults via the normal constructor."""
    defaults = {
        "email": "thandi@example.com",
        "full_name": "Thandi Nkosi",
        "phone": "+27821230002",
        "role": UserRole.CUSTOMER,
        "status": UserStatus.ACTIVE,
    }
    defaults.update(overrides)
    return User(**defaults)


@pytest.fixture
def make_user():
    """Factory fixture for creating User instances."""
    return _make_user


@pytest.fixture
def customer():
    return _make_user()


@pytest.fixture
def operator():
    return _make_user(
        email="desk@otcdesk.test", full_name="Desk Operator", role=UserRole.OPERATOR,
    )


@pytest.fixture
def auth_headers_for():
    """Factory fixture: JWT Authorization header for a user."""
    def _headers(user: User) -> dict:
        token = security.create_access_token(str(user.id), user.email, user.role.value)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# --- Catalog, rates and configuration ---


@pytest.fixture
def catalog() -> dict[str, Currency]:
    """ZAR/NAD fiat plus BTC/ETH/USDT crypto; DOGE present but inactive."""
    currencies = [
        Currency(code="ZAR", name="South African Rand", asset_class=AssetClass.FIAT, decimals=2),
        Currency(code="NAD", name="Namibian Dollar", asset_class=AssetClass.FIAT, decimals=2),
        Currency(code="BTC", name="Bitcoin", asset_class=AssetClass.CRYPTO, decimals=8),
        Currency(code="ETH", name="Ethereum", asset_class=AssetClass.CRYPTO, decimals=8),
        Currency(code="USDT", name="Tether", asset_class=AssetClass.CRYPTO, decimals=6),
        Currency(
            code="DOGE", name="Dogecoin", asset_class=AssetClass.CRYPTO, decimals=8,
            is_active=False,
        ),
    ]
    return {c.code: c for c in currencies}


def _make_rate_pair(
    from_currency: str,
    to_currency: str,
    buy: str,
    sell: str,
    base: str | None = None,
) -> RatePair:
    """A RatePair with explicit final rates (markups are informational here)."""
    return RatePair(
        from_currency=from_currency,
        to_currency=to_currency,
        base_rate=Decimal(base or sell),
        buy_markup=Decimal("0.02"),
        sell_markup=Decimal("0.02"),
        final_buy_rate=Decimal(buy),
        final_sell_rate=Decimal(sell),
        last_updated=datetime.now(timezone.utc),
    )


def _make_config(
    admin_fee: str = "0.005",
    withdrawal_fees: dict | None = None,
    validity: int = 15,
    privileged_validity: int = 120,
    min_trades: dict | None = None,
    reference_fiat: str = "ZAR",
) -> RuntimeConfig:
    return RuntimeConfig(
        fees=FeeConfiguration(
            admin_fee_percentage=Decimal(admin_fee),
            withdrawal_fees=withdrawal_fees if withdrawal_fees is not None else {"ZAR": Decimal("50")},
        ),
        policy=QuotePolicy(
            validity_minutes=validity,
            privileged_validity_minutes=privileged_validity,
            min_trade_amounts=min_trades if min_trades is not None else {"ZAR": Decimal("500")},
            reference_fiat=reference_fiat,
        ),
        markups=MarkupDefaults(buy=Decimal("0.02"), sell=Decimal("0.02")),
    )


@pytest.fixture
def make_rate_pair():
    """Factory fixture for RatePair instances."""
    return _make_rate_pair


@pytest.fixture
def make_config():
    """Factory fixture for RuntimeConfig snapshots."""
    return _make_config


@pytest.fixture
def fee_config() -> FeeConfiguration:
    return _make_config().fees


def _make_quote(user: User, **overrides) -> Quote:
    """A pending ZAR -> BTC buy quote valid for 15 more minutes."""
    now = datetime.now(timezone.utc)
    defaults = {
        "user_id": user.id,
        "origin": QuoteOrigin.STANDARD,
        "quote_type": TradeType.BUY,
        "from_currency": "ZAR",
        "to_currency": "BTC",
        "from_amount": Decimal("10000"),
        "exchange_rate": Decimal("0.00000095"),
        "to_amount": Decimal("0.00950000"),
        "admin_fee": Decimal("50.00"),
        "withdrawal_fee": Decimal("0"),
        "total_fee": Decimal("50.00"),
        "net_amount": Decimal("0.00950000"),
        "status": QuoteStatus.PENDING,
        "expires_at": now + timedelta(minutes=15),
        "created_at": now,
    }
    defaults.update(overrides)
    return Quote(**defaults)


@pytest.fixture
def make_quote():
    """Factory fixture for Quote instances."""
    return _make_quote


# --- Dependency Override Helpers ---


@pytest_asyncio.fixture
async def client(mock_db, mock_redis):
    """
    Async HTTP test client with get_db and get_redis overridden
    to use test doubles.
    """
    from otcdesk.main import app

    async def override_get_db():
        yield mock_db

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
