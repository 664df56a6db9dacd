"""Shared test fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from autoledger.api.deps import get_classification_service, get_current_caller, get_db, get_rule_engine
from autoledger.config import settings
from autoledger.core.security import Caller
from autoledger.main import app
from autoledger.models import Base
from autoledger.services.rule_cache import RuleCache
from autoledger.services.rule_engine import RuleEngine
from autoledger.services.rule_types import TransactionType
from autoledger.services.transaction_classification_service import TransactionClassificationService
from tests.fakes import FakeRuleStore, FakeTransactionRepository, make_rule


def make_token(sub: str = "user-1", company_id: str | None = "C001", user_type: str = "BUSINESS") -> str:
    claims = {"sub": sub, "user_type": user_type}
    if company_id is not None:
        claims["company_id"] = company_id
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture
def rule_store():
    """Two companies with a handful of typical rules."""
    return FakeRuleStore({
        "C001": [
            make_rule(
                rule_id=1, tenant_id="C001", category_id="CAT_CAFE", category_name="카페",
                include=("스타벅스", "이디야"), exclude=("환불",),
                transaction_type=TransactionType.WITHDRAWAL, priority=1,
            ),
            make_rule(
                rule_id=2, tenant_id="C001", category_id="CAT_FOOD", category_name="식비",
                include=("스타벅스", "맥도날드"), priority=2,
            ),
            make_rule(
                rule_id=3, tenant_id="C001", category_id="CAT_SALARY", category_name="급여",
                include=("급여",), transaction_type=TransactionType.DEPOSIT,
                min_amount=1000000,
            ),
        ],
        "C002": [
            make_rule(
                rule_id=10, tenant_id="C002", category_id="CAT_TAXI", category_name="교통비",
                include=("카카오택시",), transaction_type=TransactionType.WITHDRAWAL,
            ),
        ],
    })


@pytest.fixture
def rule_engine(rule_store):
    return RuleEngine(RuleCache(rule_store, ttl_seconds=300))


@pytest.fixture
def repository():
    return FakeTransactionRepository()


@pytest.fixture
def classification_service(repository, rule_engine):
    return TransactionClassificationService(repository, rule_engine, batch_size=100)


@pytest.fixture
async def sqlite_engine():
    """In-memory async SQLite with foreign keys enforced and working savepoints."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # The driver's implicit BEGIN breaks SAVEPOINT; the "begin" hook emits it instead
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return async_sessionmaker(sqlite_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def caller():
    return Caller(user_id="user-1", user_type="BUSINESS", company_id="C001")


@pytest.fixture
def db_session():
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def override_services(rule_engine, classification_service, db_session):
    """Route dependencies to in-memory fakes; the lifespan does not run under ASGITransport."""

    async def _get_db():
        yield db_session

    app.dependency_overrides[get_rule_engine] = lambda: rule_engine
    app.dependency_overrides[get_classification_service] = lambda: classification_service
    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def anon_client(override_services):
    """Client that goes through real token verification."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def client(override_services, caller):
    """Async test client for the FastAPI app, authenticated as ``caller``."""
    app.dependency_overrides[get_current_caller] = lambda: caller
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
