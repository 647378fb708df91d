"""
Test Configuration and Fixtures

Shared fixtures for LedgerLock API tests.
Provides an isolated ledger store per test, the authorization engine
over it, and authenticated HTTP clients.
"""

from typing import AsyncGenerator, Callable, Dict

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from ledgerlock.core.event_bus import EventBus
from ledgerlock.api.access.engine import AuthorizationEngine
from ledgerlock.api.auth.jwt import create_signer_token
from ledgerlock.api.config import settings
from ledgerlock.api.db.session import create_engine_for_url, create_schema, make_session_maker
from ledgerlock.api.ledger.adapter import SqlLedger, get_ledger
from ledgerlock.api.main import create_app


OWNER = settings.LEDGER_OWNER_ADDRESS
A1 = "0xA1"
A2 = "0xA2"
A3 = "0xA3"

# Small pages so multi-page reads are exercised
TEST_PAGE_SIZE = 4


# ==================== Ledger Fixtures ====================


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite store, so concurrent sessions see each other's commits."""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(db_engine) -> async_sessionmaker:
    return make_session_maker(db_engine)


@pytest.fixture(scope="function")
def ledger(session_maker) -> SqlLedger:
    """Ledger adapter owned by the configured owner address."""
    return SqlLedger(
        session_maker,
        owner_address=OWNER,
        commit_timeout=5.0,
        query_timeout=5.0,
        page_size=TEST_PAGE_SIZE,
    )


@pytest.fixture(scope="function")
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture(scope="function")
def engine(ledger, event_bus) -> AuthorizationEngine:
    """Authorization engine over the test ledger."""
    return AuthorizationEngine(ledger, event_bus=event_bus)


@pytest_asyncio.fixture(scope="function")
async def registered_pair(engine) -> None:
    """0xA1 and 0xA2 registered, no edges."""
    await engine.register_identity(A1, "Alice", "Operator", signer=OWNER)
    await engine.register_identity(A2, "Door", "Device_Lock", signer=OWNER)


# ==================== Application Fixtures ====================


@pytest.fixture(scope="function")
def app(ledger) -> FastAPI:
    """Create FastAPI app bound to the test ledger."""
    test_app = create_app()
    test_app.dependency_overrides[get_ledger] = lambda: ledger
    return test_app


@pytest_asyncio.fixture(scope="function")
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ==================== Token Fixtures ====================


@pytest.fixture(scope="function")
def headers_for() -> Callable[[str], Dict[str, str]]:
    """Authorization headers for any address."""

    def _headers(address: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_signer_token(address)}"}

    return _headers


@pytest.fixture(scope="function")
def owner_headers(headers_for) -> Dict[str, str]:
    """Authorization headers for the ledger owner."""
    return headers_for(OWNER)
