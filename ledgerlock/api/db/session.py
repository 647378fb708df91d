"""
Ledger store engine and sessions.

One async engine per process, built lazily from settings. Tests build
their own engine with `create_engine_for_url` and never touch the
module-level one.
"""

import logging
import ssl
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from ledgerlock.api.config import settings

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker] = None

# Hosted Postgres providers that refuse plaintext connections
_TLS_HOSTS = ("neon.tech", "supabase")


def _connect_args(url: str) -> Dict[str, Any]:
    if not any(host in url for host in _TLS_HOSTS):
        return {}

    logger.info("Hosted Postgres detected, connecting over TLS")
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return {"ssl": context}


def create_engine_for_url(url: str, echo: bool = False) -> AsyncEngine:
    """Build an async engine with the connect args the URL needs."""
    kwargs: Dict[str, Any] = {"echo": echo, "connect_args": _connect_args(url)}
    if not url.startswith("sqlite"):
        # pgbouncer-style poolers hold the pool; keep none on our side
        kwargs["poolclass"] = NullPool
    return create_async_engine(url, **kwargs)


def get_engine() -> AsyncEngine:
    """Process-wide engine for `settings.DATABASE_URL`."""
    global _engine

    if _engine is None:
        url = settings.DATABASE_URL
        logger.info(f"Opening ledger store at {url.split('@')[-1][:60]}")
        _engine = create_engine_for_url(url, echo=settings.DATABASE_ECHO)

    return _engine


def make_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_maker() -> async_sessionmaker:
    global _session_maker

    if _session_maker is None:
        _session_maker = make_session_maker(get_engine())

    return _session_maker


async def create_schema(engine: AsyncEngine) -> None:
    """Create any missing ledger tables."""
    from ledgerlock.api.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Open the ledger store, creating tables when auto-create is on."""
    engine = get_engine()

    # Deployed stores are migrated by Alembic instead
    if settings.LEDGER_AUTO_CREATE:
        await create_schema(engine)
        logger.info("Ledger tables ensured")


async def close_db() -> None:
    """Dispose the engine and forget the session maker."""
    global _engine, _session_maker

    if _engine is None:
        return

    await _engine.dispose()
    _engine = None
    _session_maker = None
    logger.info("Ledger store closed")
