"""Dependency providers for the generation API.

SQL-backed store and ledger are used when DATABASE_URL is set, in-memory
ones otherwise. Tests replace these through app.dependency_overrides.
"""

from functools import lru_cache
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.adapters.content import ContentFetchers, HttpContentFetchers
from backend.app.config import get_settings
from backend.app.db.engine import create_session_factory, get_async_engine
from backend.app.db.inmemory import InMemoryCreditLedger, InMemoryTripStore
from backend.app.db.repositories import CreditLedger, TripStore
from backend.app.db.sql_repositories import SqlCreditLedger, SqlTripStore
from backend.app.orchestration.orchestrator import TripGenerationOrchestrator
from backend.app.orchestration.registry import SessionRegistry


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the global async engine."""
    return create_session_factory(get_async_engine())


@lru_cache
def get_trip_store() -> TripStore:
    """Process-wide trip store."""
    if get_settings().database_url:
        return SqlTripStore(get_session_factory())
    return InMemoryTripStore()


@lru_cache
def get_credit_ledger() -> CreditLedger:
    """Process-wide credit ledger."""
    if get_settings().database_url:
        return SqlCreditLedger(get_session_factory())
    return InMemoryCreditLedger()


@lru_cache
def get_content_fetchers() -> ContentFetchers:
    """Weather, events and synthesis clients."""
    return HttpContentFetchers(get_settings())


@lru_cache
def get_session_registry() -> SessionRegistry:
    """Process-wide registry of live generation sessions."""
    settings = get_settings()
    store = get_trip_store()
    ledger = get_credit_ledger()
    fetchers = get_content_fetchers()

    def factory(trip_id: UUID, account_id: UUID | None) -> TripGenerationOrchestrator:
        return TripGenerationOrchestrator(
            trip_id,
            account_id,
            trip_store=store,
            ledger=ledger,
            fetchers=fetchers,
            settings=settings,
        )

    return SessionRegistry(factory, failed_ttl_seconds=settings.failed_session_ttl_seconds)
