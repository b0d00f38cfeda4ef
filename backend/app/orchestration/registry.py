"""Registry of live generation sessions, keyed by trip id."""

import asyncio
import logging
import time
from collections.abc import Callable
from uuid import UUID

from backend.app.db.repositories import TripStore
from backend.app.models.common import TripStatus
from backend.app.models.events import SessionEvent
from backend.app.models.session import SessionStatus
from backend.app.models.trip import TripRecord
from backend.app.orchestration.errors import InvalidTransitionError, SessionConflictError
from backend.app.orchestration.orchestrator import TripGenerationOrchestrator

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[UUID, UUID | None], TripGenerationOrchestrator]

_FAILED_KINDS = frozenset({"failed", "insufficient_credit"})


class SessionRegistry:
    """At most one live session per trip.

    Completed and cancelled sessions are released as soon as they finish.
    A failed session is kept so that it can be retried or inspected, and
    released once it has stayed failed for failed_ttl_seconds. Expired
    sessions are swept whenever the registry is used.
    """

    def __init__(
        self,
        factory: OrchestratorFactory,
        *,
        failed_ttl_seconds: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._failed_ttl = failed_ttl_seconds
        self._clock = clock
        self._sessions: dict[UUID, TripGenerationOrchestrator] = {}
        self._failed_at: dict[UUID, float] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, trip_id: UUID) -> TripGenerationOrchestrator | None:
        """Live (or recently failed) session for a trip."""
        self._release_expired()
        return self._sessions.get(trip_id)

    def is_live(self, trip_id: UUID) -> bool:
        orchestrator = self._sessions.get(trip_id)
        return orchestrator is not None and not orchestrator.session.status.is_terminal

    async def open(self, trip_id: UUID, account_id: UUID | None) -> TripGenerationOrchestrator:
        """Create the session for a trip, replacing a failed one.

        Raises:
            SessionConflictError: A live session already exists for the trip
        """
        async with self._lock:
            self._release_expired()
            if self.is_live(trip_id):
                raise SessionConflictError(trip_id)

            orchestrator = self._factory(trip_id, account_id)
            orchestrator.add_callback(self._track_callback(orchestrator))
            self._sessions[trip_id] = orchestrator
            self._failed_at.pop(trip_id, None)
            logger.info(f"[registry] session opened trip_id={trip_id}")
            return orchestrator

    async def claim_for_retry(self, trip_id: UUID) -> TripGenerationOrchestrator:
        """Take the failed session of a trip for a retry run.

        The session is no longer subject to expiry; it is tracked again if
        the retry fails.

        Raises:
            InvalidTransitionError: No failed session is registered for the trip
        """
        async with self._lock:
            self._release_expired()
            orchestrator = self._sessions.get(trip_id)
            if orchestrator is None or orchestrator.session.status != SessionStatus.failed:
                raise InvalidTransitionError("Only failed sessions can be retried")

            self._failed_at.pop(trip_id, None)
            return orchestrator

    def release(self, trip_id: UUID) -> None:
        """Forget the session for a trip."""
        self._failed_at.pop(trip_id, None)
        if self._sessions.pop(trip_id, None) is not None:
            logger.info(f"[registry] session released trip_id={trip_id}")

    def _release_expired(self) -> None:
        now = self._clock()
        expired = [
            trip_id
            for trip_id, failed_at in self._failed_at.items()
            if now - failed_at >= self._failed_ttl
        ]
        for trip_id in expired:
            orchestrator = self._sessions.get(trip_id)
            if orchestrator is not None and orchestrator.session.status != SessionStatus.failed:
                # Retried since; no longer a failed session
                self._failed_at.pop(trip_id, None)
                continue
            logger.info(f"[registry] failed session expired trip_id={trip_id}")
            self.release(trip_id)

    def _track_callback(
        self, orchestrator: TripGenerationOrchestrator
    ) -> Callable[[SessionEvent], None]:
        def track(event: SessionEvent) -> None:
            if self._sessions.get(event.trip_id) is not orchestrator:
                return
            if event.kind in ("completed", "cancelled"):
                self.release(event.trip_id)
            elif event.kind in _FAILED_KINDS:
                self._failed_at[event.trip_id] = self._clock()
            elif event.kind == "started":
                self._failed_at.pop(event.trip_id, None)

        return track

    async def reconcile_orphaned_trip(self, trip: TripRecord, store: TripStore) -> TripRecord:
        """Fail a trip stuck in 'generating' with no live session behind it.

        Happens after a cancel or a process restart mid-run. The trip can then
        be generated again.

        Returns:
            The trip as now stored
        """
        self._release_expired()
        if trip.status != TripStatus.generating or self.is_live(trip.id):
            return trip

        logger.warning(f"[registry] orphaned generating trip marked failed trip_id={trip.id}")
        await store.update_status(trip.id, TripStatus.failed)
        return await store.fetch(trip.id)
