"""Trip generation orchestrator.

Runs one generation session for one trip:

    gating -> analyzing -> weather/events -> [checkpoint] -> planning
           -> detailing -> finalizing -> completed

Weather and event search are soft dependencies (failures become empty
results). Trip fetch, synthesis and persistence are hard dependencies
(failures end the run as failed). When events are found the run parks at
the checkpoint until continue_with_selected_events() or skip_events() is
called. Cancellation is cooperative and checked after every await.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, date, datetime
from typing import Any, TypeVar
from uuid import UUID

from backend.app.adapters.content import ContentFetchers
from backend.app.config import Settings, get_settings
from backend.app.db.repositories import CreditLedger, TripNotFoundError, TripStore
from backend.app.models.common import TripStatus
from backend.app.models.events import EventKind, SessionEvent
from backend.app.models.session import GenerationStep, SessionSnapshot, SessionStatus
from backend.app.models.tool_results import LiveEvent
from backend.app.orchestration.errors import (
    AuthRequiredError,
    GenerationError,
    HardFetchError,
    InsufficientCreditError,
    InvalidTransitionError,
    PersistenceError,
    SynthesisError,
)
from backend.app.orchestration.observers import EventCallback, SessionBroadcaster
from backend.app.orchestration.state import DETAILING_SPAN, STEP_PROGRESS, GenerationSession
from backend.app.utils.logging import StructuredGenerationLogger
from backend.app.utils.metrics import PrometheusGenerationMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _RunCancelled(Exception):
    """Raised at a suspension point after cancel() was requested."""


class TripGenerationOrchestrator:
    """Owns a single GenerationSession and sequences the pipeline.

    All session state is written here; observers get snapshots through
    subscribe() / add_callback().
    """

    def __init__(
        self,
        trip_id: UUID,
        account_id: UUID | None,
        *,
        trip_store: TripStore,
        ledger: CreditLedger,
        fetchers: ContentFetchers,
        settings: Settings | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
        metrics: PrometheusGenerationMetrics | None = None,
        structured_logger: StructuredGenerationLogger | None = None,
    ) -> None:
        self.session = GenerationSession(trip_id=trip_id, account_id=account_id)
        self.broadcaster = SessionBroadcaster()
        self._store = trip_store
        self._ledger = ledger
        self._fetchers = fetchers
        self._settings = settings or get_settings()
        self._sleep = sleep_fn
        self._metrics = metrics or PrometheusGenerationMetrics()
        self._log = structured_logger or StructuredGenerationLogger()
        self._credit_spent = False
        self._step_started = time.perf_counter()

    @property
    def trip_id(self) -> UUID:
        return self.session.trip_id

    @property
    def account_id(self) -> UUID | None:
        return self.session.account_id

    def snapshot(self) -> SessionSnapshot:
        """Read-only view of the session."""
        return self.session.snapshot()

    def subscribe(self, *, replay: bool = True) -> asyncio.Queue[SessionEvent]:
        """Queue receiving every session event (see SessionBroadcaster)."""
        return self.broadcaster.subscribe(replay=replay)

    def unsubscribe(self, queue: asyncio.Queue[SessionEvent]) -> None:
        self.broadcaster.unsubscribe(queue)

    def add_callback(self, callback: EventCallback) -> None:
        self.broadcaster.add_callback(callback)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def start(self) -> SessionSnapshot:
        """Gate on credit and run the pipeline up to the checkpoint or the end.

        Returns:
            Snapshot after the run parked at the checkpoint, completed,
            failed on a hard dependency, or was cancelled

        Raises:
            AuthRequiredError: No account on the session
            InsufficientCreditError: Credit debit was refused
            InvalidTransitionError: Session was already started
        """
        session = self.session
        if session.status != SessionStatus.idle:
            raise InvalidTransitionError(
                f"Cannot start a session that is {session.status.value}"
            )

        if session.account_id is None:
            error = AuthRequiredError()
            session.status = SessionStatus.failed
            session.error_message = error.message
            self._metrics.inc_run("auth_required")
            self._emit("failed", error.message)
            raise error

        session.status = SessionStatus.gating
        self._step_started = time.perf_counter()
        self._emit("started", f"Generation run {session.run_number} started")

        await self._guard(self._run_until_checkpoint())
        return self.snapshot()

    async def continue_with_selected_events(
        self, event_ids: Iterable[str] | None = None
    ) -> SessionSnapshot:
        """Resume from the checkpoint with the chosen events.

        Args:
            event_ids: Events to keep; ids not found for this run are ignored.
                None keeps the current selection.

        Raises:
            InvalidTransitionError: Session is not waiting for a selection
        """
        self._require_waiting("continue")
        session = self.session

        if event_ids is not None:
            wanted = set(event_ids)
            session.selected_event_ids = [e.id for e in session.found_events if e.id in wanted]

        confirmed = session.confirmed_events
        session.status = SessionStatus.generating
        self._emit("resumed", f"Continuing with {len(confirmed)} selected event(s)")

        await self._guard(self._run_from_planning(confirmed))
        return self.snapshot()

    async def skip_events(self) -> SessionSnapshot:
        """Resume from the checkpoint without any events.

        Raises:
            InvalidTransitionError: Session is not waiting for a selection
        """
        self._require_waiting("skip events")
        self.session.selected_event_ids = []
        self.session.status = SessionStatus.generating
        self._emit("resumed", "Continuing without events")

        await self._guard(self._run_from_planning([]))
        return self.snapshot()

    def toggle_event(self, event_id: str) -> SessionSnapshot:
        """Add or remove one found event from the selection."""
        self._require_waiting("change the selection")
        session = self.session
        if event_id not in {e.id for e in session.found_events}:
            raise InvalidTransitionError(f"Event {event_id} was not found for this trip")

        selected = set(session.selected_event_ids)
        selected.symmetric_difference_update({event_id})
        session.selected_event_ids = [e.id for e in session.found_events if e.id in selected]
        self._emit("selection_changed", f"{len(selected)} event(s) selected")
        return self.snapshot()

    def select_all_events(self) -> SessionSnapshot:
        self._require_waiting("change the selection")
        self.session.selected_event_ids = [e.id for e in self.session.found_events]
        self._emit("selection_changed", "All events selected")
        return self.snapshot()

    def deselect_all_events(self) -> SessionSnapshot:
        self._require_waiting("change the selection")
        self.session.selected_event_ids = []
        self._emit("selection_changed", "No events selected")
        return self.snapshot()

    def cancel(self) -> SessionSnapshot:
        """Request cancellation.

        A session parked at the checkpoint (or never started) is cancelled
        immediately. A running session stops at its next suspension point.
        Already committed debits and writes are kept and the stored trip
        status is not changed. Terminal sessions are left as they are.
        """
        session = self.session
        if session.status.is_terminal:
            return self.snapshot()

        if session.status in (SessionStatus.idle, SessionStatus.waiting_for_selection):
            self._mark_cancelled()
        else:
            session.cancel_requested = True
            logger.info(f"[orchestrator] cancel requested trip_id={session.trip_id}")
        return self.snapshot()

    async def retry(self) -> SessionSnapshot:
        """Start a fresh run after a failure. Debits another credit.

        Raises:
            InvalidTransitionError: Session has not failed
            InsufficientCreditError: Credit debit was refused
        """
        if self.session.status != SessionStatus.failed:
            raise InvalidTransitionError(
                f"Only failed sessions can be retried (session is {self.session.status.value})"
            )

        self.session.reset_for_retry()
        self.broadcaster.clear_history()
        self._credit_spent = False
        return await self.start()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run_until_checkpoint(self) -> None:
        session = self.session
        account_id = session.account_id
        assert account_id is not None

        # Credit gate
        try:
            result = await self._ledger.spend(account_id, session.trip_id)
        except Exception as e:
            self._metrics.inc_credit_spend("error")
            # The pipeline never started: leave the stored status alone
            self._fail_before_start(f"Could not verify credits: {e}")
            return

        if not result.ok:
            self._metrics.inc_credit_spend(result.reason)
            error = InsufficientCreditError(result.reason, result.balance)
            session.status = SessionStatus.failed
            session.insufficient_credit = True
            session.error_message = error.message
            self._metrics.inc_run("insufficient_credit")
            self._emit("insufficient_credit", error.message)
            raise error

        self._metrics.inc_credit_spend(result.reason)
        self._credit_spent = result.reason == "credit_spent"
        self._check_cancelled()
        session.status = SessionStatus.generating

        # Analyzing: load the trip and mark it generating
        self._advance(GenerationStep.analyzing, "Analyzing trip")
        try:
            trip = await self._hard_call(self._store.fetch(session.trip_id))
        except TripNotFoundError as e:
            raise HardFetchError("Trip not found") from e
        except Exception as e:
            raise HardFetchError(f"Could not load trip: {e}") from e
        session.trip = trip
        self._check_cancelled()

        await self._update_status_best_effort(TripStatus.generating)
        self._check_cancelled()

        # Weather and events run concurrently; both are soft
        self._advance(GenerationStep.weather, "Checking the weather")
        start_date = trip.start_date or date.today()
        forecast, events = await asyncio.gather(
            self._soft_fetch(
                "weather",
                self._fetchers.weather(trip.destination_cities[0], start_date, trip.day_count),
            ),
            self._soft_fetch(
                "events",
                self._fetchers.search_events(
                    trip.destination_cities, trip.start_date, trip.duration_nights
                ),
            ),
        )
        self._check_cancelled()

        session.forecast = forecast
        self._advance(GenerationStep.events, f"Found {len(events)} event(s)")
        session.found_events = events

        if events:
            # Checkpoint: park until the caller resumes or cancels
            session.selected_event_ids = [e.id for e in events]
            session.status = SessionStatus.waiting_for_selection
            self._emit(
                "waiting_for_selection",
                f"Waiting for event selection ({len(events)} found)",
            )
            return

        await self._run_from_planning([])

    async def _run_from_planning(self, events: list[LiveEvent]) -> None:
        session = self.session
        trip = session.trip
        assert trip is not None

        # Planning: synthesis is a hard dependency
        self._advance(GenerationStep.planning, "Planning the itinerary")
        try:
            days = await self._hard_call(
                self._fetchers.synthesize_itinerary(trip, events, session.forecast)
            )
        except Exception as e:
            raise SynthesisError(f"Itinerary synthesis failed: {e}") from e
        if not days:
            raise SynthesisError("Itinerary synthesis returned no days")
        self._check_cancelled()

        # Detailing: reveal days one at a time
        self._advance(GenerationStep.detailing, f"Detailing {len(days)} day(s)")
        ordered = sorted(days, key=lambda d: d.day_number)
        delay = self._settings.day_reveal_delay_ms / 1000
        start_progress = STEP_PROGRESS[GenerationStep.detailing]
        for i, day in enumerate(ordered):
            session.generated_days.append(day)
            session.set_progress(start_progress + (i + 1) / len(ordered) * DETAILING_SPAN)
            self._emit("day_revealed", f"Day {day.day_number}: {day.title or 'untitled'}")
            await self._sleep(delay)
            self._check_cancelled()

        # Finalizing: persist, mark completed, re-read the stored trip
        self._advance(GenerationStep.finalizing, "Saving the itinerary")
        try:
            await self._hard_call(self._store.save_days(session.trip_id, ordered))
        except Exception as e:
            raise PersistenceError(f"Could not save the itinerary: {e}") from e
        self._check_cancelled()

        await self._update_status_best_effort(TripStatus.completed)
        self._check_cancelled()

        try:
            completed = await self._hard_call(self._store.fetch(session.trip_id))
        except Exception as e:
            raise PersistenceError(f"Could not reload the saved trip: {e}") from e

        self._record_step_latency()
        session.completed_trip = completed
        session.status = SessionStatus.completed
        session.set_progress(1.0)
        self._metrics.inc_run("completed")
        self._emit("completed", f"Itinerary ready with {len(ordered)} day(s)")

    async def _guard(self, run: Awaitable[None]) -> None:
        """Run a pipeline segment, converting hard failures and cancellation."""
        try:
            await run
        except _RunCancelled:
            self._mark_cancelled()
        except (HardFetchError, SynthesisError, PersistenceError) as e:
            await self._fail(e)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _hard_call(self, call: Awaitable[T]) -> T:
        timeout = self._settings.hard_call_timeout_seconds
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout)

    async def _soft_fetch(self, source: str, call: Awaitable[list[Any]]) -> list[Any]:
        """Await an enrichment call; any failure becomes an empty result."""
        try:
            return await asyncio.wait_for(call, self._settings.soft_fetch_timeout_seconds)
        except TimeoutError:
            reason = "timeout"
        except Exception as e:
            reason = type(e).__name__
            logger.warning(
                f"[orchestrator] {source} fetch failed trip_id={self.session.trip_id}: {e}"
            )

        self._metrics.inc_soft_failure(source, reason)
        self._emit("soft_failure", f"{source} unavailable ({reason}), continuing without it")
        return []

    async def _update_status_best_effort(self, status: TripStatus) -> bool:
        """Write the stored status; failures are logged, never raised."""
        try:
            await self._hard_call(self._store.update_status(self.session.trip_id, status))
            return True
        except Exception as e:
            self._metrics.inc_status_update_failure(status.value)
            logger.warning(
                f"[orchestrator] status update to {status.value} failed "
                f"trip_id={self.session.trip_id}: {e}"
            )
            return False

    async def _fail(self, error: GenerationError) -> None:
        """Clean up after a hard failure, then mark the session failed.

        The session only becomes retryable once the stored status write and
        any refund have finished.
        """
        session = self.session
        logger.error(
            f"[orchestrator] run failed trip_id={session.trip_id} step={session.step.value}: "
            f"{error.message}",
            exc_info=error,
        )

        await self._update_status_best_effort(TripStatus.failed)

        if self._credit_spent and self._settings.refund_credit_on_failure:
            assert session.account_id is not None
            try:
                balance = await self._ledger.refund(session.account_id, session.trip_id)
                self._credit_spent = False
                logger.info(
                    f"[orchestrator] credit refunded trip_id={session.trip_id} balance={balance}"
                )
            except Exception as e:
                logger.warning(f"[orchestrator] refund failed trip_id={session.trip_id}: {e}")

        session.status = SessionStatus.failed
        session.error_message = error.message
        self._metrics.inc_run("failed")
        self._emit("failed", error.message)

    def _fail_before_start(self, message: str) -> None:
        self.session.status = SessionStatus.failed
        self.session.error_message = message
        logger.error(f"[orchestrator] run failed trip_id={self.session.trip_id}: {message}")
        self._metrics.inc_run("failed")
        self._emit("failed", message)

    def _mark_cancelled(self) -> None:
        session = self.session
        session.status = SessionStatus.cancelled
        session.cancel_requested = False
        self._metrics.inc_run("cancelled")
        self._emit("cancelled", "Generation cancelled")

    def _check_cancelled(self) -> None:
        if self.session.cancel_requested:
            raise _RunCancelled()

    def _require_waiting(self, action: str) -> None:
        if self.session.status != SessionStatus.waiting_for_selection:
            raise InvalidTransitionError(
                f"Cannot {action}: session is {self.session.status.value}"
            )

    def _record_step_latency(self) -> None:
        now = time.perf_counter()
        self._metrics.record_step_latency(
            self.session.step.value, (now - self._step_started) * 1000
        )
        self._step_started = now

    def _advance(self, step: GenerationStep, summary: str) -> None:
        if step != self.session.step:
            self._record_step_latency()
        self.session.advance(step)
        self._emit("step", summary)

    def _emit(self, kind: EventKind, summary: str) -> None:
        session = self.session
        event = SessionEvent(
            trip_id=session.trip_id,
            timestamp=datetime.now(UTC),
            sequence=session.next_sequence(),
            kind=kind,
            step=session.step,
            progress=session.progress,
            summary=summary,
            snapshot=session.snapshot(),
        )
        self._log.log_transition(
            session.trip_id,
            session.account_id,
            session.step.value,
            session.progress,
            kind,
            error_reason=session.error_message if kind == "failed" else None,
        )
        self.broadcaster.publish(event)
