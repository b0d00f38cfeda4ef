"""Tests for TripGenerationOrchestrator.

Runs the pipeline against the in-memory store and ledger with scripted
content fetchers. No network, no reveal delay.
"""

import asyncio
import uuid
from collections.abc import Callable
from datetime import date
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from backend.app.config import Settings
from backend.app.db.inmemory import InMemoryCreditLedger, InMemoryTripStore
from backend.app.models.common import TripStatus
from backend.app.models.events import SessionEvent
from backend.app.models.session import GenerationStep, SessionStatus
from backend.app.models.trip import TripRecord
from backend.app.orchestration.errors import (
    AuthRequiredError,
    InsufficientCreditError,
    InvalidTransitionError,
)
from backend.app.orchestration.orchestrator import TripGenerationOrchestrator


class Harness:
    """Orchestrator wired to in-memory collaborators, recording every event."""

    def __init__(
        self,
        trip: TripRecord,
        store: InMemoryTripStore,
        ledger: InMemoryCreditLedger,
        fetchers: Any,
        settings: Settings,
        account_id: uuid.UUID | None,
        sleep_fn: Any = None,
    ) -> None:
        self.trip = trip
        self.store = store
        self.ledger = ledger
        self.fetchers = fetchers
        self.events: list[SessionEvent] = []

        async def no_sleep(_: float) -> None:
            return None

        self.orchestrator = TripGenerationOrchestrator(
            trip.id,
            account_id,
            trip_store=store,
            ledger=ledger,
            fetchers=fetchers,
            settings=settings,
            sleep_fn=sleep_fn or no_sleep,
        )
        self.orchestrator.add_callback(self.events.append)

    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]

    async def stored(self) -> TripRecord:
        return await self.store.fetch(self.trip.id)


@pytest.fixture
def harness_factory(
    trip_factory: Callable[..., TripRecord],
    trip_store: InMemoryTripStore,
    ledger: InMemoryCreditLedger,
    settings: Settings,
    account_id: uuid.UUID,
) -> Callable[..., Any]:
    """Create a trip (3 nights, Paris) and an account with the given credits."""

    async def _make(
        fetchers: Any,
        *,
        credits: int = 1,
        account: uuid.UUID | None = account_id,
        settings_override: Settings | None = None,
        store_trip: bool = True,
        sleep_fn: Any = None,
        **trip_fields: Any,
    ) -> Harness:
        trip = trip_factory(duration_nights=3, **trip_fields)
        if store_trip:
            await trip_store.create_trip(trip)
        await ledger.initialize_account(account_id, credits)
        return Harness(
            trip,
            trip_store,
            ledger,
            fetchers,
            settings_override or settings,
            account,
            sleep_fn=sleep_fn,
        )

    return _make


# ----------------------------------------------------------------------
# Happy paths
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_paris_scenario_checkpoint_then_partial_selection(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    event_factory: Callable[..., Any],
) -> None:
    """Two events found, caller keeps e1 only, itinerary completes."""
    e1, e2 = event_factory("e1"), event_factory("e2")
    fetchers = fake_fetchers(events=[e1, e2], days=days_factory(4))
    h = await harness_factory(fetchers, credits=1)

    snapshot = await h.orchestrator.start()

    assert snapshot.is_waiting_for_selection
    assert not snapshot.is_generating
    assert [e.id for e in snapshot.found_events] == ["e1", "e2"]
    assert snapshot.selected_event_ids == ["e1", "e2"]
    assert fetchers.synthesis_calls == []

    h.orchestrator.toggle_event("e2")
    snapshot = await h.orchestrator.continue_with_selected_events(["e1"])

    assert [e.id for e in fetchers.synthesis_calls[0]["events"]] == ["e1"]
    assert snapshot.is_complete
    assert len(snapshot.generated_days) == 4
    assert snapshot.progress == 1.0
    assert snapshot.completed_trip is not None
    assert len(snapshot.completed_trip.days) == 4

    stored = await h.stored()
    assert stored.status == TripStatus.completed
    assert [d.day_number for d in stored.days] == [1, 2, 3, 4]
    assert await h.ledger.balance(h.orchestrator.account_id) == 0


@pytest.mark.asyncio
async def test_no_events_runs_straight_through(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
) -> None:
    """Without events there is no checkpoint."""
    fetchers = fake_fetchers(events=[], days=days_factory(4))
    h = await harness_factory(fetchers)

    snapshot = await h.orchestrator.start()

    assert snapshot.is_complete
    assert "waiting_for_selection" not in h.kinds()
    assert fetchers.synthesis_calls[0]["events"] == []
    assert h.kinds()[0] == "started"
    assert h.kinds()[-1] == "completed"


@pytest.mark.asyncio
async def test_fetchers_receive_trip_parameters(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    forecast_factory: Callable[..., Any],
) -> None:
    """Weather uses the first city and nights + 1 days; events use all cities."""
    forecast = forecast_factory(date(2030, 5, 1), 4)
    fetchers = fake_fetchers(forecast=forecast, days=days_factory(4))
    h = await harness_factory(fetchers, destination_cities=["Paris", "Lyon"])

    await h.orchestrator.start()

    assert fetchers.weather_calls == [("Paris", date(2030, 5, 1), 4)]
    assert fetchers.event_calls == [(["Paris", "Lyon"], date(2030, 5, 1), 3)]
    assert fetchers.synthesis_calls[0]["forecast"] == forecast


@pytest.mark.asyncio
async def test_weather_defaults_to_today_without_start_date(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
) -> None:
    fetchers = fake_fetchers(days=days_factory(4, start=None))
    h = await harness_factory(fetchers, start_date=None)

    await h.orchestrator.start()

    assert fetchers.weather_calls[0][1] == date.today()
    assert fetchers.event_calls[0][1] is None


@pytest.mark.asyncio
async def test_progress_is_monotonic_and_ends_at_one(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    event_factory: Callable[..., Any],
) -> None:
    fetchers = fake_fetchers(events=[event_factory("e1")], days=days_factory(5))
    h = await harness_factory(fetchers)

    await h.orchestrator.start()
    await h.orchestrator.continue_with_selected_events()

    progress = [e.progress for e in h.events]
    assert progress == sorted(progress)
    assert progress[-1] == 1.0

    sequences = [e.sequence for e in h.events]
    assert sequences == list(range(len(sequences)))


@pytest.mark.asyncio
async def test_days_are_revealed_one_at_a_time(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
) -> None:
    fetchers = fake_fetchers(days=list(reversed(days_factory(3))))
    h = await harness_factory(fetchers)

    await h.orchestrator.start()

    reveals = [e for e in h.events if e.kind == "day_revealed"]
    assert [len(e.snapshot.generated_days) for e in reveals] == [1, 2, 3]
    # Revealed in day order whatever order synthesis returned
    assert [d.day_number for d in reveals[-1].snapshot.generated_days] == [1, 2, 3]
    assert reveals[-1].progress == pytest.approx(0.85)
    assert all(e.step == GenerationStep.detailing for e in reveals)


@pytest.mark.asyncio
async def test_reveal_delay_uses_setting(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    settings: Settings,
) -> None:
    sleep = AsyncMock()
    fetchers = fake_fetchers(days=days_factory(2))
    h = await harness_factory(
        fetchers,
        sleep_fn=sleep,
        settings_override=settings.model_copy(update={"day_reveal_delay_ms": 250}),
    )

    await h.orchestrator.start()

    assert sleep.await_count == 2
    sleep.assert_awaited_with(0.25)


# ----------------------------------------------------------------------
# Checkpoint
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_skip_events_synthesizes_without_events(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    event_factory: Callable[..., Any],
) -> None:
    events = [event_factory("a"), event_factory("b"), event_factory("c")]
    fetchers = fake_fetchers(events=events, days=days_factory(4))
    h = await harness_factory(fetchers)

    await h.orchestrator.start()
    snapshot = await h.orchestrator.skip_events()

    assert fetchers.synthesis_calls[0]["events"] == []
    assert snapshot.selected_event_ids == []
    assert snapshot.is_complete


@pytest.mark.asyncio
async def test_continue_with_subset_uses_exactly_that_subset(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    event_factory: Callable[..., Any],
) -> None:
    events = [event_factory("a"), event_factory("b"), event_factory("c")]
    fetchers = fake_fetchers(events=events, days=days_factory(4))
    h = await harness_factory(fetchers)

    await h.orchestrator.start()
    await h.orchestrator.continue_with_selected_events(["b", "a", "unknown"])

    assert [e.id for e in fetchers.synthesis_calls[0]["events"]] == ["a", "b"]


@pytest.mark.asyncio
async def test_selection_editing_while_waiting(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    event_factory: Callable[..., Any],
) -> None:
    events = [event_factory("a"), event_factory("b")]
    fetchers = fake_fetchers(events=events, days=days_factory(4))
    h = await harness_factory(fetchers)
    await h.orchestrator.start()

    assert h.orchestrator.deselect_all_events().selected_event_ids == []
    assert h.orchestrator.toggle_event("b").selected_event_ids == ["b"]
    assert h.orchestrator.select_all_events().selected_event_ids == ["a", "b"]
    assert h.orchestrator.toggle_event("a").selected_event_ids == ["b"]

    with pytest.raises(InvalidTransitionError):
        h.orchestrator.toggle_event("not-found")

    # No argument keeps the edited selection
    await h.orchestrator.continue_with_selected_events()
    assert [e.id for e in fetchers.synthesis_calls[0]["events"]] == ["b"]
    assert h.kinds().count("selection_changed") == 4


@pytest.mark.asyncio
async def test_resume_operations_require_checkpoint(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
) -> None:
    fetchers = fake_fetchers(days=days_factory(4))
    h = await harness_factory(fetchers)

    with pytest.raises(InvalidTransitionError):
        await h.orchestrator.skip_events()
    with pytest.raises(InvalidTransitionError):
        await h.orchestrator.continue_with_selected_events([])
    with pytest.raises(InvalidTransitionError):
        h.orchestrator.select_all_events()

    await h.orchestrator.start()

    with pytest.raises(InvalidTransitionError):
        await h.orchestrator.start()
    with pytest.raises(InvalidTransitionError):
        await h.orchestrator.skip_events()


# ----------------------------------------------------------------------
# Credit gate and auth
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_insufficient_credit_leaves_trip_untouched(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
) -> None:
    fetchers = fake_fetchers(days=days_factory(4))
    h = await harness_factory(fetchers, credits=0)

    with pytest.raises(InsufficientCreditError) as exc_info:
        await h.orchestrator.start()

    assert exc_info.value.reason == "insufficient_credits"
    assert exc_info.value.balance == 0

    snapshot = h.orchestrator.snapshot()
    assert snapshot.insufficient_credit
    assert snapshot.has_failed
    assert not snapshot.is_generating
    assert h.kinds() == ["started", "insufficient_credit"]

    stored = await h.stored()
    assert stored.status == TripStatus.draft
    assert stored.days == []
    assert fetchers.weather_calls == []
    assert fetchers.synthesis_calls == []


@pytest.mark.asyncio
async def test_premium_account_is_not_debited(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    account_id: uuid.UUID,
) -> None:
    fetchers = fake_fetchers(days=days_factory(4))
    h = await harness_factory(fetchers, credits=0)
    await h.ledger.set_premium(account_id, True)

    snapshot = await h.orchestrator.start()

    assert snapshot.is_complete
    assert await h.ledger.balance(account_id) == 0


@pytest.mark.asyncio
async def test_start_without_account_requires_auth(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    account_id: uuid.UUID,
) -> None:
    fetchers = fake_fetchers()
    h = await harness_factory(fetchers, account=None)

    with pytest.raises(AuthRequiredError):
        await h.orchestrator.start()

    snapshot = h.orchestrator.snapshot()
    assert snapshot.has_failed
    assert snapshot.error_message == "Sign in to generate a trip"
    assert await h.ledger.balance(account_id) == 1
    assert (await h.stored()).status == TripStatus.draft


@pytest.mark.asyncio
async def test_ledger_error_fails_without_touching_stored_status(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
) -> None:
    fetchers = fake_fetchers()
    h = await harness_factory(fetchers)

    with patch.object(h.ledger, "spend", AsyncMock(side_effect=ConnectionError("ledger down"))):
        snapshot = await h.orchestrator.start()

    assert snapshot.has_failed
    assert not snapshot.insufficient_credit
    assert "ledger down" in (snapshot.error_message or "")
    assert (await h.stored()).status == TripStatus.draft


@pytest.mark.asyncio
async def test_refused_credit_wins_over_concurrent_cancel(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
) -> None:
    h = await harness_factory(fake_fetchers(), credits=0)
    spend = h.ledger.spend

    async def spend_while_cancelled(account: uuid.UUID, trip_id: uuid.UUID) -> Any:
        h.orchestrator.cancel()
        return await spend(account, trip_id)

    with patch.object(h.ledger, "spend", spend_while_cancelled):
        with pytest.raises(InsufficientCreditError):
            await h.orchestrator.start()

    snapshot = h.orchestrator.snapshot()
    assert snapshot.insufficient_credit
    assert h.kinds() == ["started", "insufficient_credit"]


# ----------------------------------------------------------------------
# Soft failures
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_soft_failures_do_not_stop_the_run(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
) -> None:
    fetchers = fake_fetchers(
        forecast=RuntimeError("weather down"),
        events=RuntimeError("events down"),
        days=days_factory(4),
    )
    h = await harness_factory(fetchers)

    snapshot = await h.orchestrator.start()

    assert snapshot.is_complete
    assert h.kinds().count("soft_failure") == 2
    assert fetchers.synthesis_calls[0]["events"] == []
    assert fetchers.synthesis_calls[0]["forecast"] == []


@pytest.mark.asyncio
async def test_slow_event_search_times_out_softly(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    settings: Settings,
) -> None:
    class SlowEvents(fake_fetchers):  # type: ignore[misc,valid-type]
        async def search_events(self, *args: Any) -> list[Any]:
            await asyncio.sleep(5)
            return []

    fetchers = SlowEvents(days=days_factory(4))
    h = await harness_factory(
        fetchers,
        settings_override=settings.model_copy(update={"soft_fetch_timeout_seconds": 0.01}),
    )

    snapshot = await h.orchestrator.start()

    assert snapshot.is_complete
    soft = [e for e in h.events if e.kind == "soft_failure"]
    assert len(soft) == 1
    assert "timeout" in soft[0].summary


@pytest.mark.asyncio
async def test_status_update_failure_does_not_mask_completion(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
) -> None:
    fetchers = fake_fetchers(days=days_factory(4))
    h = await harness_factory(fetchers)

    with patch.object(h.store, "update_status", AsyncMock(side_effect=RuntimeError("locked"))):
        snapshot = await h.orchestrator.start()

    assert snapshot.is_complete
    assert len((await h.stored()).days) == 4


# ----------------------------------------------------------------------
# Hard failures and retry
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_synthesis_failure_marks_trip_failed(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    account_id: uuid.UUID,
) -> None:
    fetchers = fake_fetchers(days=RuntimeError("model overloaded"))
    h = await harness_factory(fetchers)

    snapshot = await h.orchestrator.start()

    assert snapshot.has_failed
    assert not snapshot.is_complete
    assert "model overloaded" in (snapshot.error_message or "")
    assert h.kinds()[-1] == "failed"
    assert (await h.stored()).status == TripStatus.failed
    # Attempt consumed, no refund by default
    assert await h.ledger.balance(account_id) == 0


@pytest.mark.asyncio
async def test_empty_synthesis_result_is_a_failure(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
) -> None:
    fetchers = fake_fetchers(days=[])
    h = await harness_factory(fetchers)

    snapshot = await h.orchestrator.start()

    assert snapshot.has_failed
    assert (await h.stored()).status == TripStatus.failed


@pytest.mark.asyncio
async def test_persistence_failure_keeps_days_in_session(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
) -> None:
    fetchers = fake_fetchers(days=days_factory(4))
    h = await harness_factory(fetchers)

    with patch.object(h.store, "save_days", AsyncMock(side_effect=RuntimeError("disk full"))):
        snapshot = await h.orchestrator.start()

    assert snapshot.has_failed
    assert not snapshot.is_complete
    assert len(snapshot.generated_days) == 4
    stored = await h.stored()
    assert stored.status == TripStatus.failed
    assert stored.days == []


@pytest.mark.asyncio
async def test_missing_trip_is_a_hard_failure(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
) -> None:
    fetchers = fake_fetchers()
    h = await harness_factory(fetchers, store_trip=False)

    snapshot = await h.orchestrator.start()

    assert snapshot.has_failed
    assert snapshot.error_message == "Trip not found"
    assert fetchers.weather_calls == []


@pytest.mark.asyncio
async def test_refund_policy_returns_the_credit(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    settings: Settings,
    account_id: uuid.UUID,
) -> None:
    fetchers = fake_fetchers(days=RuntimeError("model overloaded"))
    h = await harness_factory(
        fetchers,
        credits=1,
        settings_override=settings.model_copy(update={"refund_credit_on_failure": True}),
    )

    await h.orchestrator.start()

    assert await h.ledger.balance(account_id) == 1


@pytest.mark.asyncio
async def test_retry_resets_session_and_debits_again(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    event_factory: Callable[..., Any],
    account_id: uuid.UUID,
) -> None:
    fetchers = fake_fetchers(events=[event_factory("e1")], days=days_factory(4))
    h = await harness_factory(fetchers, credits=2)

    await h.orchestrator.start()
    with patch.object(h.store, "save_days", AsyncMock(side_effect=RuntimeError("disk full"))):
        failed = await h.orchestrator.continue_with_selected_events()
    assert failed.has_failed
    assert failed.generated_days

    fetchers.events = []
    snapshot = await h.orchestrator.retry()

    started = [e for e in h.events if e.kind == "started"]
    assert len(started) == 2
    fresh = started[1].snapshot
    assert fresh.run_number == 2
    assert fresh.generated_days == []
    assert fresh.found_events == []
    assert fresh.selected_event_ids == []
    assert fresh.error_message is None
    assert fresh.progress == 0.0

    assert snapshot.is_complete
    assert await h.ledger.balance(account_id) == 0
    assert (await h.stored()).status == TripStatus.completed


@pytest.mark.asyncio
async def test_retry_requires_failed_session(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
) -> None:
    h = await harness_factory(fake_fetchers(days=days_factory(4)))

    with pytest.raises(InvalidTransitionError):
        await h.orchestrator.retry()

    await h.orchestrator.start()
    with pytest.raises(InvalidTransitionError):
        await h.orchestrator.retry()


@pytest.mark.asyncio
async def test_retry_waits_for_failure_cleanup(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    settings: Settings,
    account_id: uuid.UUID,
) -> None:
    """A failed run becomes retryable only after its status write and refund."""
    fetchers = fake_fetchers(days=RuntimeError("model down"))
    h = await harness_factory(
        fetchers,
        credits=2,
        settings_override=settings.model_copy(update={"refund_credit_on_failure": True}),
    )
    reached = asyncio.Event()
    release = asyncio.Event()
    update_status = h.store.update_status

    async def blocking_update_status(trip_id: uuid.UUID, status: TripStatus) -> None:
        if status == TripStatus.failed:
            reached.set()
            await release.wait()
        await update_status(trip_id, status)

    with patch.object(h.store, "update_status", blocking_update_status):
        first_run = asyncio.create_task(h.orchestrator.start())
        await reached.wait()

        assert not h.orchestrator.snapshot().has_failed
        with pytest.raises(InvalidTransitionError):
            await h.orchestrator.retry()

        release.set()
        failed = await first_run

    assert failed.has_failed
    assert await h.ledger.balance(account_id) == 2

    fetchers.days = days_factory(4)
    snapshot = await h.orchestrator.retry()

    assert snapshot.is_complete
    assert (await h.stored()).status == TripStatus.completed
    assert await h.ledger.balance(account_id) == 1
    failed_events = [e for e in h.events if e.kind == "failed"]
    assert [(e.snapshot.run_number, e.snapshot.status) for e in failed_events] == [
        (1, SessionStatus.failed)
    ]
    # Only the current run is kept for replay
    assert {e.snapshot.run_number for e in h.orchestrator.broadcaster.history} == {2}


# ----------------------------------------------------------------------
# Cancellation
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_cancel_at_checkpoint_never_synthesizes(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
    event_factory: Callable[..., Any],
) -> None:
    fetchers = fake_fetchers(events=[event_factory("e1")], days=days_factory(4))
    h = await harness_factory(fetchers)

    await h.orchestrator.start()
    snapshot = h.orchestrator.cancel()

    assert snapshot.status == SessionStatus.cancelled
    with pytest.raises(InvalidTransitionError):
        await h.orchestrator.continue_with_selected_events()
    assert fetchers.synthesis_calls == []
    # Stored status is left as it was
    assert (await h.stored()).status == TripStatus.generating


@pytest.mark.asyncio
async def test_cancel_during_detailing_stops_before_persisting(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
) -> None:
    fetchers = fake_fetchers(days=days_factory(4))
    holder: dict[str, TripGenerationOrchestrator] = {}

    async def cancel_on_first_reveal(_: float) -> None:
        holder["orchestrator"].cancel()

    h = await harness_factory(fetchers, sleep_fn=cancel_on_first_reveal)
    holder["orchestrator"] = h.orchestrator

    snapshot = await h.orchestrator.start()

    assert snapshot.status == SessionStatus.cancelled
    assert len(snapshot.generated_days) == 1
    assert h.kinds()[-1] == "cancelled"
    stored = await h.stored()
    assert stored.days == []
    assert stored.status == TripStatus.generating


@pytest.mark.asyncio
async def test_cancel_after_completion_is_a_no_op(
    harness_factory: Callable[..., Any],
    fake_fetchers: type,
    days_factory: Callable[..., Any],
) -> None:
    h = await harness_factory(fake_fetchers(days=days_factory(4)))
    await h.orchestrator.start()

    snapshot = h.orchestrator.cancel()

    assert snapshot.is_complete
    assert "cancelled" not in h.kinds()
