"""Trip generation endpoints - start, checkpoint selection, cancel, retry, SSE."""

import asyncio
import logging
import uuid
from collections.abc import AsyncGenerator, Coroutine
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from backend.app.api.auth import get_current_context
from backend.app.api.deps import get_session_registry, get_trip_store
from backend.app.api.routes.trips import load_owned_trip
from backend.app.db.context import RequestContext
from backend.app.db.repositories import TripStore
from backend.app.models.events import TERMINAL_EVENT_KINDS, SSESessionEvent
from backend.app.models.session import SessionSnapshot
from backend.app.orchestration.errors import (
    GenerationError,
    InsufficientCreditError,
    InvalidTransitionError,
    SessionConflictError,
)
from backend.app.orchestration.orchestrator import TripGenerationOrchestrator
from backend.app.orchestration.registry import SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trips/{trip_id}/generation", tags=["generation"])

# Strong references to running pipeline tasks
_background_tasks: set[asyncio.Task[Any]] = set()

HEARTBEAT_SECONDS = 10.0


class SelectionRequest(BaseModel):
    """Request body for POST .../generation/selection."""

    event_ids: list[str] | None = Field(
        None, description="Events to keep; omit to keep the current selection"
    )


class ToggleRequest(BaseModel):
    """Request body for POST .../generation/selection/toggle."""

    event_id: str = Field(..., min_length=1)


def _spawn(coro: Coroutine[Any, Any, Any], trip_id: uuid.UUID) -> asyncio.Task[Any]:
    """Run a pipeline segment in the background and log how it ended."""
    task = asyncio.create_task(coro)
    _background_tasks.add(task)

    def _done(t: asyncio.Task[Any]) -> None:
        _background_tasks.discard(t)
        if t.cancelled():
            return
        error = t.exception()
        if isinstance(error, GenerationError):
            # Already reflected in the session state
            logger.info(f"[generation] run ended trip_id={trip_id}: {error.message}")
        elif error is not None:
            logger.error(f"[generation] background run crashed trip_id={trip_id}", exc_info=error)

    task.add_done_callback(_done)
    return task


def _conflict(error: GenerationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error.message)


def _payment_required(error: InsufficientCreditError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail={"message": error.message, "reason": error.reason, "balance": error.balance},
    )


async def _owned_session(
    trip_id: uuid.UUID,
    ctx: RequestContext,
    store: TripStore,
    registry: SessionRegistry,
) -> TripGenerationOrchestrator:
    await load_owned_trip(trip_id, ctx, store)
    orchestrator = registry.get(trip_id)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No generation session for this trip"
        )
    return orchestrator


async def _launch_run(
    orchestrator: TripGenerationOrchestrator,
    run: Coroutine[Any, Any, SessionSnapshot],
    wait: bool,
) -> SessionSnapshot:
    """Start a gated run and return once the credit decision is known.

    With wait=True the whole segment is awaited (up to the checkpoint or the
    end of the run).

    Raises:
        HTTPException: 402 when the credit debit is refused
    """
    queue = orchestrator.subscribe(replay=False)
    task = _spawn(run, orchestrator.trip_id)
    try:
        if wait:
            await asyncio.wait({task})
        else:
            # Past gating once anything other than 'started' is published
            getter = asyncio.ensure_future(queue.get())
            while True:
                done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    if getter.result().kind != "started":
                        break
                    getter = asyncio.ensure_future(queue.get())
                    continue
                getter.cancel()
                break
    finally:
        orchestrator.unsubscribe(queue)

    snapshot = orchestrator.snapshot()
    if snapshot.insufficient_credit:
        # The run raises right after publishing the refusal
        await asyncio.wait({task})
        error = None if task.cancelled() else task.exception()
        if isinstance(error, InsufficientCreditError):
            raise _payment_required(error)

    return snapshot


@router.post("", response_model=SessionSnapshot, status_code=status.HTTP_202_ACCEPTED)
async def start_generation(
    trip_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
    wait: Annotated[bool, Query()] = False,
) -> SessionSnapshot:
    """Debit a credit and start generating the trip.

    Returns 202 once the credit gate has passed; the pipeline continues in
    the background. Follow it with GET .../generation or .../stream.

    Raises:
        HTTPException: 402 insufficient credit, 409 already generating
    """
    trip = await load_owned_trip(trip_id, ctx, store)
    await registry.reconcile_orphaned_trip(trip, store)

    try:
        orchestrator = await registry.open(trip_id, ctx.user_id)
    except SessionConflictError as e:
        raise _conflict(e) from e

    return await _launch_run(orchestrator, orchestrator.start(), wait)


@router.get("", response_model=SessionSnapshot)
async def get_generation(
    trip_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionSnapshot:
    """Current snapshot of the trip's generation session."""
    orchestrator = await _owned_session(trip_id, ctx, store, registry)
    return orchestrator.snapshot()


@router.post("/selection", response_model=SessionSnapshot, status_code=status.HTTP_202_ACCEPTED)
async def continue_with_selection(
    trip_id: uuid.UUID,
    request: SelectionRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
    wait: Annotated[bool, Query()] = False,
) -> SessionSnapshot:
    """Resume from the checkpoint with the selected events."""
    orchestrator = await _owned_session(trip_id, ctx, store, registry)
    if not orchestrator.snapshot().is_waiting_for_selection:
        raise _conflict(InvalidTransitionError("Session is not waiting for an event selection"))

    task = _spawn(orchestrator.continue_with_selected_events(request.event_ids), trip_id)
    if wait:
        await asyncio.wait({task})
    else:
        # Let the resume transition happen before answering
        await asyncio.sleep(0)
    return orchestrator.snapshot()


@router.post("/selection/toggle", response_model=SessionSnapshot)
async def toggle_event(
    trip_id: uuid.UUID,
    request: ToggleRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionSnapshot:
    """Add or remove one event from the selection."""
    orchestrator = await _owned_session(trip_id, ctx, store, registry)
    try:
        return orchestrator.toggle_event(request.event_id)
    except InvalidTransitionError as e:
        raise _conflict(e) from e


@router.post("/selection/all", response_model=SessionSnapshot)
async def select_all_events(
    trip_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionSnapshot:
    """Select every found event."""
    orchestrator = await _owned_session(trip_id, ctx, store, registry)
    try:
        return orchestrator.select_all_events()
    except InvalidTransitionError as e:
        raise _conflict(e) from e


@router.delete("/selection", response_model=SessionSnapshot)
async def deselect_all_events(
    trip_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionSnapshot:
    """Clear the selection."""
    orchestrator = await _owned_session(trip_id, ctx, store, registry)
    try:
        return orchestrator.deselect_all_events()
    except InvalidTransitionError as e:
        raise _conflict(e) from e


@router.post("/skip", response_model=SessionSnapshot, status_code=status.HTTP_202_ACCEPTED)
async def skip_events(
    trip_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
    wait: Annotated[bool, Query()] = False,
) -> SessionSnapshot:
    """Resume from the checkpoint without events."""
    orchestrator = await _owned_session(trip_id, ctx, store, registry)
    if not orchestrator.snapshot().is_waiting_for_selection:
        raise _conflict(InvalidTransitionError("Session is not waiting for an event selection"))

    task = _spawn(orchestrator.skip_events(), trip_id)
    if wait:
        await asyncio.wait({task})
    else:
        await asyncio.sleep(0)
    return orchestrator.snapshot()


@router.post("/cancel", response_model=SessionSnapshot)
async def cancel_generation(
    trip_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionSnapshot:
    """Cancel the session (immediately at the checkpoint, otherwise at the next step)."""
    orchestrator = await _owned_session(trip_id, ctx, store, registry)
    return orchestrator.cancel()


@router.post("/retry", response_model=SessionSnapshot, status_code=status.HTTP_202_ACCEPTED)
async def retry_generation(
    trip_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
    wait: Annotated[bool, Query()] = False,
) -> SessionSnapshot:
    """Retry a failed session. Debits another credit."""
    await _owned_session(trip_id, ctx, store, registry)
    try:
        orchestrator = await registry.claim_for_retry(trip_id)
    except InvalidTransitionError as e:
        raise _conflict(e) from e

    return await _launch_run(orchestrator, orchestrator.retry(), wait)


@router.get("/stream")
async def stream_generation(
    trip_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> StreamingResponse:
    """Stream session events via SSE.

    Replays the current run's events, then follows live ones until the run
    reaches a terminal state.
    """
    orchestrator = await _owned_session(trip_id, ctx, store, registry)
    run_number = orchestrator.snapshot().run_number
    queue = orchestrator.subscribe(replay=True)

    async def event_generator() -> AsyncGenerator[str, None]:
        """Generate SSE events."""
        try:
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), HEARTBEAT_SECONDS)
                except TimeoutError:
                    yield "event: heartbeat\n"
                    yield f'data: {{"ts": "{datetime.now(UTC).isoformat()}"}}\n\n'
                    continue

                # Skip events of earlier runs of a retried session
                if event.snapshot.run_number < run_number:
                    continue

                sse_event = SSESessionEvent.from_session_event(event)
                yield "event: session_event\n"
                yield f"data: {sse_event.model_dump_json()}\n\n"

                if event.kind in TERMINAL_EVENT_KINDS:
                    yield "event: done\n"
                    yield f'data: {{"status": "{sse_event.status}"}}\n\n'
                    break
        finally:
            orchestrator.unsubscribe(queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
