"""Generation session models - read-only view handed to observers."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from backend.app.models.tool_results import LiveEvent
from backend.app.models.trip import TripDay, TripRecord


class GenerationStep(str, Enum):
    """Pipeline steps, in execution order."""

    analyzing = "analyzing"
    weather = "weather"
    events = "events"
    planning = "planning"
    detailing = "detailing"
    finalizing = "finalizing"

    @property
    def order(self) -> int:
        """Position of the step within a run."""
        return list(GenerationStep).index(self)


class SessionStatus(str, Enum):
    """Run status of a generation session."""

    idle = "idle"
    gating = "gating"
    generating = "generating"
    waiting_for_selection = "waiting_for_selection"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.completed, SessionStatus.failed, SessionStatus.cancelled)


class SessionSnapshot(BaseModel):
    """Immutable copy of a GenerationSession at one point in time."""

    trip_id: UUID
    run_number: int
    status: SessionStatus
    step: GenerationStep
    progress: float = Field(..., ge=0.0, le=1.0)
    generated_days: list[TripDay]
    found_events: list[LiveEvent]
    selected_event_ids: list[str]
    insufficient_credit: bool = False
    error_message: str | None = None
    completed_trip: TripRecord | None = None

    @property
    def is_generating(self) -> bool:
        return self.status == SessionStatus.generating

    @property
    def is_waiting_for_selection(self) -> bool:
        return self.status == SessionStatus.waiting_for_selection

    @property
    def is_complete(self) -> bool:
        return self.status == SessionStatus.completed

    @property
    def has_failed(self) -> bool:
        return self.status == SessionStatus.failed
