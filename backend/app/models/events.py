"""Session event models - what happened during a generation run."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from backend.app.models.session import GenerationStep, SessionSnapshot

EventKind = Literal[
    "started",
    "step",
    "soft_failure",
    "waiting_for_selection",
    "selection_changed",
    "resumed",
    "day_revealed",
    "completed",
    "failed",
    "insufficient_credit",
    "cancelled",
]

TERMINAL_EVENT_KINDS: frozenset[str] = frozenset(
    {"completed", "failed", "insufficient_credit", "cancelled"}
)


class SessionEvent(BaseModel):
    """Event published to observers on every session transition."""

    trip_id: UUID
    timestamp: datetime
    sequence: int = Field(..., ge=0, description="Monotonic per session")
    kind: EventKind
    step: GenerationStep
    progress: float
    summary: str = Field(..., description="Human-readable summary")
    snapshot: SessionSnapshot


class SSESessionEvent(BaseModel):
    """Lightweight SSE event for streaming.

    Derived from SessionEvent but omits the full snapshot for transmission.
    """

    trip_id: str
    timestamp: str  # ISO8601
    sequence: int
    kind: EventKind
    step: GenerationStep
    progress: float
    summary: str
    status: str

    @classmethod
    def from_session_event(cls, event: SessionEvent) -> "SSESessionEvent":
        """Convert SessionEvent to SSE format."""
        return cls(
            trip_id=str(event.trip_id),
            timestamp=event.timestamp.isoformat(),
            sequence=event.sequence,
            kind=event.kind,
            step=event.step,
            progress=event.progress,
            summary=event.summary,
            status=event.snapshot.status.value,
        )
