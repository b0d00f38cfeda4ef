"""Generation session state owned by the orchestrator."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from backend.app.models.session import GenerationStep, SessionSnapshot, SessionStatus
from backend.app.models.tool_results import DailyForecast, LiveEvent
from backend.app.models.trip import TripDay, TripRecord

# Progress reported when each step is entered
STEP_PROGRESS: dict[GenerationStep, float] = {
    GenerationStep.analyzing: 0.08,
    GenerationStep.weather: 0.16,
    GenerationStep.events: 0.25,
    GenerationStep.planning: 0.4,
    GenerationStep.detailing: 0.65,
    GenerationStep.finalizing: 0.92,
}

# Share of the bar covered by incremental day reveals (0.65 -> 0.85)
DETAILING_SPAN = 0.2


@dataclass
class GenerationSession:
    """Mutable state of one generation session.

    Written only by the orchestrator task; observers receive snapshots.
    """

    trip_id: UUID
    account_id: UUID | None = None
    run_number: int = 1
    status: SessionStatus = SessionStatus.idle
    step: GenerationStep = GenerationStep.analyzing
    progress: float = 0.0
    generated_days: list[TripDay] = field(default_factory=list)
    found_events: list[LiveEvent] = field(default_factory=list)
    selected_event_ids: list[str] = field(default_factory=list)
    insufficient_credit: bool = False
    error_message: str | None = None
    completed_trip: TripRecord | None = None
    cancel_requested: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    # Working data for the current run
    trip: TripRecord | None = None
    forecast: list[DailyForecast] = field(default_factory=list)

    # Debug/tracking
    sequence_counter: int = 0

    def next_sequence(self) -> int:
        """Get next sequence number for events."""
        seq = self.sequence_counter
        self.sequence_counter += 1
        return seq

    def advance(self, step: GenerationStep, progress: float | None = None) -> None:
        """Move to a step. Step and progress never go backwards within a run."""
        if step.order < self.step.order:
            raise ValueError(f"Step cannot regress from {self.step.value} to {step.value}")
        self.step = step
        self.set_progress(STEP_PROGRESS[step] if progress is None else progress)

    def set_progress(self, progress: float) -> None:
        self.progress = max(self.progress, min(progress, 1.0))
        self.updated_at = datetime.now(UTC)

    def reset_for_retry(self) -> None:
        """Start a logically fresh run; only trip and account identity survive."""
        self.run_number += 1
        self.status = SessionStatus.idle
        self.step = GenerationStep.analyzing
        self.progress = 0.0
        self.generated_days = []
        self.found_events = []
        self.selected_event_ids = []
        self.insufficient_credit = False
        self.error_message = None
        self.completed_trip = None
        self.cancel_requested = False
        self.trip = None
        self.forecast = []
        self.updated_at = datetime.now(UTC)

    @property
    def confirmed_events(self) -> list[LiveEvent]:
        """Found events the caller kept, in discovery order."""
        selected = set(self.selected_event_ids)
        return [e for e in self.found_events if e.id in selected]

    def snapshot(self) -> SessionSnapshot:
        """Immutable copy for observers."""
        return SessionSnapshot(
            trip_id=self.trip_id,
            run_number=self.run_number,
            status=self.status,
            step=self.step,
            progress=self.progress,
            generated_days=[d.model_copy(deep=True) for d in self.generated_days],
            found_events=list(self.found_events),
            selected_event_ids=list(self.selected_event_ids),
            insufficient_credit=self.insufficient_credit,
            error_message=self.error_message,
            completed_trip=(
                self.completed_trip.model_copy(deep=True) if self.completed_trip else None
            ),
        )
