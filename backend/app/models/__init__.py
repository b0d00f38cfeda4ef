"""Models package - re-exports for convenience."""

from backend.app.models.common import (
    ActivitySlot,
    BudgetType,
    CompanionType,
    IconicPreference,
    PaceType,
    StayArea,
    TransportMode,
    TripStatus,
)
from backend.app.models.credits import CreditSpendResult, CreditTransaction, TransactionType
from backend.app.models.events import SessionEvent, SSESessionEvent
from backend.app.models.session import GenerationStep, SessionSnapshot, SessionStatus
from backend.app.models.tool_results import DailyForecast, LiveEvent
from backend.app.models.trip import DayWeather, TripActivity, TripDay, TripRecord

__all__ = [
    # Common
    "TripStatus",
    "CompanionType",
    "StayArea",
    "TransportMode",
    "IconicPreference",
    "BudgetType",
    "PaceType",
    "ActivitySlot",
    # Trip
    "TripRecord",
    "TripDay",
    "TripActivity",
    "DayWeather",
    # Tool results
    "DailyForecast",
    "LiveEvent",
    # Credits
    "CreditSpendResult",
    "CreditTransaction",
    "TransactionType",
    # Session
    "GenerationStep",
    "SessionStatus",
    "SessionSnapshot",
    "SessionEvent",
    "SSESessionEvent",
]
