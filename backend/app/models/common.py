"""Common types and enums shared across all models."""

from enum import Enum


class TripStatus(str, Enum):
    """Persisted lifecycle of a trip record.

    The stored status is the only outcome that survives a process restart:
    draft -> generating -> completed | failed.
    """

    draft = "draft"
    generating = "generating"
    completed = "completed"
    failed = "failed"


class CompanionType(str, Enum):
    """Who is travelling."""

    solo = "solo"
    friends = "friends"
    family = "family"
    couple = "couple"


class StayArea(str, Enum):
    """Preferred accommodation area."""

    center = "center"
    beach = "beach"
    downtown = "downtown"
    unknown = "unknown"


class TransportMode(str, Enum):
    """Preferred way of getting around."""

    walking = "walking"
    public_transport = "public_transport"
    taxi = "taxi"
    rental_car = "rental_car"
    mixed = "mixed"


class IconicPreference(str, Enum):
    """Appetite for well-known tourist attractions."""

    essential = "essential"
    optional = "optional"
    avoid = "avoid"


class BudgetType(str, Enum):
    """Spending level."""

    budget = "budget"
    moderate = "moderate"
    luxury = "luxury"
    flexible = "flexible"


class PaceType(str, Enum):
    """Activity density per day."""

    relaxed = "relaxed"
    moderate = "moderate"
    intensive = "intensive"


class ActivitySlot(str, Enum):
    """Part of the day an activity belongs to."""

    morning = "morning"
    noon = "noon"
    afternoon = "afternoon"
    evening = "evening"
