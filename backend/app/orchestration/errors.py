"""Generation error taxonomy."""

from uuid import UUID

from backend.app.db.repositories import TripNotFoundError


class GenerationError(Exception):
    """Base class for generation failures. The message is shown to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthRequiredError(GenerationError):
    """No authenticated account; the pipeline never starts."""

    def __init__(self, message: str = "Sign in to generate a trip") -> None:
        super().__init__(message)


class InsufficientCreditError(GenerationError):
    """Credit debit was refused; the pipeline never starts."""

    def __init__(self, reason: str, balance: int) -> None:
        super().__init__(f"Not enough credits to generate a trip ({reason})")
        self.reason = reason
        self.balance = balance


class HardFetchError(GenerationError):
    """Trip record could not be loaded."""


class SynthesisError(GenerationError):
    """Itinerary synthesis failed or returned nothing usable."""


class PersistenceError(GenerationError):
    """Generated days could not be saved or the trip could not be re-read."""


class InvalidTransitionError(GenerationError):
    """Operation is not valid in the session's current state."""


class SessionConflictError(GenerationError):
    """A live generation session already exists for the trip."""

    def __init__(self, trip_id: UUID) -> None:
        super().__init__(f"Trip {trip_id} is already being generated")
        self.trip_id = trip_id


__all__ = [
    "GenerationError",
    "AuthRequiredError",
    "InsufficientCreditError",
    "HardFetchError",
    "SynthesisError",
    "PersistenceError",
    "InvalidTransitionError",
    "SessionConflictError",
    "TripNotFoundError",
]
