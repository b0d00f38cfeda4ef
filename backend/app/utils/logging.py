"""Structured logging for generation transitions."""

import logging
from typing import Any
from uuid import UUID

logger = logging.getLogger(__name__)

# Outcomes logged at WARNING instead of INFO
_WARNING_OUTCOMES = frozenset({"soft_failure", "insufficient_credit", "cancelled"})


class StructuredGenerationLogger:
    """Structured logger for generation session transitions."""

    def log_transition(
        self,
        trip_id: UUID,
        account_id: UUID | None,
        step: str,
        progress: float,
        outcome: str,
        error_reason: str | None = None,
    ) -> None:
        """Log a session transition with structured data."""
        log_data: dict[str, Any] = {
            "trip_id": str(trip_id),
            "account_id": str(account_id) if account_id else None,
            "step": step,
            "progress": round(progress, 3),
            "outcome": outcome,
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Generation transition: {step} - {outcome}"

        if outcome == "failed":
            logger.error(log_msg, extra={"structured": log_data})
        elif outcome in _WARNING_OUTCOMES:
            logger.warning(log_msg, extra={"structured": log_data})
        else:
            logger.info(log_msg, extra={"structured": log_data})


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at application startup."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
