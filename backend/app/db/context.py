"""Request context for account scoping."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class RequestContext:
    """Authenticated account making the request.

    Credits are debited from this account and trips are scoped to it.
    """

    user_id: UUID
