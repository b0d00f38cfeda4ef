"""Trip endpoints - create a draft and read it back."""

import uuid
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from backend.app.api.auth import get_current_context
from backend.app.api.deps import get_session_registry, get_trip_store
from backend.app.db.context import RequestContext
from backend.app.db.repositories import TripNotFoundError, TripStore
from backend.app.models.common import (
    BudgetType,
    CompanionType,
    IconicPreference,
    PaceType,
    StayArea,
    TransportMode,
)
from backend.app.models.trip import TripRecord
from backend.app.orchestration.registry import SessionRegistry

router = APIRouter(prefix="/trips", tags=["trips"])


class CreateTripRequest(BaseModel):
    """Request body for POST /trips."""

    destination_cities: list[str] = Field(..., min_length=1)
    duration_nights: int = Field(..., ge=0, le=30)
    start_date: date | None = None
    arrival_time: str | None = Field(None, description="HH:MM")
    departure_time: str | None = Field(None, description="HH:MM")
    companion: CompanionType = CompanionType.solo
    arrival_point: str | None = None
    stay_area: StayArea = StayArea.center
    transport_mode: TransportMode = TransportMode.mixed
    iconic_preference: IconicPreference = IconicPreference.optional
    budget: BudgetType = BudgetType.moderate
    pace: PaceType = PaceType.moderate
    must_visit_places: list[str] = Field(default_factory=list)
    title: str | None = None


async def load_owned_trip(trip_id: uuid.UUID, ctx: RequestContext, store: TripStore) -> TripRecord:
    """Fetch a trip and check it belongs to the caller.

    Raises:
        HTTPException: 404 if missing, 403 if owned by another account
    """
    try:
        trip = await store.fetch(trip_id)
    except TripNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found") from e

    if trip.user_id != ctx.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    return trip


@router.post("", response_model=TripRecord, status_code=status.HTTP_201_CREATED)
async def create_trip(
    request: CreateTripRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
) -> TripRecord:
    """Create a draft trip owned by the caller."""
    trip = TripRecord(id=uuid.uuid4(), user_id=ctx.user_id, **request.model_dump())
    return await store.create_trip(trip)


@router.get("/{trip_id}", response_model=TripRecord)
async def get_trip(
    trip_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[TripStore, Depends(get_trip_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> TripRecord:
    """Get a trip with its days.

    A trip left in 'generating' without a live session (cancelled or
    interrupted run) is reported, and stored, as failed.
    """
    trip = await load_owned_trip(trip_id, ctx, store)
    return await registry.reconcile_orphaned_trip(trip, store)
