"""SQL implementations of repository interfaces."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from backend.app.db.models import (
    CreditTransactionRow,
    Trip,
    TripActivityRow,
    TripDayRow,
    UserCredits,
)
from backend.app.db.repositories import TripNotFoundError
from backend.app.models.common import TripStatus
from backend.app.models.credits import CreditSpendResult, CreditTransaction, TransactionType
from backend.app.models.trip import DayWeather, TripActivity, TripDay, TripRecord


def _to_record(trip: Trip) -> TripRecord:
    days = [
        TripDay(
            id=day.id,
            day_number=day.day_number,
            date=day.day_date,
            title=day.title,
            summary=day.summary,
            weather=DayWeather.model_validate(day.weather) if day.weather else None,
            activities=[
                TripActivity(
                    id=act.id,
                    slot=act.slot,
                    name=act.name,
                    description=act.description,
                    address=act.address,
                    latitude=act.latitude,
                    longitude=act.longitude,
                    duration_minutes=act.duration_minutes,
                    start_time=act.start_time,
                    end_time=act.end_time,
                    cost=act.cost,
                    tips=act.tips,
                    is_completed=act.is_completed,
                )
                for act in day.activities
            ],
        )
        for day in trip.days
    ]

    return TripRecord(
        id=trip.id,
        user_id=trip.user_id,
        destination_cities=list(trip.destination_cities),
        duration_nights=trip.duration_nights,
        start_date=trip.start_date,
        arrival_time=trip.arrival_time,
        departure_time=trip.departure_time,
        companion=trip.companion,
        arrival_point=trip.arrival_point,
        stay_area=trip.stay_area,
        transport_mode=trip.transport_mode,
        iconic_preference=trip.iconic_preference,
        budget=trip.budget,
        pace=trip.pace,
        must_visit_places=list(trip.must_visit_places or []),
        title=trip.title,
        status=trip.status,
        created_at=trip.created_at,
        updated_at=trip.updated_at,
        days=days,
    )


def _to_day_row(trip_id: uuid.UUID, day: TripDay) -> TripDayRow:
    return TripDayRow(
        id=day.id,
        trip_id=trip_id,
        day_number=day.day_number,
        day_date=day.date,
        title=day.title,
        summary=day.summary,
        weather=day.weather.model_dump(mode="json") if day.weather else None,
        activities=[
            TripActivityRow(
                id=act.id,
                position=position,
                slot=act.slot.value,
                name=act.name,
                description=act.description,
                address=act.address,
                latitude=act.latitude,
                longitude=act.longitude,
                duration_minutes=act.duration_minutes,
                start_time=act.start_time,
                end_time=act.end_time,
                cost=act.cost,
                tips=act.tips,
                is_completed=act.is_completed,
            )
            for position, act in enumerate(day.activities)
        ],
    )


class SqlTripStore:
    """SQL implementation of TripStore."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_trip(self, trip: TripRecord) -> TripRecord:
        """Insert a new trip record."""
        row = Trip(
            id=trip.id,
            user_id=trip.user_id,
            destination_cities=list(trip.destination_cities),
            duration_nights=trip.duration_nights,
            start_date=trip.start_date,
            arrival_time=trip.arrival_time,
            departure_time=trip.departure_time,
            companion=trip.companion.value,
            arrival_point=trip.arrival_point,
            stay_area=trip.stay_area.value,
            transport_mode=trip.transport_mode.value,
            iconic_preference=trip.iconic_preference.value,
            budget=trip.budget.value,
            pace=trip.pace.value,
            must_visit_places=list(trip.must_visit_places),
            title=trip.title,
            status=trip.status.value,
            created_at=trip.created_at,
            updated_at=trip.updated_at,
            days=[_to_day_row(trip.id, day) for day in trip.days],
        )

        async with self._session_factory() as session, session.begin():
            session.add(row)

        return await self.fetch(trip.id)

    async def fetch(self, trip_id: uuid.UUID) -> TripRecord:
        """Fetch trip with days and activities in order."""
        stmt = (
            select(Trip)
            .where(Trip.id == trip_id)
            .options(selectinload(Trip.days).selectinload(TripDayRow.activities))
        )

        async with self._session_factory() as session:
            trip = (await session.execute(stmt)).scalar_one_or_none()
            if trip is None:
                raise TripNotFoundError(trip_id)
            return _to_record(trip)

    async def update_status(self, trip_id: uuid.UUID, status: TripStatus) -> None:
        """Update stored status and stamp updated_at."""
        stmt = (
            update(Trip)
            .where(Trip.id == trip_id)
            .values(status=status.value, updated_at=datetime.now(UTC))
        )

        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise TripNotFoundError(trip_id)

    async def save_days(self, trip_id: uuid.UUID, days: list[TripDay]) -> None:
        """Replace all days of the trip in a single transaction."""
        async with self._session_factory() as session, session.begin():
            exists = await session.scalar(select(Trip.id).where(Trip.id == trip_id))
            if exists is None:
                raise TripNotFoundError(trip_id)

            # SQLite does not enforce ON DELETE CASCADE unless asked to
            old_day_ids = select(TripDayRow.id).where(TripDayRow.trip_id == trip_id)
            await session.execute(
                delete(TripActivityRow).where(TripActivityRow.day_id.in_(old_day_ids))
            )
            await session.execute(delete(TripDayRow).where(TripDayRow.trip_id == trip_id))

            for day in sorted(days, key=lambda d: d.day_number):
                session.add(_to_day_row(trip_id, day))


class SqlCreditLedger:
    """SQL implementation of CreditLedger.

    Debits use a conditional UPDATE (balance >= 1) so two concurrent spends
    against a one-credit account cannot both succeed.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def spend(self, user_id: uuid.UUID, trip_id: uuid.UUID) -> CreditSpendResult:
        """Debit one credit unless the account is premium or empty."""
        async with self._session_factory() as session, session.begin():
            account = await session.get(UserCredits, user_id)
            if account is not None and account.is_premium:
                return CreditSpendResult(ok=True, reason="premium", balance=-1)

            result = await session.execute(
                update(UserCredits)
                .where(UserCredits.user_id == user_id, UserCredits.balance >= 1)
                .values(
                    balance=UserCredits.balance - 1,
                    lifetime_spent=UserCredits.lifetime_spent + 1,
                )
                .execution_options(synchronize_session=False)
            )

            balance = await session.scalar(
                select(UserCredits.balance).where(UserCredits.user_id == user_id)
            )

            if result.rowcount == 0:
                return CreditSpendResult(
                    ok=False, reason="insufficient_credits", balance=balance or 0
                )

            session.add(
                CreditTransactionRow(
                    user_id=user_id,
                    amount=-1,
                    balance_after=balance,
                    type=TransactionType.trip_generation.value,
                    reference_id=str(trip_id),
                )
            )
            return CreditSpendResult(ok=True, reason="credit_spent", balance=balance)

    async def refund(self, user_id: uuid.UUID, trip_id: uuid.UUID) -> int:
        """Return one credit for a failed generation."""
        return await self.add_credits(
            user_id, 1, type=TransactionType.refund, reference_id=str(trip_id)
        )

    async def balance(self, user_id: uuid.UUID) -> int:
        """Current balance."""
        async with self._session_factory() as session:
            balance = await session.scalar(
                select(UserCredits.balance).where(UserCredits.user_id == user_id)
            )
            return balance or 0

    async def add_credits(
        self,
        user_id: uuid.UUID,
        amount: int,
        *,
        type: TransactionType = TransactionType.purchase,
        reference_id: str | None = None,
    ) -> int:
        """Add credits to an account, creating it if needed."""
        if amount <= 0:
            raise ValueError("amount must be positive")

        async with self._session_factory() as session, session.begin():
            account = await session.get(UserCredits, user_id, with_for_update=True)
            if account is None:
                account = UserCredits(
                    user_id=user_id, balance=0, lifetime_earned=0, lifetime_spent=0
                )
                session.add(account)

            account.balance += amount
            account.lifetime_earned += amount
            await session.flush()

            session.add(
                CreditTransactionRow(
                    user_id=user_id,
                    amount=amount,
                    balance_after=account.balance,
                    type=type.value,
                    reference_id=reference_id,
                )
            )
            return account.balance

    async def initialize_account(self, user_id: uuid.UUID, welcome_credits: int) -> int:
        """Create the account with a welcome balance (no-op if it exists)."""
        async with self._session_factory() as session, session.begin():
            account = await session.get(UserCredits, user_id)
            if account is not None:
                return account.balance

            session.add(
                UserCredits(
                    user_id=user_id,
                    balance=welcome_credits,
                    lifetime_earned=welcome_credits,
                    lifetime_spent=0,
                )
            )
            await session.flush()
            session.add(
                CreditTransactionRow(
                    user_id=user_id,
                    amount=welcome_credits,
                    balance_after=welcome_credits,
                    type=TransactionType.welcome_bonus.value,
                )
            )
            return welcome_credits

    async def set_premium(self, user_id: uuid.UUID, is_premium: bool) -> None:
        """Toggle premium status."""
        async with self._session_factory() as session, session.begin():
            account = await session.get(UserCredits, user_id)
            if account is None:
                session.add(UserCredits(user_id=user_id, balance=0, is_premium=is_premium))
            else:
                account.is_premium = is_premium

    async def transactions(
        self, user_id: uuid.UUID, limit: int = 50
    ) -> list[CreditTransaction]:
        """Ledger entries, newest first."""
        stmt = (
            select(CreditTransactionRow)
            .where(CreditTransactionRow.user_id == user_id)
            .order_by(CreditTransactionRow.created_at.desc(), CreditTransactionRow.id)
            .limit(limit)
        )

        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [
                CreditTransaction(
                    user_id=row.user_id,
                    amount=row.amount,
                    balance_after=row.balance_after,
                    type=TransactionType(row.type),
                    reference_id=row.reference_id,
                    created_at=row.created_at,
                )
                for row in rows
            ]
