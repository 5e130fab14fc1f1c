"""Provider schedules, appointment types and open-slot search.

Schedule times are wall-clock times in UTC. Weekly blocks use Sunday as day 0.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from src.clinic_admin.domain.models.scheduling import (
    RELEASED_APPOINTMENT_STATUSES,
    AppointmentTypeCreateRequest,
    AppointmentTypeUpdateRequest,
    AvailableBlock,
    Buffers,
    ProviderAvailability,
    ProviderScheduleCreateRequest,
    ProviderScheduleUpdateRequest,
    RecommendationMetadata,
    ScheduleExceptionCreateRequest,
    SlotRecommendation,
    SlotRecommendations,
)
from src.clinic_admin.errors import NotFoundError, ValidationError
from src.clinic_admin.infra.db.models import (
    AppointmentORM,
    AppointmentTypeORM,
    ProviderScheduleExceptionORM,
    ProviderScheduleORM,
    UserORM,
)
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.time_utils import today, utcnow

logger = logging.getLogger(__name__)

Interval = Tuple[datetime, datetime]

DEFAULT_SLOT_MINUTES = 30
MAX_SEARCH_DAYS = 90


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes; stored values are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _at(day: date, moment: time) -> datetime:
    return datetime.combine(day, moment, tzinfo=timezone.utc)


def day_of_week(day: date) -> int:
    """Sunday-first weekday index (Sunday is 0, Saturday is 6)."""

    return (day.weekday() + 1) % 7


def time_of_day(moment: datetime) -> str:
    if moment.hour < 12:
        return "morning"
    if moment.hour < 17:
        return "afternoon"
    return "evening"


def free_slots(window: Interval, busy: List[Interval], duration_minutes: int) -> List[Interval]:
    """Gaps inside ``window`` not covered by ``busy`` that fit ``duration_minutes``.

    Busy periods are merged first, so overlapping breaks and appointments
    count once. Gaps are returned whole; callers pick a start inside them.
    """

    window_start, window_end = window
    needed = timedelta(minutes=duration_minutes)

    merged: List[List[datetime]] = []
    for busy_start, busy_end in sorted(busy):
        if busy_end <= window_start or busy_start >= window_end:
            continue
        if merged and busy_start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], busy_end)
        else:
            merged.append([busy_start, busy_end])

    slots: List[Interval] = []
    cursor = window_start
    for busy_start, busy_end in merged:
        if busy_start - cursor >= needed:
            slots.append((cursor, busy_start))
        cursor = max(cursor, busy_end)
    if window_end - cursor >= needed:
        slots.append((cursor, window_end))
    return slots


def score_slot(
    start: datetime, now: datetime, appointment_type: Optional[AppointmentTypeORM] = None
) -> Tuple[int, List[str]]:
    """Score a candidate start between 0 and 100 and say why."""

    score = 100
    reasons: List[str] = []
    hour = start.hour
    weekday = day_of_week(start.date())
    period = time_of_day(start)

    if appointment_type is not None:
        if appointment_type.preferred_time_of_day == period:
            score += 10
            reasons.append(f"{appointment_type.name} recommended for {period}")
        if appointment_type.preferred_start_time and appointment_type.preferred_end_time:
            if appointment_type.preferred_start_time.hour <= hour < appointment_type.preferred_end_time.hour:
                score += 10
                reasons.append("Within recommended time for this appointment type")

    days_out = (start - now).days
    if days_out <= 0:
        score -= 50
        reasons.append("Same day - may be too soon")
    elif days_out == 1:
        score += 5
        reasons.append("Next day availability")
    elif days_out <= 3:
        score += 20
        reasons.append("Very soon availability")
    elif days_out <= 7:
        score += 15
        reasons.append("Available within a week")
    elif days_out <= 14:
        score += 10
        reasons.append("Available within two weeks")
    elif days_out <= 30:
        score += 5
    else:
        score -= 5

    if 8 <= hour < 10:
        score += 5
        reasons.append("Early morning slot")
    if hour < 8 or hour >= 18:
        score -= 10
    if weekday in (0, 6):
        score -= 5

    return max(0, min(100, score)), reasons or ["Available time slot"]


class SchedulingService:
    # Appointment types

    def create_appointment_type(
        self, store: Store, payload: AppointmentTypeCreateRequest, created_by: UUID
    ) -> AppointmentTypeORM:
        appointment_type = store.add(
            AppointmentTypeORM(**payload.model_dump(), created_by=created_by, updated_by=created_by)
        )
        logger.info("Created appointment type %s", appointment_type.id)
        return appointment_type

    def list_appointment_types(self, store: Store, include_inactive: bool = False) -> List[AppointmentTypeORM]:
        stmt = store.select(AppointmentTypeORM)
        if not include_inactive:
            stmt = stmt.where(AppointmentTypeORM.is_active.is_(True))
        return store.scalars(stmt.order_by(AppointmentTypeORM.name))

    def get_appointment_type(self, store: Store, appointment_type_id: UUID) -> AppointmentTypeORM:
        appointment_type = store.get(AppointmentTypeORM, appointment_type_id)
        if appointment_type is None:
            raise NotFoundError("Appointment type not found")
        return appointment_type

    def update_appointment_type(
        self, store: Store, appointment_type_id: UUID, payload: AppointmentTypeUpdateRequest, updated_by: UUID
    ) -> AppointmentTypeORM:
        appointment_type = self.get_appointment_type(store, appointment_type_id)
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        for field, value in changes.items():
            setattr(appointment_type, field, value)
        appointment_type.updated_by = updated_by
        return store.save(appointment_type)

    def delete_appointment_type(self, store: Store, appointment_type_id: UUID) -> None:
        appointment_type = self.get_appointment_type(store, appointment_type_id)
        store.delete(appointment_type)
        logger.info("Deleted appointment type %s", appointment_type_id)

    # Provider schedules

    def _get_provider(self, store: Store, provider_id: UUID) -> UserORM:
        provider = store.get(UserORM, provider_id)
        if provider is None or not provider.is_active:
            raise NotFoundError("Provider not found")
        return provider

    def create_schedule(self, store: Store, payload: ProviderScheduleCreateRequest) -> ProviderScheduleORM:
        self._get_provider(store, payload.provider_id)
        schedule = store.add(
            ProviderScheduleORM(
                **payload.model_dump(exclude={"effective_from"}),
                effective_from=payload.effective_from or today(),
            )
        )
        logger.info(
            "Added %s block for provider %s on day %s", schedule.schedule_type, schedule.provider_id, schedule.day_of_week
        )
        return schedule

    def list_schedules(self, store: Store, provider_id: Optional[UUID] = None) -> List[ProviderScheduleORM]:
        stmt = store.select(ProviderScheduleORM)
        if provider_id is not None:
            stmt = stmt.where(ProviderScheduleORM.provider_id == provider_id)
        return store.scalars(
            stmt.order_by(ProviderScheduleORM.provider_id, ProviderScheduleORM.day_of_week, ProviderScheduleORM.start_time)
        )

    def get_schedule(self, store: Store, schedule_id: UUID) -> ProviderScheduleORM:
        schedule = store.get(ProviderScheduleORM, schedule_id)
        if schedule is None:
            raise NotFoundError("Schedule not found")
        return schedule

    def update_schedule(
        self, store: Store, schedule_id: UUID, payload: ProviderScheduleUpdateRequest
    ) -> ProviderScheduleORM:
        schedule = self.get_schedule(store, schedule_id)
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        start_time = changes["start_time"] if changes.get("start_time") is not None else schedule.start_time
        end_time = changes["end_time"] if changes.get("end_time") is not None else schedule.end_time
        if end_time <= start_time:
            raise ValidationError("end_time must be after start_time")
        for field, value in changes.items():
            setattr(schedule, field, value)
        return store.save(schedule)

    def delete_schedule(self, store: Store, schedule_id: UUID) -> None:
        store.delete(self.get_schedule(store, schedule_id))

    def add_exception(self, store: Store, payload: ScheduleExceptionCreateRequest) -> ProviderScheduleExceptionORM:
        self._get_provider(store, payload.provider_id)
        return store.add(ProviderScheduleExceptionORM(**payload.model_dump()))

    def list_exceptions(
        self,
        store: Store,
        provider_id: Optional[UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[ProviderScheduleExceptionORM]:
        stmt = store.select(ProviderScheduleExceptionORM)
        if provider_id is not None:
            stmt = stmt.where(ProviderScheduleExceptionORM.provider_id == provider_id)
        if start_date is not None:
            stmt = stmt.where(ProviderScheduleExceptionORM.exception_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(ProviderScheduleExceptionORM.exception_date <= end_date)
        return store.scalars(stmt.order_by(ProviderScheduleExceptionORM.exception_date))

    # Availability

    def _booked(self, store: Store, provider_id: UUID, start_date: date, end_date: date) -> Dict[date, List[Interval]]:
        appointments = store.scalars(
            store.select(AppointmentORM).where(
                AppointmentORM.provider_id == provider_id,
                AppointmentORM.is_deleted.is_(False),
                AppointmentORM.status.notin_(RELEASED_APPOINTMENT_STATUSES),
                AppointmentORM.appointment_date >= datetime.combine(start_date, time.min),
                AppointmentORM.appointment_date < datetime.combine(end_date + timedelta(days=1), time.min),
            )
        )
        booked: Dict[date, List[Interval]] = {}
        for appointment in appointments:
            start = _as_utc(appointment.appointment_date)
            end = start + timedelta(minutes=appointment.duration_minutes)
            booked.setdefault(start.date(), []).append((start, end))
        return booked

    def availability(
        self,
        store: Store,
        provider_id: UUID,
        start_date: date,
        end_date: date,
        duration_minutes: Optional[int] = None,
        appointment_type_id: Optional[UUID] = None,
    ) -> ProviderAvailability:
        """Open blocks for a provider: weekly working hours minus breaks and booked appointments.

        A day-off exception removes the day; a special-hours exception replaces
        that day's working blocks. Appointment-type buffers widen every booked
        appointment before it is subtracted.
        """

        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date")
        if (end_date - start_date).days >= MAX_SEARCH_DAYS:
            raise ValidationError(f"Date range must not exceed {MAX_SEARCH_DAYS} days")
        self._get_provider(store, provider_id)

        appointment_type = None
        if appointment_type_id is not None:
            appointment_type = self.get_appointment_type(store, appointment_type_id)
        if duration_minutes is None:
            duration_minutes = appointment_type.default_duration_minutes if appointment_type else DEFAULT_SLOT_MINUTES
        pre = appointment_type.buffer_before_minutes if appointment_type else 0
        post = appointment_type.buffer_after_minutes if appointment_type else 0

        schedules = self.list_schedules(store, provider_id)
        exceptions = {e.exception_date: e for e in self.list_exceptions(store, provider_id, start_date, end_date)}
        booked = self._booked(store, provider_id, start_date, end_date)

        blocks: List[AvailableBlock] = []
        day = start_date
        while day <= end_date:
            weekday = day_of_week(day)
            exception = exceptions.get(day)
            if exception is not None and not exception.is_available:
                day += timedelta(days=1)
                continue

            in_effect = [
                s
                for s in schedules
                if s.day_of_week == weekday
                and s.effective_from <= day
                and (s.effective_until is None or s.effective_until >= day)
            ]
            if exception is not None:
                windows = [(_at(day, exception.start_time), _at(day, exception.end_time))]
            else:
                windows = [(_at(day, s.start_time), _at(day, s.end_time)) for s in in_effect if s.is_available]
            busy = [(_at(day, s.start_time), _at(day, s.end_time)) for s in in_effect if not s.is_available]
            busy += [
                (start - timedelta(minutes=pre), end + timedelta(minutes=post)) for start, end in booked.get(day, [])
            ]

            for window in sorted(windows):
                for slot_start, slot_end in free_slots(window, busy, duration_minutes):
                    blocks.append(
                        AvailableBlock(start_time=slot_start, end_time=slot_end, day_of_week=weekday, slot_date=day)
                    )
            day += timedelta(days=1)

        logger.info("Provider %s has %d open blocks between %s and %s", provider_id, len(blocks), start_date, end_date)
        return ProviderAvailability(
            provider_id=provider_id,
            start_date=start_date,
            end_date=end_date,
            duration_minutes=duration_minutes,
            buffers=Buffers(pre=pre, post=post),
            available_blocks=blocks,
        )

    def recommend(
        self,
        store: Store,
        provider_id: UUID,
        start_date: date,
        end_date: date,
        appointment_type_id: Optional[UUID] = None,
        top_n: int = 5,
        now: Optional[datetime] = None,
    ) -> SlotRecommendations:
        """Rank the opening of each available block, best first."""

        appointment_type = None
        if appointment_type_id is not None:
            appointment_type = self.get_appointment_type(store, appointment_type_id)
        availability = self.availability(store, provider_id, start_date, end_date, appointment_type_id=appointment_type_id)
        duration = timedelta(minutes=availability.duration_minutes)
        now = now or utcnow()

        scored: List[SlotRecommendation] = []
        for block in availability.available_blocks:
            score, reasons = score_slot(block.start_time, now, appointment_type)
            scored.append(
                SlotRecommendation(
                    start_time=block.start_time,
                    end_time=block.start_time + duration,
                    confidence_score=score,
                    reasons=reasons,
                    slot_date=block.slot_date,
                    day_of_week=block.day_of_week,
                    time_of_day=time_of_day(block.start_time),
                )
            )
        # Stable sort keeps earlier slots first among equal scores.
        scored.sort(key=lambda slot: slot.confidence_score, reverse=True)

        return SlotRecommendations(
            provider_id=provider_id,
            appointment_type_id=appointment_type_id,
            start_date=start_date,
            end_date=end_date,
            total_slots_available=len(availability.available_blocks),
            recommendations=scored[:top_n],
            metadata=RecommendationMetadata(
                appointment_type=appointment_type.name if appointment_type else "General",
                duration_minutes=availability.duration_minutes,
            ),
        )


scheduling_service = SchedulingService()
