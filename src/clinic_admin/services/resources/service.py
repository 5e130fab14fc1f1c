from __future__ import annotations

import logging
from datetime import date, time
from typing import List, Optional
from uuid import UUID

from src.clinic_admin.domain.models.resource import (
    ACTIVE_BOOKING_STATUSES,
    Availability,
    BlackoutCreateRequest,
    BookingCreateRequest,
    BookingUpdateRequest,
    DateRange,
    ResourceCreateRequest,
    ResourceSummary,
    ResourceTypeCreateRequest,
)
from src.clinic_admin.errors import ConflictError, NotFoundError, ValidationError
from src.clinic_admin.infra.db.models import (
    ResourceBlackoutORM,
    ResourceBookingORM,
    ResourceORM,
    ResourceTypeORM,
)
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.time_utils import utcnow

logger = logging.getLogger(__name__)


def _minutes_between(start: time, end: time) -> int:
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)


class ResourceService:
    # Types and resources

    def create_resource_type(self, store: Store, payload: ResourceTypeCreateRequest) -> ResourceTypeORM:
        return store.add(ResourceTypeORM(**payload.model_dump()))

    def list_resource_types(self, store: Store) -> List[ResourceTypeORM]:
        return store.scalars(store.select(ResourceTypeORM).order_by(ResourceTypeORM.name))

    def create_resource(self, store: Store, payload: ResourceCreateRequest) -> ResourceORM:
        if store.get(ResourceTypeORM, payload.resource_type_id) is None:
            raise NotFoundError("Resource type not found")
        resource = store.add(ResourceORM(**payload.model_dump()))
        logger.info("Created resource %s", resource.id)
        return resource

    def list_resources(self, store: Store, include_inactive: bool = False) -> List[ResourceORM]:
        stmt = store.select(ResourceORM)
        if not include_inactive:
            stmt = stmt.where(ResourceORM.is_active.is_(True))
        return store.scalars(stmt.order_by(ResourceORM.name))

    def get_resource(self, store: Store, resource_id: UUID) -> ResourceORM:
        resource = store.get(ResourceORM, resource_id)
        if resource is None:
            raise NotFoundError("Resource not found")
        return resource

    def capacity(self, resource: ResourceORM) -> int:
        if resource.capacity_override:
            return resource.capacity_override
        if resource.resource_type is not None and resource.resource_type.default_capacity:
            return resource.resource_type.default_capacity
        return 1

    def add_blackout(self, store: Store, resource_id: UUID, payload: BlackoutCreateRequest) -> ResourceBlackoutORM:
        self.get_resource(store, resource_id)
        return store.add(ResourceBlackoutORM(resource_id=resource_id, **payload.model_dump()))

    def availability(self, store: Store, resource_id: UUID, start_date: date, end_date: date) -> Availability:
        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date")
        resource = self.get_resource(store, resource_id)

        bookings = store.scalars(
            store.select(ResourceBookingORM)
            .where(
                ResourceBookingORM.resource_id == resource_id,
                ResourceBookingORM.booking_date >= start_date,
                ResourceBookingORM.booking_date <= end_date,
                ResourceBookingORM.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .order_by(ResourceBookingORM.booking_date, ResourceBookingORM.start_time)
        )
        blackouts = store.scalars(
            store.select(ResourceBlackoutORM)
            .where(
                ResourceBlackoutORM.resource_id == resource_id,
                ResourceBlackoutORM.blackout_date >= start_date,
                ResourceBlackoutORM.blackout_date <= end_date,
            )
            .order_by(ResourceBlackoutORM.blackout_date)
        )
        return Availability.model_validate(
            {
                "resource": ResourceSummary(id=resource.id, name=resource.name, capacity=self.capacity(resource)),
                "date_range": DateRange(start_date=start_date, end_date=end_date),
                "bookings": bookings,
                "blackouts": blackouts,
                "availability_schedule": resource.availability_schedule,
            },
            from_attributes=True,
        )

    # Bookings

    def find_conflicts(
        self,
        store: Store,
        resource_id: UUID,
        booking_date: date,
        start_time: time,
        end_time: time,
        exclude_id: Optional[UUID] = None,
    ) -> List[ResourceBookingORM]:
        """Active bookings on the same resource and day whose range overlaps.

        Ranges are half-open, so a booking ending at 11:00 does not collide
        with one starting at 11:00.
        """

        stmt = store.select(ResourceBookingORM).where(
            ResourceBookingORM.resource_id == resource_id,
            ResourceBookingORM.booking_date == booking_date,
            ResourceBookingORM.status.in_(ACTIVE_BOOKING_STATUSES),
            ResourceBookingORM.start_time < end_time,
            ResourceBookingORM.end_time > start_time,
        )
        if exclude_id is not None:
            stmt = stmt.where(ResourceBookingORM.id != exclude_id)
        return store.scalars(stmt)

    def _raise_conflict(self, conflicts: List[ResourceBookingORM]) -> None:
        first = conflicts[0]
        raise ConflictError(
            "Time slot conflicts with existing booking",
            details=f"Resource is booked from {first.start_time.strftime('%H:%M')} to {first.end_time.strftime('%H:%M')}",
            conflicting_booking_id=str(first.id),
        )

    def create_booking(self, store: Store, payload: BookingCreateRequest, booked_by: Optional[UUID]) -> ResourceBookingORM:
        resource = self.get_resource(store, payload.resource_id)
        if not resource.is_active:
            raise ValidationError("Resource is not active")

        conflicts = self.find_conflicts(
            store, resource.id, payload.booking_date, payload.start_time, payload.end_time
        )
        if conflicts:
            self._raise_conflict(conflicts)

        requires_approval = resource.resource_type is not None and resource.resource_type.requires_approval
        booking = ResourceBookingORM(
            **payload.model_dump(exclude={"duration_minutes"}),
            duration_minutes=payload.duration_minutes or _minutes_between(payload.start_time, payload.end_time),
            booked_by_user_id=booked_by,
            status="pending" if requires_approval else "confirmed",
        )
        store.add(booking)
        logger.info("Booked resource %s on %s as %s", resource.id, booking.booking_date, booking.status)
        return booking

    def get_booking(self, store: Store, booking_id: UUID) -> ResourceBookingORM:
        booking = store.get(ResourceBookingORM, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def update_booking(
        self, store: Store, booking_id: UUID, payload: BookingUpdateRequest, updated_by: UUID
    ) -> ResourceBookingORM:
        booking = self.get_booking(store, booking_id)
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")

        booking_date = changes["booking_date"] if changes.get("booking_date") is not None else booking.booking_date
        start_time = changes["start_time"] if changes.get("start_time") is not None else booking.start_time
        end_time = changes["end_time"] if changes.get("end_time") is not None else booking.end_time
        retimed = any(field in changes for field in ("booking_date", "start_time", "end_time"))
        if retimed:
            if end_time <= start_time:
                raise ValidationError("end_time must be after start_time")
            status = changes.get("status") or booking.status
            if status in ACTIVE_BOOKING_STATUSES:
                conflicts = self.find_conflicts(
                    store, booking.resource_id, booking_date, start_time, end_time, exclude_id=booking.id
                )
                if conflicts:
                    self._raise_conflict(conflicts)
            booking.booking_date = booking_date
            booking.start_time = start_time
            booking.end_time = end_time
            booking.duration_minutes = _minutes_between(start_time, end_time)

        if "status" in changes:
            booking.status = changes["status"]
            if changes["status"] == "cancelled":
                booking.cancelled_at = utcnow()
                booking.cancelled_by = updated_by
                booking.cancellation_reason = changes.get("cancellation_reason")
        if "notes" in changes:
            booking.notes = changes["notes"]
        return store.save(booking)

    def list_bookings(
        self,
        store: Store,
        resource_id: Optional[UUID] = None,
        booking_date: Optional[date] = None,
        status: Optional[str] = None,
    ) -> List[ResourceBookingORM]:
        stmt = store.select(ResourceBookingORM)
        if resource_id is not None:
            stmt = stmt.where(ResourceBookingORM.resource_id == resource_id)
        if booking_date is not None:
            stmt = stmt.where(ResourceBookingORM.booking_date == booking_date)
        if status:
            stmt = stmt.where(ResourceBookingORM.status == status)
        return store.scalars(stmt.order_by(ResourceBookingORM.booking_date, ResourceBookingORM.start_time))


resource_service = ResourceService()
