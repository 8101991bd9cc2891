"""Role-aware entry point to the scheduling core.

Each verb checks the caller's capabilities, takes the per-entity locks it
needs, row-locks what it mutates, delegates to the stores/lifecycle, and
commits once. Any failure rolls the whole verb back.
"""

import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gymschedule.models.registration import Registration
from gymschedule.models.schedule import ScheduleSlot
from gymschedule.models.trainer import Trainer, WeeklySlot
from gymschedule.scheduling.availability import AvailabilityStore, WindowRequest, entry_value
from gymschedule.scheduling.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from gymschedule.scheduling.locks import (
    EntityLocks,
    registration_key,
    slot_key,
    trainer_key,
)
from gymschedule.scheduling.registrations import RegistrationLifecycle
from gymschedule.scheduling.roles import Actor, Capability, Role
from gymschedule.scheduling.schedule_store import NormalizedScheduleStore
from gymschedule.scheduling.synchronizer import ScheduleSynchronizer, slot_value
from gymschedule.scheduling.types import DayOfWeek, RegistrationStatus

logger = logging.getLogger(__name__)


# Row locks taken inside the transaction so writers in other processes queue
# behind each other. SQLite ignores FOR UPDATE; its single writer serializes.
def trainer_row_lock(trainer_id: int) -> Select:
    return select(Trainer.id).where(Trainer.id == trainer_id).with_for_update()


def slot_row_lock(slot_id: int) -> Select:
    return select(ScheduleSlot.id).where(ScheduleSlot.id == slot_id).with_for_update()


def registration_row_lock(registration_id: int) -> Select:
    return (
        select(Registration.id)
        .where(Registration.id == registration_id)
        .with_for_update(of=Registration)
    )


class SchedulingFacade:
    def __init__(
        self,
        schedule_store: NormalizedScheduleStore | None = None,
        synchronizer: ScheduleSynchronizer | None = None,
        availability: AvailabilityStore | None = None,
        registrations: RegistrationLifecycle | None = None,
        locks: EntityLocks | None = None,
    ) -> None:
        self._slots = schedule_store or NormalizedScheduleStore()
        self._sync = synchronizer or ScheduleSynchronizer(self._slots)
        self._availability = availability or AvailabilityStore(self._sync)
        self._registrations = registrations or RegistrationLifecycle(self._slots)
        self._locks = locks or EntityLocks()

    # -- availability -----------------------------------------------------

    async def list_availability(
        self, session: AsyncSession, actor: Actor, trainer_id: int
    ) -> list[WeeklySlot]:
        if not actor.is_trainer(trainer_id):
            actor.require(Capability.VIEW_ANY_AVAILABILITY)
        return await self._availability.list_slots(session, trainer_id)

    async def declare_availability(
        self,
        session: AsyncSession,
        actor: Actor,
        trainer_id: int,
        day: DayOfWeek | str,
        start: str,
        end: str,
    ) -> WeeklySlot:
        self._require_availability_owner(actor, trainer_id)
        async with self._locks.hold(trainer_key(trainer_id)), self._unit_of_work(session):
            await session.execute(trainer_row_lock(trainer_id))
            return await self._availability.add(session, trainer_id, day, start, end)

    async def withdraw_availability(
        self, session: AsyncSession, actor: Actor, trainer_id: int, slot_id: int
    ) -> WeeklySlot:
        self._require_availability_owner(actor, trainer_id)
        async with self._locks.hold(trainer_key(trainer_id)):
            match_id = await self._matching_slot_id(session, trainer_id, slot_id)
            async with self._locks.hold(*self._slot_keys(match_id)), self._unit_of_work(session):
                await session.execute(trainer_row_lock(trainer_id))
                return await self._availability.remove(session, trainer_id, slot_id)

    async def replace_availability(
        self,
        session: AsyncSession,
        actor: Actor,
        trainer_id: int,
        windows: Sequence[WindowRequest],
    ) -> list[WeeklySlot]:
        self._require_availability_owner(actor, trainer_id)
        async with self._locks.hold(trainer_key(trainer_id)):
            slots = await self._slots.list_by_trainer(session, trainer_id)
            slot_locks = self._locks.hold(*(slot_key(s.id) for s in slots))
            async with slot_locks, self._unit_of_work(session):
                await session.execute(trainer_row_lock(trainer_id))
                return await self._availability.replace(session, trainer_id, windows)

    async def sync_availability(self, session: AsyncSession, actor: Actor, trainer_id: int) -> int:
        self._require_availability_owner(actor, trainer_id)
        async with self._locks.hold(trainer_key(trainer_id)), self._unit_of_work(session):
            await session.execute(trainer_row_lock(trainer_id))
            # Raises NotFoundError for an unknown trainer
            await self._availability.list_slots(session, trainer_id)
            return await self._sync.sync_from_availability(session, trainer_id)

    # -- normalized schedule slots ----------------------------------------

    async def list_schedule_slots(
        self, session: AsyncSession, actor: Actor, trainer_id: int, available_only: bool = False
    ) -> list[ScheduleSlot]:
        if available_only:
            return await self._slots.list_available(session, trainer_id)
        return await self._slots.list_by_trainer(session, trainer_id)

    async def edit_schedule_slot(
        self, session: AsyncSession, actor: Actor, slot_id: int, fields: Mapping[str, Any]
    ) -> ScheduleSlot:
        """Edit a schedule slot; a window change also moves its weekly slot."""
        trainer_id = await self._slot_trainer(session, slot_id)
        self._require_availability_owner(actor, trainer_id)
        locks = self._locks.hold(trainer_key(trainer_id), slot_key(slot_id))
        async with locks, self._unit_of_work(session):
            await session.execute(trainer_row_lock(trainer_id))
            slot = await self._slots.get(session, slot_id)
            old = slot_value(slot.day_of_week, slot.start_time, slot.end_time)
            slot = await self._slots.update(session, slot_id, fields)
            new = slot_value(slot.day_of_week, slot.start_time, slot.end_time)
            if new != old:
                await self._availability.retime(session, trainer_id, old, new)
            return slot

    async def remove_schedule_slot(self, session: AsyncSession, actor: Actor, slot_id: int) -> None:
        """Delete a schedule slot together with its weekly slot, if one matches."""
        trainer_id = await self._slot_trainer(session, slot_id)
        self._require_availability_owner(actor, trainer_id)
        locks = self._locks.hold(trainer_key(trainer_id), slot_key(slot_id))
        async with locks, self._unit_of_work(session):
            await session.execute(trainer_row_lock(trainer_id))
            slot = await self._slots.delete(session, slot_id)
            await self._availability.discard_matching(
                session, trainer_id, slot_value(slot.day_of_week, slot.start_time, slot.end_time)
            )

    # -- registrations ----------------------------------------------------

    async def book_service(
        self,
        session: AsyncSession,
        actor: Actor,
        trainer_id: int,
        service_id: int,
        schedule_slot_id: int,
        start_date: date,
        number_of_sessions: int,
        notes: str | None = None,
        customer_id: int | None = None,
    ) -> Registration:
        """Create a registration.

        Customers book for themselves; staff must name the customer.
        """
        actor.require(Capability.BOOK_FOR_SELF, Capability.BOOK_FOR_CUSTOMER)
        if actor.can(Capability.BOOK_FOR_CUSTOMER):
            if customer_id is None:
                raise ValidationError("Staff bookings must specify customer_id")
            acting_customer_id = customer_id
        else:
            if customer_id is not None and customer_id != actor.caller_id:
                raise PermissionDeniedError("Customers may only book for themselves")
            acting_customer_id = actor.caller_id

        async with self._locks.hold(slot_key(schedule_slot_id)), self._unit_of_work(session):
            await session.execute(slot_row_lock(schedule_slot_id))
            return await self._registrations.create(
                session,
                actor.role,
                acting_customer_id,
                trainer_id,
                service_id,
                schedule_slot_id,
                start_date,
                number_of_sessions,
                notes,
            )

    async def approve_or_reject(
        self,
        session: AsyncSession,
        actor: Actor,
        registration_id: int,
        new_status: RegistrationStatus | str,
        rejection_reason: str | None = None,
    ) -> Registration:
        async with self._registration_locks(session, registration_id):
            await self._require_reviewer(session, actor, registration_id)
            async with self._unit_of_work(session):
                await session.execute(registration_row_lock(registration_id))
                return await self._registrations.update_status(
                    session, registration_id, actor.role, new_status, rejection_reason
                )

    async def update_progress(
        self, session: AsyncSession, actor: Actor, registration_id: int, completed_sessions: int
    ) -> Registration:
        async with self._registration_locks(session, registration_id):
            await self._require_reviewer(session, actor, registration_id)
            async with self._unit_of_work(session):
                await session.execute(registration_row_lock(registration_id))
                return await self._registrations.record_sessions(
                    session, registration_id, actor.role, completed_sessions
                )

    async def cancel_booking(
        self, session: AsyncSession, actor: Actor, registration_id: int
    ) -> Registration:
        async with self._registration_locks(session, registration_id):
            if not actor.can(Capability.CANCEL_ANY_REGISTRATION):
                actor.require(Capability.CANCEL_OWN_REGISTRATION)
                if not await self._registrations.belongs_to_customer(
                    session, registration_id, actor.caller_id
                ):
                    raise PermissionDeniedError(
                        "Customers may only cancel their own registrations",
                        {"registration_id": registration_id},
                    )
            async with self._unit_of_work(session):
                await session.execute(registration_row_lock(registration_id))
                return await self._registrations.cancel(session, registration_id, actor.role)

    async def get_registration(
        self, session: AsyncSession, actor: Actor, registration_id: int
    ) -> Registration:
        registration = await self._registrations.get(session, registration_id)
        if not (
            actor.can(Capability.VIEW_ANY_REGISTRATION)
            or actor.is_customer(registration.customer_id)
            or actor.is_trainer(registration.trainer_id)
        ):
            raise PermissionDeniedError(
                "Not allowed to view this registration", {"registration_id": registration_id}
            )
        return registration

    async def list_registrations(
        self,
        session: AsyncSession,
        actor: Actor,
        customer_id: int | None = None,
        trainer_id: int | None = None,
    ) -> list[Registration]:
        """Staff see everything; customers and trainers only their own."""
        if not actor.can(Capability.VIEW_ANY_REGISTRATION):
            if actor.role is Role.CUSTOMER:
                customer_id = actor.caller_id
            else:
                trainer_id = actor.caller_id
        return await self._registrations.list_registrations(session, customer_id, trainer_id)

    async def belongs_to_customer(
        self, session: AsyncSession, registration_id: int, customer_id: int
    ) -> bool:
        return await self._registrations.belongs_to_customer(session, registration_id, customer_id)

    async def belongs_to_trainer(
        self, session: AsyncSession, registration_id: int, trainer_id: int
    ) -> bool:
        return await self._registrations.belongs_to_trainer(session, registration_id, trainer_id)

    # -- helpers ----------------------------------------------------------

    @asynccontextmanager
    async def _unit_of_work(self, session: AsyncSession) -> AsyncIterator[None]:
        try:
            yield
            await session.commit()
        except IntegrityError as e:
            await session.rollback()
            logger.warning("Integrity error, rolled back: %s", e.orig)
            raise ConflictError("The change conflicts with existing data") from e
        except Exception:
            await session.rollback()
            raise

    @asynccontextmanager
    async def _registration_locks(
        self, session: AsyncSession, registration_id: int
    ) -> AsyncIterator[None]:
        """Hold the registration lock and, if it has one, its slot's lock."""
        async with self._locks.hold(registration_key(registration_id)):
            registration = await self._registrations.get(session, registration_id)
            async with self._locks.hold(*self._slot_keys(registration.schedule_slot_id)):
                yield

    @staticmethod
    def _slot_keys(slot_id: int | None) -> tuple[tuple[str, int], ...]:
        return (slot_key(slot_id),) if slot_id is not None else ()

    @staticmethod
    def _require_availability_owner(actor: Actor, trainer_id: int) -> None:
        if actor.can(Capability.MANAGE_ANY_AVAILABILITY):
            return
        actor.require(Capability.MANAGE_OWN_AVAILABILITY)
        if not actor.is_trainer(trainer_id):
            raise PermissionDeniedError(
                "Trainers may only manage their own availability", {"trainer_id": trainer_id}
            )

    async def _require_reviewer(
        self, session: AsyncSession, actor: Actor, registration_id: int
    ) -> None:
        if actor.can(Capability.REVIEW_ANY_REGISTRATION):
            return
        actor.require(Capability.REVIEW_OWN_REGISTRATIONS)
        if not await self._registrations.belongs_to_trainer(
            session, registration_id, actor.caller_id
        ):
            raise PermissionDeniedError(
                "Trainers may only manage their own registrations",
                {"registration_id": registration_id},
            )

    async def _slot_trainer(self, session: AsyncSession, slot_id: int) -> int:
        trainer_id = await session.scalar(
            select(ScheduleSlot.trainer_id).where(ScheduleSlot.id == slot_id)
        )
        if trainer_id is None:
            raise NotFoundError(f"Schedule slot {slot_id} not found", {"slot_id": slot_id})
        return trainer_id

    async def _matching_slot_id(
        self, session: AsyncSession, trainer_id: int, weekly_slot_id: int
    ) -> int | None:
        entry = await session.get(WeeklySlot, weekly_slot_id)
        if entry is None or entry.trainer_id != trainer_id:
            return None
        match = await self._sync.find_match(session, trainer_id, entry_value(entry))
        return match.id if match is not None else None
