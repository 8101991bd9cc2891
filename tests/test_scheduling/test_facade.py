from datetime import date, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymschedule.models.customer import Customer
from gymschedule.models.registration import Registration
from gymschedule.models.schedule import ScheduleSlot
from gymschedule.models.trainer import Trainer, WeeklySlot
from gymschedule.scheduling.errors import (
    BusyError,
    ConflictError,
    PermissionDeniedError,
    ValidationError,
)
from gymschedule.scheduling.facade import SchedulingFacade
from gymschedule.scheduling.roles import Actor, Role
from tests.conftest import seed_gym, test_session

TRAINER = Actor(caller_id=1, role=Role.TRAINER)
OTHER_TRAINER = Actor(caller_id=2, role=Role.TRAINER)
CUSTOMER = Actor(caller_id=10, role=Role.CUSTOMER)
OTHER_CUSTOMER = Actor(caller_id=11, role=Role.CUSTOMER)
RECEPTIONIST = Actor(caller_id=500, role=Role.RECEPTIONIST)
ADMIN = Actor(caller_id=900, role=Role.ADMIN)

NEXT_WEEK = date.today() + timedelta(days=7)


async def _seed(session: AsyncSession) -> None:
    await seed_gym(session)
    session.add(Trainer(id=2, name="Coach Caio"))
    session.add(
        Customer(id=11, name="Dora", membership_end_date=date.today() + timedelta(days=30))
    )
    await session.commit()


async def _slot_with_availability(facade: SchedulingFacade, session: AsyncSession) -> ScheduleSlot:
    await facade.declare_availability(session, TRAINER, 1, "Monday", "09:00", "10:00")
    slots = await facade.list_schedule_slots(session, CUSTOMER, 1)
    return slots[0]


async def _book(
    facade: SchedulingFacade, session: AsyncSession, slot_id: int, actor: Actor = CUSTOMER
) -> Registration:
    return await facade.book_service(
        session,
        actor,
        trainer_id=1,
        service_id=100,
        schedule_slot_id=slot_id,
        start_date=NEXT_WEEK,
        number_of_sessions=4,
        customer_id=None if actor.role is Role.CUSTOMER else 10,
    )


class TestAvailabilityVerbs:
    async def test_declare_commits(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            await facade.declare_availability(session, TRAINER, 1, "Monday", "9:00", "10:00")

        async with test_session() as session:
            weekly = (await session.execute(select(WeeklySlot))).scalars().all()
            normalized = (await session.execute(select(ScheduleSlot))).scalars().all()
            assert [(w.day_of_week, w.start_time) for w in weekly] == [("Monday", "09:00")]
            assert [(s.day_of_week, s.start_time) for s in normalized] == [("Monday", "09:00")]

    async def test_conflict_leaves_state_untouched(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            await facade.declare_availability(session, TRAINER, 1, "Monday", "09:00", "10:00")
            with pytest.raises(ConflictError):
                await facade.declare_availability(session, TRAINER, 1, "Monday", "09:30", "10:30")
            assert len(await facade.list_availability(session, TRAINER, 1)) == 1

    async def test_only_owner_or_admin_manages_availability(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            for actor in (OTHER_TRAINER, RECEPTIONIST, CUSTOMER):
                with pytest.raises(PermissionDeniedError):
                    await facade.declare_availability(session, actor, 1, "Monday", "09:00", "10:00")
            entry = await facade.declare_availability(session, ADMIN, 1, "Monday", "09:00", "10:00")
            assert entry.trainer_id == 1

    async def test_listing_availability(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            await facade.declare_availability(session, TRAINER, 1, "Tuesday", "07:00", "08:00")
            assert len(await facade.list_availability(session, RECEPTIONIST, 1)) == 1
            with pytest.raises(PermissionDeniedError):
                await facade.list_availability(session, CUSTOMER, 1)
            with pytest.raises(PermissionDeniedError):
                await facade.list_availability(session, OTHER_TRAINER, 1)

    async def test_withdraw_booked_slot_is_busy(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            await _book(facade, session, slot.id)
            entry = (await facade.list_availability(session, TRAINER, 1))[0]

            with pytest.raises(BusyError):
                await facade.withdraw_availability(session, TRAINER, 1, entry.id)
            assert len(await facade.list_availability(session, TRAINER, 1)) == 1

    async def test_withdraw_free_slot(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            entry = (await facade.list_availability(session, TRAINER, 1))[0]
            removed = await facade.withdraw_availability(session, TRAINER, 1, entry.id)
            assert removed.id == entry.id
            assert await session.get(ScheduleSlot, slot.id) is None

    async def test_replace_and_resync(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            result = await facade.replace_availability(
                session,
                TRAINER,
                1,
                [("Monday", "09:00", "10:00"), ("Monday", "10:00", "11:00")],
            )
            assert len(result) == 2
            assert await facade.sync_availability(session, TRAINER, 1) == 0


class TestScheduleSlotVerbs:
    async def test_available_filter(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            await facade.declare_availability(session, TRAINER, 1, "Monday", "10:00", "11:00")
            await _book(facade, session, slot.id)

            everything = await facade.list_schedule_slots(session, CUSTOMER, 1)
            free = await facade.list_schedule_slots(session, CUSTOMER, 1, available_only=True)
            assert len(everything) == 2
            assert [s.start_time for s in free] == ["10:00"]

    async def test_edit_moves_weekly_slot(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            edited = await facade.edit_schedule_slot(
                session, TRAINER, slot.id, {"start_time": "08:00", "end_time": "09:00"}
            )
            assert (edited.start_time, edited.end_time) == ("08:00", "09:00")

            weekly = await facade.list_availability(session, TRAINER, 1)
            assert [(w.start_time, w.end_time) for w in weekly] == [("08:00", "09:00")]
            # The old window must not come back
            assert await facade.sync_availability(session, TRAINER, 1) == 0

    async def test_edit_by_other_trainer(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            with pytest.raises(PermissionDeniedError):
                await facade.edit_schedule_slot(session, OTHER_TRAINER, slot.id, {"note": "x"})

    async def test_remove_drops_weekly_slot(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            await facade.remove_schedule_slot(session, ADMIN, slot.id)
            assert await facade.list_availability(session, TRAINER, 1) == []
            assert await facade.list_schedule_slots(session, TRAINER, 1) == []


class TestRegistrationVerbs:
    async def test_customer_books_for_self(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            registration = await _book(facade, session, slot.id)
            assert registration.customer_id == 10
            assert registration.status == "pending"
            assert registration.total_price == 100.0

    async def test_customer_cannot_book_for_someone_else(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            with pytest.raises(PermissionDeniedError):
                await facade.book_service(
                    session,
                    CUSTOMER,
                    trainer_id=1,
                    service_id=100,
                    schedule_slot_id=slot.id,
                    start_date=NEXT_WEEK,
                    number_of_sessions=1,
                    customer_id=11,
                )

    async def test_staff_must_name_customer(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            with pytest.raises(ValidationError):
                await facade.book_service(
                    session,
                    RECEPTIONIST,
                    trainer_id=1,
                    service_id=100,
                    schedule_slot_id=slot.id,
                    start_date=NEXT_WEEK,
                    number_of_sessions=1,
                )
            registration = await _book(facade, session, slot.id, actor=RECEPTIONIST)
            assert registration.status == "approved"

    async def test_trainer_cannot_book(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            with pytest.raises(PermissionDeniedError):
                await _book(facade, session, slot.id, actor=TRAINER)

    async def test_review_by_owning_trainer_only(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            registration = await _book(facade, session, slot.id)

            for actor in (OTHER_TRAINER, CUSTOMER):
                with pytest.raises(PermissionDeniedError):
                    await facade.approve_or_reject(session, actor, registration.id, "approved")

            await facade.approve_or_reject(session, TRAINER, registration.id, "approved")
            done = await facade.update_progress(session, TRAINER, registration.id, 4)
            assert done.status == "completed"
            assert done.end_date is not None

        async with test_session() as session:
            stored = await session.get(ScheduleSlot, slot.id)
            assert stored is not None and stored.is_available is True

    async def test_cancel_own_only(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            registration = await _book(facade, session, slot.id)

            with pytest.raises(PermissionDeniedError):
                await facade.cancel_booking(session, OTHER_CUSTOMER, registration.id)
            with pytest.raises(PermissionDeniedError):
                await facade.cancel_booking(session, TRAINER, registration.id)

            canceled = await facade.cancel_booking(session, CUSTOMER, registration.id)
            assert canceled.status == "canceled"

    async def test_visibility(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            registration = await _book(facade, session, slot.id)

            for actor in (CUSTOMER, TRAINER, RECEPTIONIST, ADMIN):
                found = await facade.get_registration(session, actor, registration.id)
                assert found.id == registration.id
            for actor in (OTHER_CUSTOMER, OTHER_TRAINER):
                with pytest.raises(PermissionDeniedError):
                    await facade.get_registration(session, actor, registration.id)

    async def test_list_is_scoped_to_caller(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            await _book(facade, session, slot.id)

            assert len(await facade.list_registrations(session, CUSTOMER)) == 1
            assert len(await facade.list_registrations(session, TRAINER)) == 1
            # Filters cannot widen a customer's view
            assert await facade.list_registrations(session, OTHER_CUSTOMER, customer_id=10) == []
            assert await facade.list_registrations(session, OTHER_TRAINER) == []
            assert len(await facade.list_registrations(session, ADMIN, trainer_id=1)) == 1
            assert await facade.list_registrations(session, ADMIN, customer_id=11) == []

    async def test_ownership_queries(self) -> None:
        facade = SchedulingFacade()
        async with test_session() as session:
            await _seed(session)
            slot = await _slot_with_availability(facade, session)
            registration = await _book(facade, session, slot.id)
            assert await facade.belongs_to_customer(session, registration.id, 10)
            assert not await facade.belongs_to_customer(session, registration.id, 11)
            assert await facade.belongs_to_trainer(session, registration.id, 1)
            assert not await facade.belongs_to_trainer(session, registration.id, 2)
