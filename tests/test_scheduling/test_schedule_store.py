from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymschedule.models.registration import Registration
from gymschedule.models.schedule import ScheduleSlot
from gymschedule.scheduling.errors import BusyError, ConflictError, NotFoundError, ValidationError
from gymschedule.scheduling.intervals import TimeInterval
from gymschedule.scheduling.schedule_store import NormalizedScheduleStore
from gymschedule.scheduling.types import DayOfWeek
from tests.conftest import seed_gym, test_session

store = NormalizedScheduleStore()


async def _hold(session: AsyncSession, slot: ScheduleSlot, status: str = "pending") -> Registration:
    registration = Registration(
        customer_id=10,
        trainer_id=slot.trainer_id,
        service_id=100,
        schedule_slot_id=slot.id,
        status=status,
        start_date=date.today(),
        number_of_sessions=5,
        total_price=125.0,
    )
    session.add(registration)
    await session.flush()
    return registration


class TestCreate:
    async def test_create_normalizes_times(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            slot = await store.create(session, 1, "Monday", "9:00", "10:00")
            assert slot.id is not None
            assert (slot.day_of_week, slot.start_time, slot.end_time) == (
                "Monday",
                "09:00",
                "10:00",
            )
            assert slot.is_available is True
            assert slot.note == ""

    async def test_same_start_conflicts(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            await store.create(session, 1, "Monday", "09:00", "10:00")
            with pytest.raises(ConflictError):
                await store.create(session, 1, "Monday", "9:00", "09:30")

    async def test_overlap_conflicts(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            await store.create(session, 1, "Monday", "09:00", "10:00")
            with pytest.raises(ConflictError) as exc:
                await store.create(session, 1, "Monday", "09:30", "10:30")
            assert exc.value.details["existing"] == "09:00-10:00"

    async def test_start_after_end_conflicts(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            with pytest.raises(ConflictError):
                await store.create(session, 1, "Monday", "11:00", "10:00")

    async def test_other_day_is_independent(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            await store.create(session, 1, "Monday", "09:00", "10:00")
            slot = await store.create(session, 1, "Tuesday", "09:00", "10:00")
            assert slot.day_of_week == "Tuesday"

    async def test_invalid_day(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            with pytest.raises(ValidationError):
                await store.create(session, 1, "Funday", "09:00", "10:00")


class TestQueries:
    async def test_list_is_ordered_by_day_then_start(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            await store.create(session, 1, "Wednesday", "08:00", "09:00")
            await store.create(session, 1, "Monday", "14:00", "15:00")
            await store.create(session, 1, "Monday", "07:00", "08:00")
            slots = await store.list_by_trainer(session, 1)
            assert [(s.day_of_week, s.start_time) for s in slots] == [
                ("Monday", "07:00"),
                ("Monday", "14:00"),
                ("Wednesday", "08:00"),
            ]

    async def test_list_available_skips_reserved(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            first = await store.create(session, 1, "Monday", "07:00", "08:00")
            await store.create(session, 1, "Monday", "08:00", "09:00")
            await store.set_reserved(session, first, True)
            available = await store.list_available(session, 1)
            assert [s.start_time for s in available] == ["08:00"]

    async def test_find_by_value(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            slot = await store.create(session, 1, "Friday", "18:00", "19:00")
            found = await store.find_by_value(
                session, 1, DayOfWeek.FRIDAY, TimeInterval("18:00", "19:00")
            )
            assert found is not None and found.id == slot.id
            missing = await store.find_by_value(
                session, 1, DayOfWeek.FRIDAY, TimeInterval("18:00", "19:30")
            )
            assert missing is None

    async def test_get_unknown(self) -> None:
        async with test_session() as session:
            with pytest.raises(NotFoundError):
                await store.get(session, 999)


class TestUpdate:
    async def test_update_window(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            slot = await store.create(session, 1, "Monday", "09:00", "10:00")
            updated = await store.update(session, slot.id, {"start_time": "8:30"})
            assert (updated.start_time, updated.end_time) == ("08:30", "10:00")

    async def test_update_rechecks_overlap(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            await store.create(session, 1, "Monday", "07:00", "08:00")
            slot = await store.create(session, 1, "Monday", "09:00", "10:00")
            with pytest.raises(ConflictError):
                await store.update(session, slot.id, {"start_time": "07:30"})

    async def test_update_unknown_field(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            slot = await store.create(session, 1, "Monday", "09:00", "10:00")
            with pytest.raises(ValidationError):
                await store.update(session, slot.id, {"trainer_id": 2})

    async def test_note_change_allowed_while_booked(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            slot = await store.create(session, 1, "Monday", "09:00", "10:00")
            await _hold(session, slot)
            updated = await store.update(session, slot.id, {"note": "Bring a towel"})
            assert updated.note == "Bring a towel"

    async def test_window_change_while_booked_is_busy(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            slot = await store.create(session, 1, "Monday", "09:00", "10:00")
            await _hold(session, slot, status="approved")
            with pytest.raises(BusyError):
                await store.update(session, slot.id, {"end_time": "11:00"})
            with pytest.raises(BusyError):
                await store.update(session, slot.id, {"is_available": True})
            assert slot.end_time == "10:00"


class TestDelete:
    async def test_delete_held_then_released(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            slot = await store.create(session, 1, "Monday", "09:00", "10:00")
            registration = await _hold(session, slot)

            with pytest.raises(BusyError):
                await store.delete(session, slot.id)

            registration.status = "canceled"
            await session.flush()
            await store.delete(session, slot.id)

            result = await session.execute(select(ScheduleSlot))
            assert result.scalars().all() == []

    async def test_terminal_registrations_do_not_hold(self) -> None:
        async with test_session() as session:
            await seed_gym(session)
            slot = await store.create(session, 1, "Monday", "09:00", "10:00")
            await _hold(session, slot, status="completed")
            assert not await store.has_active_registration(session, slot.id)
            await store.delete(session, slot.id)
