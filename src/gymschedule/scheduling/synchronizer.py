"""Reconcile declared weekly availability with normalized schedule slots.

Rows in the two stores share no key; they are matched by value
(day, start, end) after normalizing times to zero-padded HH:MM, so "9:00"
and "09:00" are the same instant.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymschedule.models.schedule import ScheduleSlot
from gymschedule.models.trainer import WeeklySlot
from gymschedule.scheduling.intervals import TimeInterval, normalize_time
from gymschedule.scheduling.schedule_store import NormalizedScheduleStore
from gymschedule.scheduling.types import DayOfWeek

logger = logging.getLogger(__name__)

SlotValue = tuple[str, str, str]  # (day, start, end)


def slot_value(day: DayOfWeek | str, start: str, end: str) -> SlotValue:
    day_name = day.value if isinstance(day, DayOfWeek) else day
    return (day_name, normalize_time(start), normalize_time(end))


@dataclass
class RemovalResult:
    """Outcome of removing the normalized counterpart of a weekly slot."""

    trainer_id: int
    value: SlotValue
    removed_slot_id: int | None = None

    @property
    def matched(self) -> bool:
        return self.removed_slot_id is not None


class ScheduleSynchronizer:
    """One-way reconciliation from availability to normalized slots."""

    def __init__(self, schedule_store: NormalizedScheduleStore | None = None) -> None:
        self._slots = schedule_store or NormalizedScheduleStore()

    async def sync_from_availability(self, session: AsyncSession, trainer_id: int) -> int:
        """Create a schedule slot for every weekly slot that has none.

        Never deletes. Idempotent: a second run adds nothing.

        Returns:
            Number of schedule slots created.
        """
        weekly = await session.execute(
            select(WeeklySlot).where(WeeklySlot.trainer_id == trainer_id)
        )
        existing = await session.execute(
            select(ScheduleSlot).where(ScheduleSlot.trainer_id == trainer_id)
        )
        known: set[SlotValue] = {
            slot_value(s.day_of_week, s.start_time, s.end_time) for s in existing.scalars()
        }

        added = 0
        for entry in weekly.scalars().all():
            value = slot_value(entry.day_of_week, entry.start_time, entry.end_time)
            if value in known:
                continue
            await self._slots.create(session, trainer_id, value[0], value[1], value[2])
            known.add(value)
            added += 1

        if added:
            logger.info("Synced %d schedule slot(s) for trainer %s", added, trainer_id)
        else:
            logger.debug("Schedule slots already in sync for trainer %s", trainer_id)
        return added

    async def find_match(
        self, session: AsyncSession, trainer_id: int, value: SlotValue
    ) -> ScheduleSlot | None:
        day, start, end = value
        return await self._slots.find_by_value(
            session, trainer_id, DayOfWeek(day), TimeInterval(start, end)
        )

    async def remove_matching(
        self, session: AsyncSession, trainer_id: int, value: SlotValue
    ) -> RemovalResult:
        """Delete the schedule slot matching a withdrawn weekly slot.

        A missing match is not an error, but is logged as a warning so it can
        be told apart from a real removal. BusyError propagates when the slot
        is held by an active registration.
        """
        result = RemovalResult(trainer_id=trainer_id, value=value)
        match = await self.find_match(session, trainer_id, value)
        if match is None:
            logger.warning(
                "No matching schedule slot for trainer %s (%s %s-%s); nothing removed",
                trainer_id,
                *value,
            )
            return result

        await self._slots.delete(session, match.id)
        result.removed_slot_id = match.id
        logger.info(
            "Matched and removed schedule slot %s for trainer %s (%s %s-%s)",
            match.id,
            trainer_id,
            *value,
        )
        return result
