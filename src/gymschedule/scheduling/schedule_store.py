"""Normalized schedule slots: one bookable row per trainer/day/window."""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gymschedule.models.registration import Registration
from gymschedule.models.schedule import ScheduleSlot
from gymschedule.scheduling.errors import BusyError, ConflictError, NotFoundError, ValidationError
from gymschedule.scheduling.intervals import TimeInterval, find_conflict, normalize_time
from gymschedule.scheduling.types import ACTIVE_STATUSES, DAY_INDEX, DayOfWeek, parse_day

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"day_of_week", "start_time", "end_time", "is_available", "note"})


def slot_interval(slot: ScheduleSlot) -> TimeInterval:
    return TimeInterval(slot.start_time, slot.end_time)


def _sort_key(slot: ScheduleSlot) -> tuple[int, str]:
    return (DAY_INDEX[slot.day_of_week], slot.start_time)


class NormalizedScheduleStore:
    """Owns the ``schedule_slots`` table.

    Methods flush but never commit; the caller owns the transaction.
    """

    async def get(self, session: AsyncSession, slot_id: int) -> ScheduleSlot:
        slot = await session.get(ScheduleSlot, slot_id)
        if slot is None:
            raise NotFoundError(f"Schedule slot {slot_id} not found", {"slot_id": slot_id})
        return slot

    async def list_by_trainer(self, session: AsyncSession, trainer_id: int) -> list[ScheduleSlot]:
        """All slots of a trainer, ordered by (day of week, start time)."""
        result = await session.execute(
            select(ScheduleSlot).where(ScheduleSlot.trainer_id == trainer_id)
        )
        return sorted(result.scalars().all(), key=_sort_key)

    async def list_available(self, session: AsyncSession, trainer_id: int) -> list[ScheduleSlot]:
        return [s for s in await self.list_by_trainer(session, trainer_id) if s.is_available]

    async def find_by_value(
        self,
        session: AsyncSession,
        trainer_id: int,
        day: DayOfWeek,
        interval: TimeInterval,
    ) -> ScheduleSlot | None:
        """Locate the slot with exactly this (day, start, end), times normalized."""
        start, end = normalize_time(interval.start), normalize_time(interval.end)
        result = await session.execute(
            select(ScheduleSlot).where(
                ScheduleSlot.trainer_id == trainer_id,
                ScheduleSlot.day_of_week == day.value,
                ScheduleSlot.start_time == start,
                ScheduleSlot.end_time == end,
            )
        )
        return result.scalars().first()

    async def has_active_registration(self, session: AsyncSession, slot_id: int) -> bool:
        stmt = select(
            exists().where(
                Registration.schedule_slot_id == slot_id,
                Registration.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
        )
        return bool(await session.scalar(stmt))

    async def create(
        self,
        session: AsyncSession,
        trainer_id: int,
        day: DayOfWeek | str,
        start: str,
        end: str,
        note: str = "",
    ) -> ScheduleSlot:
        """Create a slot.

        Raises ConflictError when start >= end, when the window overlaps another
        slot of the trainer on that day, or when (trainer, day, start) is taken.
        """
        day = parse_day(day)
        interval = self._window(start, end)
        siblings = await self._same_day(session, trainer_id, day)

        if any(s.start_time == interval.start for s in siblings):
            raise ConflictError(
                f"Trainer {trainer_id} already has a slot starting {day.value} {interval.start}",
                {"trainer_id": trainer_id, "day_of_week": day.value, "start_time": interval.start},
            )
        self._check_overlap(trainer_id, day, interval, siblings)

        slot = ScheduleSlot(
            trainer_id=trainer_id,
            day_of_week=day.value,
            start_time=interval.start,
            end_time=interval.end,
            is_available=True,
            note=note or "",
        )
        session.add(slot)
        await self._flush(session, trainer_id, day, interval)
        logger.info(
            "Created schedule slot %s for trainer %s (%s %s)",
            slot.id,
            trainer_id,
            day.value,
            interval,
        )
        return slot

    async def update(
        self, session: AsyncSession, slot_id: int, fields: Mapping[str, Any]
    ) -> ScheduleSlot:
        """Apply a partial update.

        A changed window is re-validated against the trainer's other slots.
        Touching ``is_available`` or the window while a pending/approved
        registration holds the slot raises BusyError.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown schedule slot fields: {', '.join(sorted(unknown))}",
                {"fields": sorted(unknown)},
            )

        slot = await self.get(session, slot_id)
        day = parse_day(fields.get("day_of_week") or slot.day_of_week)
        interval = self._window(
            fields.get("start_time") or slot.start_time,
            fields.get("end_time") or slot.end_time,
        )
        window_changed = (day.value, interval.start, interval.end) != (
            slot.day_of_week,
            slot.start_time,
            slot.end_time,
        )

        if (window_changed or "is_available" in fields) and await self.has_active_registration(
            session, slot.id
        ):
            raise BusyError(
                f"Schedule slot {slot.id} is held by an active registration",
                {"slot_id": slot.id},
            )

        if window_changed:
            siblings = [
                s for s in await self._same_day(session, slot.trainer_id, day) if s.id != slot.id
            ]
            self._check_overlap(slot.trainer_id, day, interval, siblings)
            slot.day_of_week = day.value
            slot.start_time = interval.start
            slot.end_time = interval.end

        if fields.get("is_available") is not None:
            slot.is_available = bool(fields["is_available"])
        if fields.get("note") is not None:
            slot.note = fields["note"]

        await self._flush(session, slot.trainer_id, day, interval)
        return slot

    async def delete(self, session: AsyncSession, slot_id: int) -> ScheduleSlot:
        slot = await self.get(session, slot_id)
        if await self.has_active_registration(session, slot.id):
            raise BusyError(
                f"Schedule slot {slot.id} is held by an active registration",
                {"slot_id": slot.id},
            )
        await session.delete(slot)
        await session.flush()
        logger.info(
            "Deleted schedule slot %s for trainer %s (%s %s-%s)",
            slot.id,
            slot.trainer_id,
            slot.day_of_week,
            slot.start_time,
            slot.end_time,
        )
        return slot

    async def set_reserved(self, session: AsyncSession, slot: ScheduleSlot, reserved: bool) -> None:
        """Flip availability on behalf of the registration lifecycle."""
        slot.is_available = not reserved
        await session.flush()

    @staticmethod
    def _window(start: str, end: str) -> TimeInterval:
        start, end = normalize_time(start), normalize_time(end)
        if start >= end:
            raise ConflictError(
                f"Start time {start} must be before end time {end}",
                {"start_time": start, "end_time": end},
            )
        return TimeInterval(start, end)

    @staticmethod
    def _check_overlap(
        trainer_id: int,
        day: DayOfWeek,
        interval: TimeInterval,
        siblings: list[ScheduleSlot],
    ) -> None:
        clash = find_conflict(interval, (slot_interval(s) for s in siblings))
        if clash is not None:
            raise ConflictError(
                f"{day.value} {interval} overlaps existing slot {clash}",
                {
                    "trainer_id": trainer_id,
                    "day_of_week": day.value,
                    "requested": str(interval),
                    "existing": str(clash),
                },
            )

    @staticmethod
    async def _same_day(
        session: AsyncSession, trainer_id: int, day: DayOfWeek
    ) -> list[ScheduleSlot]:
        result = await session.execute(
            select(ScheduleSlot).where(
                ScheduleSlot.trainer_id == trainer_id,
                ScheduleSlot.day_of_week == day.value,
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def _flush(
        session: AsyncSession, trainer_id: int, day: DayOfWeek, interval: TimeInterval
    ) -> None:
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Trainer {trainer_id} already has a slot starting {day.value} {interval.start}",
                {"trainer_id": trainer_id, "day_of_week": day.value, "start_time": interval.start},
            ) from e
