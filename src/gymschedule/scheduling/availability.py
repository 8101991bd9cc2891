"""Trainer weekly availability, the authoritative list of declared slots.

Every successful mutation runs the synchronizer inside the same transaction
before returning. When synchronization fails the mutation is rolled back; if
even the rollback fails, PartialSyncError is raised so an operator can re-sync.
"""

import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gymschedule.models.trainer import Trainer, WeeklySlot
from gymschedule.scheduling.errors import (
    BusyError,
    ConflictError,
    NotFoundError,
    PartialSyncError,
    SchedulingError,
)
from gymschedule.scheduling.intervals import TimeInterval, find_conflict
from gymschedule.scheduling.synchronizer import ScheduleSynchronizer, SlotValue, slot_value
from gymschedule.scheduling.types import DAY_INDEX, DayOfWeek, parse_day

logger = logging.getLogger(__name__)

WindowRequest = tuple[DayOfWeek | str, str, str]  # (day, start, end) as supplied by callers


def entry_value(entry: WeeklySlot) -> SlotValue:
    return slot_value(entry.day_of_week, entry.start_time, entry.end_time)


def _interval(entry: WeeklySlot) -> TimeInterval:
    return TimeInterval(entry.start_time, entry.end_time)


class AvailabilityStore:
    """Owns the ``weekly_slots`` rows of each trainer."""

    def __init__(self, synchronizer: ScheduleSynchronizer | None = None) -> None:
        self._sync = synchronizer or ScheduleSynchronizer()

    async def list_slots(self, session: AsyncSession, trainer_id: int) -> list[WeeklySlot]:
        await self._require_trainer(session, trainer_id)
        return await self._entries(session, trainer_id)

    async def add(
        self,
        session: AsyncSession,
        trainer_id: int,
        day: DayOfWeek | str,
        start: str,
        end: str,
    ) -> WeeklySlot:
        """Declare a new weekly slot.

        Raises:
            ValidationError: malformed day/time or start >= end.
            ConflictError: the window overlaps one already declared that day.
            NotFoundError: unknown trainer.
        """
        day = parse_day(day)
        interval = TimeInterval.parse(start, end)
        await self._require_trainer(session, trainer_id)

        current = await self._entries(session, trainer_id)
        self._check_conflict(trainer_id, day, interval, current)

        entry = WeeklySlot(
            trainer_id=trainer_id,
            day_of_week=day.value,
            start_time=interval.start,
            end_time=interval.end,
        )
        session.add(entry)
        await session.flush()

        async with self._sync_guard(session, trainer_id, [entry_value(entry)]):
            await self._sync.sync_from_availability(session, trainer_id)
        logger.info("Trainer %s declared availability %s %s", trainer_id, day.value, interval)
        return entry

    async def remove(self, session: AsyncSession, trainer_id: int, slot_id: int) -> WeeklySlot:
        """Withdraw a weekly slot and its matching schedule slot.

        Returns the removed entry. BusyError propagates (and nothing is
        removed) when the matching schedule slot is booked.
        """
        await self._require_trainer(session, trainer_id)
        entry = await session.get(WeeklySlot, slot_id)
        if entry is None or entry.trainer_id != trainer_id:
            raise NotFoundError(
                f"Availability slot {slot_id} not found for trainer {trainer_id}",
                {"trainer_id": trainer_id, "slot_id": slot_id},
            )

        value = entry_value(entry)
        await session.delete(entry)
        await session.flush()
        async with self._sync_guard(session, trainer_id, [value]):
            await self._sync.remove_matching(session, trainer_id, value)
        logger.info("Trainer %s withdrew availability %s %s-%s", trainer_id, *value)
        return entry

    async def replace(
        self, session: AsyncSession, trainer_id: int, windows: Sequence[WindowRequest]
    ) -> list[WeeklySlot]:
        """Replace the whole weekly list in one all-or-nothing step.

        Entries whose value is kept are left untouched so their schedule
        slots (and any bookings on them) survive.
        """
        requested: list[tuple[DayOfWeek, TimeInterval]] = []
        for day, start, end in windows:
            parsed_day = parse_day(day)
            interval = TimeInterval.parse(start, end)
            clash = find_conflict(interval, (i for d, i in requested if d is parsed_day))
            if clash is not None:
                raise ConflictError(
                    f"{parsed_day.value} {interval} overlaps {clash} in the same request",
                    {"day_of_week": parsed_day.value, "requested": str(interval)},
                )
            requested.append((parsed_day, interval))
        await self._require_trainer(session, trainer_id)

        wanted = {slot_value(d, i.start, i.end) for d, i in requested}
        current = await self._entries(session, trainer_id)
        kept = {entry_value(e) for e in current}

        removed = [e for e in current if entry_value(e) not in wanted]
        for entry in removed:
            await session.delete(entry)
        for day, start, end in sorted(wanted - kept, key=lambda v: (DAY_INDEX[v[0]], v[1])):
            session.add(
                WeeklySlot(trainer_id=trainer_id, day_of_week=day, start_time=start, end_time=end)
            )
        await session.flush()

        touched = [entry_value(e) for e in removed] + sorted(wanted - kept)
        async with self._sync_guard(session, trainer_id, touched):
            for entry in removed:
                await self._sync.remove_matching(session, trainer_id, entry_value(entry))
            await self._sync.sync_from_availability(session, trainer_id)
        logger.info(
            "Trainer %s replaced availability: %d removed, %d added",
            trainer_id,
            len(removed),
            len(wanted - kept),
        )
        return await self._entries(session, trainer_id)

    async def find_by_value(
        self, session: AsyncSession, trainer_id: int, value: SlotValue
    ) -> WeeklySlot | None:
        for entry in await self._entries(session, trainer_id):
            if entry_value(entry) == value:
                return entry
        return None

    async def retime(
        self,
        session: AsyncSession,
        trainer_id: int,
        old: SlotValue,
        new: SlotValue,
    ) -> WeeklySlot | None:
        """Move the weekly slot matching ``old`` to ``new``.

        Used when a schedule slot's window is edited directly, so that a later
        sync does not recreate the old window. Returns None when nothing
        matches ``old``.
        """
        entry = await self.find_by_value(session, trainer_id, old)
        if entry is None:
            return None

        day = DayOfWeek(new[0])
        interval = TimeInterval(new[1], new[2])
        others = [e for e in await self._entries(session, trainer_id) if e.id != entry.id]
        self._check_conflict(trainer_id, day, interval, others)

        entry.day_of_week, entry.start_time, entry.end_time = new
        await session.flush()
        logger.info("Trainer %s availability moved from %s %s-%s to %s", trainer_id, *old, new)
        return entry

    async def discard_matching(
        self, session: AsyncSession, trainer_id: int, value: SlotValue
    ) -> WeeklySlot | None:
        """Drop the weekly slot matching a deleted schedule slot, if any."""
        entry = await self.find_by_value(session, trainer_id, value)
        if entry is not None:
            await session.delete(entry)
            await session.flush()
        return entry

    @asynccontextmanager
    async def _sync_guard(
        self, session: AsyncSession, trainer_id: int, values: Sequence[SlotValue]
    ) -> AsyncIterator[None]:
        """Undo the pending availability mutation if the wrapped sync step fails.

        ``values`` are the (day, start, end) windows the mutation touched; they
        are what an operator replays when even the rollback fails.
        """
        try:
            yield
        except BusyError as e:
            logger.info(
                "Availability change for trainer %s blocked by a booking; rolling back: %s",
                trainer_id,
                e.message,
            )
            await self._rollback(session, trainer_id, values)
            raise
        except (SchedulingError, SQLAlchemyError) as e:
            logger.warning(
                "Synchronization failed for trainer %s (%s); rolling back: %s",
                trainer_id,
                values,
                e,
            )
            await self._rollback(session, trainer_id, values)
            raise

    @staticmethod
    async def _rollback(
        session: AsyncSession, trainer_id: int, values: Sequence[SlotValue]
    ) -> None:
        try:
            await session.rollback()
        except SQLAlchemyError as rollback_err:
            logger.error(
                "Rollback failed after sync error; trainer %s slots %s need a manual re-sync",
                trainer_id,
                values,
            )
            raise PartialSyncError(
                f"Availability for trainer {trainer_id} changed but schedule slots "
                "could not be synchronized",
                {"trainer_id": trainer_id, "slots": [list(v) for v in values]},
            ) from rollback_err

    @staticmethod
    def _check_conflict(
        trainer_id: int,
        day: DayOfWeek,
        interval: TimeInterval,
        entries: Iterable[WeeklySlot],
    ) -> None:
        clash = find_conflict(
            interval, (_interval(e) for e in entries if e.day_of_week == day.value)
        )
        if clash is not None:
            raise ConflictError(
                f"{day.value} {interval} overlaps declared availability {clash}",
                {
                    "trainer_id": trainer_id,
                    "day_of_week": day.value,
                    "requested": str(interval),
                    "existing": str(clash),
                },
            )

    @staticmethod
    async def _entries(session: AsyncSession, trainer_id: int) -> list[WeeklySlot]:
        result = await session.execute(
            select(WeeklySlot).where(WeeklySlot.trainer_id == trainer_id)
        )
        return sorted(
            result.scalars().all(),
            key=lambda e: (DAY_INDEX[e.day_of_week], e.start_time),
        )

    @staticmethod
    async def _require_trainer(session: AsyncSession, trainer_id: int) -> Trainer:
        trainer = await session.get(Trainer, trainer_id)
        if trainer is None:
            raise NotFoundError(f"Trainer {trainer_id} not found", {"trainer_id": trainer_id})
        return trainer
