"""Availability API routes: declare, withdraw and sync a trainer's weekly slots."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gymschedule.api.deps import get_actor, get_facade
from gymschedule.database import get_db
from gymschedule.models.schedule import ScheduleSlot
from gymschedule.models.trainer import WeeklySlot
from gymschedule.scheduling.facade import SchedulingFacade
from gymschedule.scheduling.roles import Actor
from gymschedule.schemas.availability import (
    SyncResult,
    WeeklyAvailabilityReplace,
    WeeklySlotCreate,
    WeeklySlotRead,
)
from gymschedule.schemas.schedule import ScheduleSlotRead

router = APIRouter(prefix="/api/trainers", tags=["availability"])


@router.get("/{trainer_id}/availability", response_model=list[WeeklySlotRead])
async def list_availability(
    trainer_id: int,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> list[WeeklySlot]:
    """List a trainer's declared weekly slots, ordered by day then start time."""
    return await facade.list_availability(session, actor, trainer_id)


@router.post("/{trainer_id}/availability", response_model=WeeklySlotRead, status_code=201)
async def declare_availability(
    trainer_id: int,
    body: WeeklySlotCreate,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> WeeklySlot:
    """Declare one weekly slot. Returns 409 if it overlaps an existing one."""
    return await facade.declare_availability(
        session, actor, trainer_id, body.day_of_week, body.start_time, body.end_time
    )


@router.put("/{trainer_id}/availability", response_model=list[WeeklySlotRead])
async def replace_availability(
    trainer_id: int,
    body: WeeklyAvailabilityReplace,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> list[WeeklySlot]:
    """Replace the trainer's whole weekly list."""
    windows = [(s.day_of_week, s.start_time, s.end_time) for s in body.slots]
    return await facade.replace_availability(session, actor, trainer_id, windows)


@router.delete("/{trainer_id}/availability/{slot_id}", response_model=WeeklySlotRead)
async def withdraw_availability(
    trainer_id: int,
    slot_id: int,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> WeeklySlot:
    """Withdraw a weekly slot and its schedule slot. Returns the removed slot."""
    return await facade.withdraw_availability(session, actor, trainer_id, slot_id)


@router.post("/{trainer_id}/availability/sync", response_model=SyncResult)
async def sync_availability(
    trainer_id: int,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> SyncResult:
    added = await facade.sync_availability(session, actor, trainer_id)
    return SyncResult(added=added)


@router.get("/{trainer_id}/schedule-slots", response_model=list[ScheduleSlotRead])
async def list_schedule_slots(
    trainer_id: int,
    available: bool = Query(default=False),
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> list[ScheduleSlot]:
    """List bookable schedule slots; `?available=true` hides reserved ones."""
    return await facade.list_schedule_slots(session, actor, trainer_id, available_only=available)
