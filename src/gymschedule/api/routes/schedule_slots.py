"""Schedule slot routes: edit or remove a single normalized slot."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gymschedule.api.deps import get_actor, get_facade
from gymschedule.database import get_db
from gymschedule.models.schedule import ScheduleSlot
from gymschedule.scheduling.facade import SchedulingFacade
from gymschedule.scheduling.roles import Actor
from gymschedule.schemas.schedule import ScheduleSlotRead, ScheduleSlotUpdate

router = APIRouter(prefix="/api/schedule-slots", tags=["schedule-slots"])


@router.patch("/{slot_id}", response_model=ScheduleSlotRead)
async def edit_schedule_slot(
    slot_id: int,
    body: ScheduleSlotUpdate,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> ScheduleSlot:
    """Partially update a slot. Returns 409 while an active registration holds it."""
    fields = body.model_dump(exclude_unset=True)
    return await facade.edit_schedule_slot(session, actor, slot_id, fields)


@router.delete("/{slot_id}", status_code=204)
async def remove_schedule_slot(
    slot_id: int,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> None:
    await facade.remove_schedule_slot(session, actor, slot_id)
