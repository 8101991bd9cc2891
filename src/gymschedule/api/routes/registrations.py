"""Registration routes: book, review, track and cancel service registrations."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gymschedule.api.deps import get_actor, get_facade
from gymschedule.database import get_db
from gymschedule.models.registration import Registration
from gymschedule.scheduling.facade import SchedulingFacade
from gymschedule.scheduling.roles import Actor
from gymschedule.schemas.registration import (
    RegistrationCreate,
    RegistrationRead,
    RegistrationSessionsUpdate,
    RegistrationStatusUpdate,
)

router = APIRouter(prefix="/api/registrations", tags=["registrations"])


@router.post("", response_model=RegistrationRead, status_code=201)
async def book_service(
    body: RegistrationCreate,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> Registration:
    """Book a service on a schedule slot.

    Customers book for themselves and start pending; staff name the customer.
    """
    return await facade.book_service(
        session,
        actor,
        trainer_id=body.trainer_id,
        service_id=body.service_id,
        schedule_slot_id=body.schedule_slot_id,
        start_date=body.start_date,
        number_of_sessions=body.number_of_sessions,
        notes=body.notes,
        customer_id=body.customer_id,
    )


@router.get("", response_model=list[RegistrationRead])
async def list_registrations(
    customer_id: int | None = None,
    trainer_id: int | None = None,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> list[Registration]:
    """List registrations visible to the caller, newest first."""
    return await facade.list_registrations(session, actor, customer_id, trainer_id)


@router.get("/{registration_id}", response_model=RegistrationRead)
async def get_registration(
    registration_id: int,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> Registration:
    return await facade.get_registration(session, actor, registration_id)


@router.put("/{registration_id}/status", response_model=RegistrationRead)
async def update_status(
    registration_id: int,
    body: RegistrationStatusUpdate,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> Registration:
    """Approve or reject a pending registration (reason required to reject)."""
    return await facade.approve_or_reject(
        session, actor, registration_id, body.status, body.rejection_reason
    )


@router.put("/{registration_id}/sessions", response_model=RegistrationRead)
async def update_sessions(
    registration_id: int,
    body: RegistrationSessionsUpdate,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> Registration:
    """Record completed sessions; reaching the total completes the registration."""
    return await facade.update_progress(
        session, actor, registration_id, body.completed_sessions
    )


@router.put("/{registration_id}/cancel", response_model=RegistrationRead)
async def cancel_registration(
    registration_id: int,
    actor: Actor = Depends(get_actor),
    facade: SchedulingFacade = Depends(get_facade),
    session: AsyncSession = Depends(get_db),
) -> Registration:
    return await facade.cancel_booking(session, actor, registration_id)
