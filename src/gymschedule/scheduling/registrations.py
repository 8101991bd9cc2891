"""Service registration lifecycle.

    pending  --approve-->  approved
    pending  --reject-->   rejected   (reason required)
    approved --record-->   approved | completed (when all sessions are done)
    pending | approved --cancel--> canceled

Rejected, completed and canceled are terminal. A registration holds its
schedule slot (``is_available=False``) from creation until it reaches a
terminal state.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from gymschedule.config import Settings, get_settings
from gymschedule.database import utcnow
from gymschedule.models.customer import Customer
from gymschedule.models.registration import Registration
from gymschedule.models.schedule import ScheduleSlot
from gymschedule.models.service import Service
from gymschedule.models.trainer import Trainer
from gymschedule.scheduling.errors import (
    IllegalTransitionError,
    InvalidDateError,
    MembershipExpiredError,
    NotFoundError,
    ServiceInactiveError,
    SlotUnavailableError,
    TrainerUnavailableError,
    ValidationError,
)
from gymschedule.scheduling.roles import Role
from gymschedule.scheduling.schedule_store import NormalizedScheduleStore
from gymschedule.scheduling.types import RegistrationStatus

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[RegistrationStatus, frozenset[RegistrationStatus]] = {
    RegistrationStatus.PENDING: frozenset(
        {RegistrationStatus.APPROVED, RegistrationStatus.REJECTED, RegistrationStatus.CANCELED}
    ),
    RegistrationStatus.APPROVED: frozenset(
        {RegistrationStatus.COMPLETED, RegistrationStatus.CANCELED}
    ),
}

REVIEW_OUTCOMES = frozenset({RegistrationStatus.APPROVED, RegistrationStatus.REJECTED})


def compute_price(service_price: float, number_of_sessions: int) -> float:
    """Services are priced per session, whichever path creates the booking."""
    return round(service_price * number_of_sessions, 2)


class RegistrationLifecycle:
    def __init__(
        self,
        schedule_store: NormalizedScheduleStore | None = None,
        clock: Callable[[], datetime] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._slots = schedule_store or NormalizedScheduleStore()
        self._clock = clock or utcnow
        self._settings = settings or get_settings()

    async def get(self, session: AsyncSession, registration_id: int) -> Registration:
        registration = await session.get(Registration, registration_id)
        if registration is None:
            raise NotFoundError(
                f"Registration {registration_id} not found",
                {"registration_id": registration_id},
            )
        return registration

    async def list_registrations(
        self,
        session: AsyncSession,
        customer_id: int | None = None,
        trainer_id: int | None = None,
    ) -> list[Registration]:
        """Newest first, optionally narrowed to one customer and/or trainer."""
        stmt = select(Registration).order_by(Registration.created_at.desc(), Registration.id.desc())
        if customer_id is not None:
            stmt = stmt.where(Registration.customer_id == customer_id)
        if trainer_id is not None:
            stmt = stmt.where(Registration.trainer_id == trainer_id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def belongs_to_customer(
        self, session: AsyncSession, registration_id: int, customer_id: int
    ) -> bool:
        stmt = select(
            exists().where(
                Registration.id == registration_id, Registration.customer_id == customer_id
            )
        )
        return bool(await session.scalar(stmt))

    async def belongs_to_trainer(
        self, session: AsyncSession, registration_id: int, trainer_id: int
    ) -> bool:
        stmt = select(
            exists().where(
                Registration.id == registration_id, Registration.trainer_id == trainer_id
            )
        )
        return bool(await session.scalar(stmt))

    async def create(
        self,
        session: AsyncSession,
        actor_role: Role,
        acting_customer_id: int | None,
        trainer_id: int,
        service_id: int,
        schedule_slot_id: int,
        start_date: date,
        number_of_sessions: int,
        notes: str | None = None,
    ) -> Registration:
        """Book a service against a schedule slot.

        Preconditions are checked in order and the first failure wins:
        customer given, membership valid, trainer active, service active,
        slot free and owned by the trainer, start date not in the past.
        Staff bookings may skip the start-date check and start approved,
        depending on settings.
        """
        if acting_customer_id is None:
            raise ValidationError("A customer must be specified for the registration")
        if number_of_sessions < 1:
            raise ValidationError(
                "number_of_sessions must be at least 1",
                {"number_of_sessions": number_of_sessions},
            )

        now = self._clock()
        today = now.date()

        customer = await session.get(Customer, acting_customer_id)
        if customer is None:
            raise NotFoundError(
                f"Customer {acting_customer_id} not found", {"customer_id": acting_customer_id}
            )
        if customer.membership_end_date < today:
            raise MembershipExpiredError(
                "Membership has expired; renew it before booking a service",
                {
                    "customer_id": customer.id,
                    "membership_end_date": customer.membership_end_date.isoformat(),
                },
            )

        trainer = await session.get(Trainer, trainer_id)
        if trainer is None or not trainer.active:
            raise TrainerUnavailableError(
                f"Trainer {trainer_id} is not available for bookings", {"trainer_id": trainer_id}
            )

        service = await session.get(Service, service_id)
        if service is None or not service.is_active:
            raise ServiceInactiveError(
                f"Service {service_id} is not active", {"service_id": service_id}
            )

        slot = await session.get(ScheduleSlot, schedule_slot_id)
        if slot is None or slot.trainer_id != trainer.id or not slot.is_available:
            raise SlotUnavailableError(
                f"Schedule slot {schedule_slot_id} is not available for trainer {trainer_id}",
                {"slot_id": schedule_slot_id, "trainer_id": trainer_id},
            )

        skip_date_check = actor_role.is_staff and self._settings.staff_can_backdate_registrations
        if start_date < today and not skip_date_check:
            raise InvalidDateError(
                "Start date must not be in the past",
                {"start_date": start_date.isoformat(), "today": today.isoformat()},
            )

        status = RegistrationStatus.PENDING
        if actor_role.is_staff and self._settings.auto_approve_staff_bookings:
            status = RegistrationStatus.APPROVED

        registration = Registration(
            customer_id=customer.id,
            trainer_id=trainer.id,
            service_id=service.id,
            schedule_slot_id=slot.id,
            status=status.value,
            start_date=start_date,
            number_of_sessions=number_of_sessions,
            completed_sessions=0,
            total_price=compute_price(service.price, number_of_sessions),
            notes=notes,
        )
        session.add(registration)
        await self._slots.set_reserved(session, slot, True)
        await session.flush()
        logger.info(
            "Registration %s created by %s for customer %s on slot %s (%s)",
            registration.id,
            actor_role.value,
            customer.id,
            slot.id,
            status.value,
        )
        return registration

    async def update_status(
        self,
        session: AsyncSession,
        registration_id: int,
        actor_role: Role,
        new_status: RegistrationStatus | str,
        rejection_reason: str | None = None,
    ) -> Registration:
        """Approve or reject a pending registration."""
        target = _parse_status(new_status)
        registration = await self.get(session, registration_id)
        current = RegistrationStatus(registration.status)
        if current is not RegistrationStatus.PENDING or target not in REVIEW_OUTCOMES:
            raise IllegalTransitionError(
                f"Cannot change registration {registration.id} from {current.value} "
                f"to {target.value}",
                {"from": current.value, "to": target.value},
            )

        if target is RegistrationStatus.REJECTED:
            reason = (rejection_reason or "").strip()
            if not reason:
                raise ValidationError("A rejection reason is required")
            registration.rejection_reason = reason

        await self._transition(session, registration, target, actor_role)
        return registration

    async def record_sessions(
        self,
        session: AsyncSession,
        registration_id: int,
        actor_role: Role,
        completed_sessions: int,
    ) -> Registration:
        """Set the completed-session count; completes the registration at the total."""
        registration = await self.get(session, registration_id)
        current = RegistrationStatus(registration.status)
        if current is not RegistrationStatus.APPROVED:
            raise IllegalTransitionError(
                f"Sessions can only be recorded on approved registrations, "
                f"registration {registration.id} is {current.value}",
                {"from": current.value},
            )
        if completed_sessions < 0 or completed_sessions > registration.number_of_sessions:
            raise ValidationError(
                f"completed_sessions must be between 0 and {registration.number_of_sessions}",
                {
                    "completed_sessions": completed_sessions,
                    "number_of_sessions": registration.number_of_sessions,
                },
            )

        registration.completed_sessions = completed_sessions
        if completed_sessions == registration.number_of_sessions:
            await self._transition(session, registration, RegistrationStatus.COMPLETED, actor_role)
        else:
            await session.flush()
        return registration

    async def cancel(
        self, session: AsyncSession, registration_id: int, actor_role: Role
    ) -> Registration:
        registration = await self.get(session, registration_id)
        await self._transition(session, registration, RegistrationStatus.CANCELED, actor_role)
        return registration

    async def _transition(
        self,
        session: AsyncSession,
        registration: Registration,
        target: RegistrationStatus,
        actor_role: Role,
    ) -> None:
        current = RegistrationStatus(registration.status)
        if target not in _TRANSITIONS.get(current, frozenset()):
            raise IllegalTransitionError(
                f"Cannot change registration {registration.id} from {current.value} "
                f"to {target.value}",
                {"from": current.value, "to": target.value},
            )

        registration.status = target.value
        if target.is_terminal:
            registration.end_date = self._clock()
        await session.flush()

        if target.is_terminal:
            await self._release_slot(session, registration)
        logger.info(
            "Registration %s: %s -> %s (by %s)",
            registration.id,
            current.value,
            target.value,
            actor_role.value,
        )

    async def _release_slot(self, session: AsyncSession, registration: Registration) -> None:
        if registration.schedule_slot_id is None:
            return
        slot = await session.get(ScheduleSlot, registration.schedule_slot_id)
        if slot is None:
            return
        if not await self._slots.has_active_registration(session, slot.id):
            await self._slots.set_reserved(session, slot, False)


def _parse_status(value: RegistrationStatus | str) -> RegistrationStatus:
    try:
        return RegistrationStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown registration status '{value}'",
            {"allowed": [s.value for s in RegistrationStatus]},
        ) from None
