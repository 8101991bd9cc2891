"""Caller roles and the capabilities each one carries."""

from dataclasses import dataclass
from enum import Enum

from gymschedule.scheduling.errors import PermissionDeniedError


class Role(str, Enum):
    CUSTOMER = "customer"
    TRAINER = "trainer"
    ADMIN = "admin"
    RECEPTIONIST = "receptionist"

    @property
    def is_staff(self) -> bool:
        return self in (Role.ADMIN, Role.RECEPTIONIST)


class Capability(str, Enum):
    MANAGE_OWN_AVAILABILITY = "manage_own_availability"
    MANAGE_ANY_AVAILABILITY = "manage_any_availability"
    VIEW_ANY_AVAILABILITY = "view_any_availability"
    BOOK_FOR_SELF = "book_for_self"
    BOOK_FOR_CUSTOMER = "book_for_customer"
    REVIEW_OWN_REGISTRATIONS = "review_own_registrations"
    REVIEW_ANY_REGISTRATION = "review_any_registration"
    CANCEL_OWN_REGISTRATION = "cancel_own_registration"
    CANCEL_ANY_REGISTRATION = "cancel_any_registration"
    VIEW_ANY_REGISTRATION = "view_any_registration"


_STAFF_CAPABILITIES = frozenset(
    {
        Capability.VIEW_ANY_AVAILABILITY,
        Capability.BOOK_FOR_CUSTOMER,
        Capability.REVIEW_ANY_REGISTRATION,
        Capability.CANCEL_ANY_REGISTRATION,
        Capability.VIEW_ANY_REGISTRATION,
    }
)

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.CUSTOMER: frozenset(
        {Capability.BOOK_FOR_SELF, Capability.CANCEL_OWN_REGISTRATION}
    ),
    Role.TRAINER: frozenset(
        {Capability.MANAGE_OWN_AVAILABILITY, Capability.REVIEW_OWN_REGISTRATIONS}
    ),
    Role.RECEPTIONIST: _STAFF_CAPABILITIES,
    Role.ADMIN: _STAFF_CAPABILITIES | {Capability.MANAGE_ANY_AVAILABILITY},
}


@dataclass(frozen=True)
class Actor:
    """Identity handed to the core by the auth layer.

    ``caller_id`` is the customer id for customers and the trainer id for
    trainers; for staff it only identifies the operator in logs.
    """

    caller_id: int
    role: Role

    @property
    def capabilities(self) -> frozenset[Capability]:
        return ROLE_CAPABILITIES[self.role]

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def is_customer(self, customer_id: int) -> bool:
        return self.role is Role.CUSTOMER and self.caller_id == customer_id

    def is_trainer(self, trainer_id: int) -> bool:
        return self.role is Role.TRAINER and self.caller_id == trainer_id

    def require(self, *capabilities: Capability) -> None:
        """Raise unless the actor holds at least one of ``capabilities``."""
        if not any(self.can(c) for c in capabilities):
            raise PermissionDeniedError(
                f"Role '{self.role.value}' may not perform this operation",
                details={"role": self.role.value},
            )
