"""Request-scoped dependencies shared by the routers."""

from fastapi import Header, HTTPException

from gymschedule.scheduling.facade import SchedulingFacade
from gymschedule.scheduling.roles import Actor, Role

# One facade per process so every request shares the same entity locks.
_facade = SchedulingFacade()


def get_facade() -> SchedulingFacade:
    return _facade


def get_actor(
    x_caller_id: int | None = Header(default=None),
    x_caller_role: Role | None = Header(default=None),
) -> Actor:
    """Caller identity as forwarded by the upstream auth gateway."""
    if x_caller_id is None or x_caller_role is None:
        raise HTTPException(status_code=401, detail="Missing caller identity headers")
    return Actor(caller_id=x_caller_id, role=x_caller_role)
