"""
Consultation State Machine

Deterministic transition table for consultation requests. Every RequestStatus
member has an entry; an empty tuple marks a terminal (or legacy) status.
"""

from typing import Dict
from typing import FrozenSet
from typing import Tuple

from consult_api.errors import StateError
from consult_api.workflow.enums import RequestStatus

S = RequestStatus

ALLOWED_TRANSITIONS: Dict[RequestStatus, Tuple[RequestStatus, ...]] = {
    S.DRAFT: (S.SUBMITTED,),
    S.SUBMITTED: (S.PENDING_ADVISOR, S.CANCELLED),
    S.PENDING_ADVISOR: (S.ACCEPTED, S.REJECTED, S.CANCELLED),
    S.ACCEPTED: (S.PAYMENT_RESERVED, S.CANCELLED),
    # payment_reserved -> accepted releases a reservation the gateway refused
    S.PAYMENT_RESERVED: (S.PAID, S.ACCEPTED, S.CANCELLED),
    S.AWAITING_PAYMENT: (),
    S.PAID: (S.IN_PROGRESS,),
    S.IN_PROGRESS: (S.COMPLETED,),
    S.COMPLETED: (S.RELEASED,),
    S.RELEASED: (S.CLOSED,),
    S.CLOSED: (S.RATED,),
    S.RATED: (),
    S.CANCELLED: (),
    S.REJECTED: (),
}

# Statuses from which the owner may still cancel
CANCELLABLE: FrozenSet[RequestStatus] = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if S.CANCELLED in targets
)

# Statuses during which file references may be attached
FILE_ATTACHABLE: FrozenSet[RequestStatus] = frozenset(
    {S.PENDING_ADVISOR, S.ACCEPTED, S.PAYMENT_RESERVED, S.PAID, S.IN_PROGRESS}
)

# Partner dashboard buckets
DASHBOARD_NEW: FrozenSet[RequestStatus] = frozenset({S.PENDING_ADVISOR})
DASHBOARD_ACTIVE: FrozenSet[RequestStatus] = frozenset(
    {S.ACCEPTED, S.PAYMENT_RESERVED, S.PAID, S.IN_PROGRESS, S.COMPLETED}
)
DASHBOARD_COMPLETED: FrozenSet[RequestStatus] = frozenset({S.RELEASED, S.CLOSED, S.RATED})


def can_transition(from_status: RequestStatus, to_status: RequestStatus) -> bool:
    """Return True if the table allows from_status -> to_status."""
    return RequestStatus(to_status) in ALLOWED_TRANSITIONS[RequestStatus(from_status)]


def assert_transition(from_status: RequestStatus, to_status: RequestStatus) -> None:
    """
    Raise StateError unless from_status -> to_status is an allowed edge.

    Args:
        from_status: Current request status
        to_status: Target request status

    Raises:
        StateError: If the transition is not in ALLOWED_TRANSITIONS
    """
    if not can_transition(from_status, to_status):
        raise StateError(
            f"Cannot move consultation request from {RequestStatus(from_status).value} "
            f"to {RequestStatus(to_status).value}",
            from_status=RequestStatus(from_status).value,
            to_status=RequestStatus(to_status).value,
        )


def is_terminal(status: RequestStatus) -> bool:
    return not ALLOWED_TRANSITIONS[RequestStatus(status)]
