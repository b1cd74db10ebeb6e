"""Status enums and the transition tables for jobs, bids and payments.

Every status change in the service layer is checked here first. The
conditional UPDATE statements that actually apply a change repeat the
source state in their WHERE clause, so a concurrent writer that got there
first makes the UPDATE match zero rows instead of overwriting it.
"""

from enum import Enum

from marketplace.errors import ConflictError


class JobStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BidStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    CREATED = "created"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.OPEN: frozenset({JobStatus.IN_PROGRESS, JobStatus.CANCELLED}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.COMPLETED}),
    JobStatus.CANCELLED: frozenset({JobStatus.OPEN}),
    JobStatus.COMPLETED: frozenset(),
}

# Owner-issued status edits through update_job. Assignment and completion
# only happen through bid acceptance and payment settlement.
JOB_OVERRIDES: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.OPEN: frozenset({JobStatus.CANCELLED}),
    JobStatus.CANCELLED: frozenset({JobStatus.OPEN}),
}

BID_TRANSITIONS: dict[BidStatus, frozenset[BidStatus]] = {
    BidStatus.PENDING: frozenset({BidStatus.ACCEPTED, BidStatus.REJECTED}),
    BidStatus.ACCEPTED: frozenset(),
    BidStatus.REJECTED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.CREATED: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


def _check(kind: str, table: dict, enum_cls: type[Enum], current: str, target: str) -> None:
    current_state = enum_cls(current)
    target_state = enum_cls(target)
    if target_state not in table.get(current_state, frozenset()):
        raise ConflictError(
            f"Cannot move {kind} from '{current_state.value}' to '{target_state.value}'"
        )


def check_job_transition(current: str, target: str) -> None:
    _check("job", JOB_TRANSITIONS, JobStatus, current, target)


def check_job_override(current: str, target: str) -> None:
    _check("job", JOB_OVERRIDES, JobStatus, current, target)


def check_bid_transition(current: str, target: str) -> None:
    _check("bid", BID_TRANSITIONS, BidStatus, current, target)


def check_payment_transition(current: str, target: str) -> None:
    _check("payment", PAYMENT_TRANSITIONS, PaymentStatus, current, target)
