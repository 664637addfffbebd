from enum import Enum
from typing import Dict, FrozenSet

from mwss.core.exceptions import InvalidStateError


class TransactionCategory(str, Enum):
    DONATION = "donation"
    MEMBERSHIP = "membership"
    FEE = "fee"
    OTHER = "other"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class MemberStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class FeeLevel(str, Enum):
    VILLAGE = "village"
    BLOCK = "block"
    DISTRICT = "district"
    HARYANA = "haryana"


FEE_AMOUNTS: Dict[FeeLevel, int] = {
    FeeLevel.VILLAGE: 99,
    FeeLevel.BLOCK: 199,
    FeeLevel.DISTRICT: 299,
    FeeLevel.HARYANA: 399,
}


# Only pending transactions can be decided; approved and rejected are terminal.
TRANSACTION_TRANSITIONS: Dict[TransactionStatus, FrozenSet[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset({TransactionStatus.APPROVED, TransactionStatus.REJECTED}),
    TransactionStatus.APPROVED: frozenset(),
    TransactionStatus.REJECTED: frozenset(),
}


def check_transaction_transition(current: str, target: str) -> TransactionStatus:
    """Return the target status if current -> target is allowed, else raise InvalidStateError."""
    current_status = TransactionStatus(current)
    target_status = TransactionStatus(target)
    if target_status not in TRANSACTION_TRANSITIONS[current_status]:
        raise InvalidStateError(
            f"Invalid status transition: {current_status.value} -> {target_status.value}"
        )
    return target_status
