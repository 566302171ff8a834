"""Domain layer - data models and errors."""

from modules.membership.domain.errors import (
    AggregateError,
    AlreadyExistsError,
    BackendError,
    CreationIncompleteError,
    DeliveryError,
    DirectoryError,
    MembershipError,
    NotFoundError,
    ValidationError,
    raise_for_result,
)
from modules.membership.domain.models import (
    ACTIVE,
    EXPIRED,
    ActionSpec,
    ActionType,
    ExpiryAction,
    Member,
    ScheduleEntry,
    Transaction,
    parse_date,
)

__all__ = [
    "ACTIVE",
    "EXPIRED",
    "ActionSpec",
    "ActionType",
    "AggregateError",
    "AlreadyExistsError",
    "BackendError",
    "CreationIncompleteError",
    "DeliveryError",
    "DirectoryError",
    "ExpiryAction",
    "Member",
    "MembershipError",
    "NotFoundError",
    "ScheduleEntry",
    "Transaction",
    "ValidationError",
    "parse_date",
    "raise_for_result",
]
