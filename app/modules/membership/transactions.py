"""Translate payment transactions into membership actions."""

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from modules.membership.domain.models import (
    ActionType,
    Member,
    Transaction,
    normalize_email,
)

YEARS_PATTERN = re.compile(r"(\d+)\s*year", re.IGNORECASE)
LEADING_INT_PATTERN = re.compile(r"^\s*(\d+)")

TransactionLike = Union[Transaction, Dict[str, Any]]


@dataclass
class PaidMemberAction:
    """Intent derived from one paid, unprocessed transaction.

    Attributes:
        email: Payer's email, lowercased
        period: Years paid for, at least 1
        first: Given name
        last: Family name
        phone: Phone number as entered
        transaction: The source transaction
        index: Position of the transaction in the input
    """

    email: str
    period: int
    first: str
    last: str
    phone: str = ""
    transaction: Optional[Transaction] = None
    index: int = 0


def _as_transaction(txn: TransactionLike) -> Transaction:
    return txn if isinstance(txn, Transaction) else Transaction.from_record(txn)


def parse_period(text: Any) -> int:
    """Years described by a payment field.

    Takes the first ``<n> year`` match, else a leading integer, else 1.
    Values below 1 become 1.
    """
    if text is None:
        return 1
    value = str(text)
    match = YEARS_PATTERN.search(value) or LEADING_INT_PATTERN.match(value)
    if not match:
        return 1
    return max(1, int(match.group(1)))


def derive_paid_member_actions(
    transactions: Iterable[TransactionLike],
) -> List[PaidMemberAction]:
    """One PaidMemberAction per paid, unprocessed transaction, in input order.

    Join or Renew is decided afterwards by ``classify_actions``.
    """
    actions: List[PaidMemberAction] = []
    for index, raw in enumerate(transactions):
        txn = _as_transaction(raw)
        if txn.is_processed or not txn.is_paid:
            continue
        actions.append(
            PaidMemberAction(
                email=txn.email,
                period=parse_period(txn.payment),
                first=txn.first,
                last=txn.last,
                phone=txn.phone,
                transaction=txn,
                index=index,
            )
        )
    return actions


def classify_actions(
    actions: Iterable[PaidMemberAction], existing_members: Sequence[Member]
) -> List[Tuple[ActionType, PaidMemberAction]]:
    """Tag each action JOIN or RENEW by exact email match against the home
    emails of active members."""
    active = {m.home_email for m in existing_members if m.is_active}
    return [
        (
            ActionType.RENEW if normalize_email(a.email) in active else ActionType.JOIN,
            a,
        )
        for a in actions
    ]


def add_years(value: date, years: int) -> date:
    """Add calendar years; Feb 29 becomes Feb 28 in non-leap years."""
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, day=28)


def calculate_expiration_date(
    reference: Optional[date], expires: Optional[date], period: int = 1
) -> date:
    """``max(reference, expires)`` plus ``period`` years.

    Raises:
        ValueError: If either date is missing
    """
    if not reference:
        raise ValueError("No reference date provided")
    if not expires:
        raise ValueError("No expiration date provided")
    return add_years(max(reference, expires), period)


def has_pending_payments(transactions: Iterable[TransactionLike]) -> bool:
    """True when any unprocessed transaction is not yet paid."""
    for raw in transactions:
        txn = _as_transaction(raw)
        if not txn.is_processed and not txn.is_paid:
            return True
    return False
