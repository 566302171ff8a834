"""Expiry schedule computation.

Entries are derived from a member's expiry date and the expiry ActionSpecs.
Whenever the expiry date changes, every entry for the member is replaced by a
fresh computation, so no entry derived from an old date can fire.
"""

from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from modules.membership.domain.errors import ValidationError
from modules.membership.domain.models import ActionSpec, Member, ScheduleEntry


def schedule_for(
    member: Member,
    action_specs: Iterable[ActionSpec],
    not_before: Optional[date] = None,
) -> List[ScheduleEntry]:
    """One entry per expiry spec, dated ``member.expires + offset`` days.

    Entries dated on or before ``not_before`` are left out.

    Raises:
        ValidationError: If the member has no expiry date
    """
    if member.expires is None:
        raise ValidationError(f"{member.home_email} has no expiry date")

    entries: List[ScheduleEntry] = []
    for spec in action_specs:
        if not spec.type.is_expiry:
            continue
        when = member.expires + timedelta(days=spec.offset or 0)
        if not_before is not None and when <= not_before:
            continue
        entries.append(ScheduleEntry(date=when, email=member.home_email, type=spec.type))
    return entries


def is_due(entry: ScheduleEntry, as_of: date) -> bool:
    return entry.date <= as_of


def reschedule(
    entries: Sequence[ScheduleEntry],
    member: Member,
    action_specs: Iterable[ActionSpec],
    not_before: Optional[date] = None,
) -> List[ScheduleEntry]:
    """New schedule with the member's entries recomputed from its expiry date."""
    kept = [e for e in entries if e.email != member.home_email]
    return kept + schedule_for(member, action_specs, not_before)


def select_due(
    entries: Sequence[ScheduleEntry], as_of: date
) -> Tuple[List[ScheduleEntry], List[ScheduleEntry]]:
    """Pick the entries to fire on ``as_of``.

    Due entries are ordered latest date first, then by type. Only the first
    entry per email fires; the rest of that email's due entries are dropped.
    Entries not yet due are kept.

    Returns:
        (fired, remaining)
    """
    due = sorted(
        (e for e in entries if is_due(e, as_of)),
        key=lambda e: (-e.date.toordinal(), e.type.value),
    )
    fired: List[ScheduleEntry] = []
    seen: Set[str] = set()
    for entry in due:
        if entry.email in seen:
            continue
        seen.add(entry.email)
        fired.append(entry)

    remaining = [e for e in entries if not is_due(e, as_of)]
    return fired, remaining
