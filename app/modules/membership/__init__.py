"""Membership lifecycle engine.

Processes payment transactions into joins and renewals, provisions and
deprovisions directory identities, schedules and sends lifecycle emails,
and manages mailing-list group membership.
"""

from modules.membership.factory import create_membership_service
from modules.membership.notifier import Notifier, Outcome
from modules.membership.polling import (
    PAYMENT_CHECK_HANDLER,
    InMemoryTriggerScheduler,
    PollingBackoffController,
    ScheduleTriggerScheduler,
)
from modules.membership.service import MembershipService

__all__ = [
    "PAYMENT_CHECK_HANDLER",
    "InMemoryTriggerScheduler",
    "MembershipService",
    "Notifier",
    "Outcome",
    "PollingBackoffController",
    "ScheduleTriggerScheduler",
    "create_membership_service",
]
