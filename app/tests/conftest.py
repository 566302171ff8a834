"""Shared fixtures for the membership service tests."""

from datetime import date
from typing import Any, Dict, List, Optional

import pytest

from infrastructure.configuration.features.membership import (
    MembershipFeatureSettings,
)
from infrastructure.persistence.property_store import InMemoryPropertyStore
from infrastructure.resilience.retry import InMemoryRetryStore, RetryConfig
from modules.membership.directory.memory import InMemoryDirectory
from modules.membership.groups import InMemoryGroupBackend
from modules.membership.mail import InMemoryMailSender
from modules.membership.service import MembershipService
from modules.membership.tables import InMemoryTable
from tests.factories.membership import make_action_spec_rows


@pytest.fixture
def membership_settings_factory():
    """Factory for MembershipFeatureSettings built from keyword overrides.

    Keys are the environment variable aliases, e.g. MEMBERSHIP_GROUPS.
    """

    def _factory(**overrides: Any) -> MembershipFeatureSettings:
        values: Dict[str, Any] = {
            "MEMBERSHIP_DOMAIN": "club.example",
            "MEMBERSHIP_GROUPS": "g1@club.example,g2@club.example",
            "MEMBERSHIP_PROVISION_DIRECTORY": False,
            "VALIDATION_ERROR_EMAIL": "alerts@club.example",
            "MEMBERSHIP_SEND_REPORTS": False,
        }
        values.update(overrides)
        return MembershipFeatureSettings(**values)

    return _factory


@pytest.fixture
def membership_settings(membership_settings_factory):
    return membership_settings_factory()


@pytest.fixture
def property_store():
    return InMemoryPropertyStore()


@pytest.fixture
def mail_sender():
    return InMemoryMailSender()


@pytest.fixture
def group_backend():
    return InMemoryGroupBackend()


@pytest.fixture
def directory():
    return InMemoryDirectory(sleep=lambda _: None)


@pytest.fixture
def expiry_retry_store():
    return InMemoryRetryStore(RetryConfig(max_attempts=3, base_delay_seconds=60))


@pytest.fixture
def tables_factory():
    """Factory for an InMemoryTable holding the membership sheets."""

    def _factory(
        transactions: Optional[List[Dict[str, Any]]] = None,
        members: Optional[List[Dict[str, Any]]] = None,
        schedule: Optional[List[Dict[str, Any]]] = None,
        action_specs: Optional[List[Dict[str, Any]]] = None,
        migration: Optional[List[Dict[str, Any]]] = None,
    ) -> InMemoryTable:
        return InMemoryTable(
            {
                "Transactions": transactions or [],
                "ActiveMembers": members or [],
                "ExpirySchedule": schedule or [],
                "ActionSpecs": make_action_spec_rows()
                if action_specs is None
                else action_specs,
                "CEMembers": migration or [],
            }
        )

    return _factory


@pytest.fixture
def membership_service_factory(
    membership_settings_factory, mail_sender, group_backend, expiry_retry_store
):
    """Factory for a MembershipService over in-memory collaborators."""

    def _factory(
        tables: InMemoryTable,
        today: date = date(2024, 3, 1),
        directory: Optional[InMemoryDirectory] = None,
        **settings_overrides: Any,
    ) -> MembershipService:
        return MembershipService(
            tables=tables,
            group_backend=group_backend,
            mail_sender=mail_sender,
            retry_store=expiry_retry_store,
            settings=membership_settings_factory(**settings_overrides),
            directory=directory,
            today=lambda: today,
        )

    return _factory
