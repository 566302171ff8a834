"""Unit tests for group membership updates."""

from unittest.mock import MagicMock

import pytest

from infrastructure.operations import OperationResult, OperationStatus
from modules.membership.domain.errors import AggregateError
from modules.membership.groups import (
    GoogleGroupBackend,
    InMemoryGroupBackend,
    add_members_to_groups,
    apply_to_groups,
    remove_members_from_groups,
)
from tests.factories.membership import make_member


@pytest.mark.unit
class TestApplyToGroups:
    def test_visit_order_and_inputs_untouched(self):
        """Members are visited last-first, groups in input order."""
        members = ["m1@x.com", "m2@x.com"]
        groups = ["g1", "g2"]
        visited = []

        apply_to_groups(members, groups, lambda m, g: visited.append((g, m)))

        assert visited == [
            ("g1", "m2@x.com"),
            ("g2", "m2@x.com"),
            ("g1", "m1@x.com"),
            ("g2", "m1@x.com"),
        ]
        assert members == ["m1@x.com", "m2@x.com"]
        assert groups == ["g1", "g2"]

    def test_failures_are_collected_after_full_pass(self):
        calls = []

        def action(member, group):
            calls.append((member, group))
            if group == "g1":
                raise RuntimeError(f"cannot add {member}")
            if member == "m1@x.com":
                return OperationResult.permanent_error("quota")
            return OperationResult.success()

        with pytest.raises(AggregateError) as exc_info:
            apply_to_groups(["m1@x.com", "m2@x.com"], ["g1", "g2"], action)

        assert len(calls) == 4
        assert exc_info.value.errors == [
            "cannot add m2@x.com",
            "cannot add m1@x.com",
            "quota",
        ]

    def test_already_satisfied_is_not_a_failure(self):
        apply_to_groups(
            ["m1@x.com"], ["g1"], lambda m, g: OperationResult.already_satisfied("member")
        )

    def test_member_objects_use_home_email(self):
        backend = InMemoryGroupBackend()
        member = make_member(email="home@x.com", primary_email="ann.lee@club.example")

        add_members_to_groups([member], ["g1"], backend.add)

        assert backend.members_of("g1") == {"home@x.com"}


@pytest.mark.unit
class TestInMemoryGroupBackend:
    def test_add_and_remove_are_idempotent(self):
        backend = InMemoryGroupBackend()
        assert backend.add("a@x.com", "g1").status == OperationStatus.SUCCESS
        assert backend.add("a@x.com", "g1").status == OperationStatus.ALREADY_SATISFIED
        assert backend.remove("a@x.com", "g1").status == OperationStatus.SUCCESS
        assert backend.remove("a@x.com", "g1").status == OperationStatus.ALREADY_SATISFIED

    def test_remove_from_many_groups(self):
        backend = InMemoryGroupBackend({"g1": {"a@x.com"}, "g2": {"a@x.com", "b@x.com"}})
        remove_members_from_groups(["a@x.com"], ["g1", "g2"], backend.remove)
        assert backend.members_of("g1") == set()
        assert backend.members_of("g2") == {"b@x.com"}


@pytest.fixture
def directory_client():
    return MagicMock()


@pytest.mark.unit
class TestGoogleGroupBackend:
    def test_add_member(self, directory_client):
        directory_client.add_member.return_value = OperationResult.success()
        result = GoogleGroupBackend(directory_client).add("a@x.com", "g1@club.example")
        assert result.is_success
        directory_client.add_member.assert_called_once_with(
            "g1@club.example", {"email": "a@x.com", "role": "MEMBER"}
        )

    def test_add_existing_member_is_satisfied(self, directory_client):
        directory_client.add_member.return_value = OperationResult.permanent_error(
            "Google API error (409): Member already exists."
        )
        result = GoogleGroupBackend(directory_client).add("a@x.com", "g1@club.example")
        assert result.status == OperationStatus.ALREADY_SATISFIED

    def test_remove_absent_member_is_satisfied(self, directory_client):
        directory_client.remove_member.return_value = OperationResult.permanent_error(
            "Resource Not Found: memberKey"
        )
        result = GoogleGroupBackend(directory_client).remove("a@x.com", "g1@club.example")
        assert result.status == OperationStatus.ALREADY_SATISFIED

    def test_remove_with_invalid_address(self, directory_client):
        directory_client.remove_member.return_value = OperationResult.permanent_error(
            "Missing required field: memberKey"
        )
        result = GoogleGroupBackend(directory_client).remove("", "g1@club.example")
        assert result.error_code == "INVALID_EMAIL"
        assert "not valid email addresses" in result.message

    def test_test_mode_skips_api(self, directory_client):
        backend = GoogleGroupBackend(directory_client, test_adds=True, test_removes=True)
        assert backend.add("a@x.com", "g1").is_success
        assert backend.remove("a@x.com", "g1").is_success
        directory_client.add_member.assert_not_called()
        directory_client.remove_member.assert_not_called()
