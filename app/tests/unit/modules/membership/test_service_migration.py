"""Legacy member migration through MembershipService."""

import pytest

from modules.membership.domain.errors import AggregateError
from modules.membership.notifier import Outcome
from tests.factories.membership import make_member_row


def legacy_row(email="m@x.com", status="Active", **extra):
    row = {
        "Email": email,
        "First": "Mo",
        "Last": "Ma",
        "Phone": "",
        "Joined": "2020-05-01",
        "Expires": "2025-05-01",
        "Status": status,
        "Migrate Me": True,
        "Migrated": "",
        "g1@club.example": True,
        "g2@club.example": "",
    }
    row.update(extra)
    return row


@pytest.mark.unit
class TestMigrateMembers:
    def test_active_row_is_migrated(
        self, tables_factory, membership_service_factory, group_backend, mail_sender
    ):
        tables = tables_factory(migration=[legacy_row()])
        service = membership_service_factory(tables)

        [member] = service.migrate_members()

        assert member.home_email == "m@x.com"
        assert member.is_active
        assert group_backend.members_of("g1@club.example") == {"m@x.com"}
        assert group_backend.members_of("g2@club.example") == set()

        [message] = mail_sender.to("m@x.com")
        assert message.subject == "Migrated Mo"
        assert message.html_body == "Expires 5/1/2025"

        schedule = [(r["Date"], r["Type"]) for r in tables.get_data("ExpirySchedule")]
        assert schedule == [
            ("2025-04-01", "Expiry1"),
            ("2025-04-21", "Expiry2"),
            ("2025-05-01", "Expiry3"),
            ("2025-05-31", "Expiry4"),
        ]
        [row] = tables.get_data("ActiveMembers")
        assert row["Joined"] == "2020-05-01"
        assert tables.get_data("CEMembers")[0]["Migrated"] == "2024-03-01"
        assert service.notifier.of(Outcome.MIGRATION_SUCCESS)[0].detail == "Active"

    def test_inactive_row_is_recorded_only(
        self, tables_factory, membership_service_factory, group_backend, mail_sender
    ):
        tables = tables_factory(migration=[legacy_row(status="Expired")])
        service = membership_service_factory(tables)

        [member] = service.migrate_members()

        assert member.status == "Expired"
        assert group_backend.calls == []
        assert mail_sender.sent == []
        assert tables.get_data("ExpirySchedule") == []
        assert tables.get_data("ActiveMembers")[0]["Status"] == "Expired"

    @pytest.mark.parametrize(
        "extra",
        [{"Migrate Me": False}, {"Migrated": "2023-01-01"}],
        ids=["not-flagged", "already-migrated"],
    )
    def test_rows_not_selected_are_skipped(
        self, tables_factory, membership_service_factory, extra
    ):
        tables = tables_factory(migration=[legacy_row(**extra)])
        service = membership_service_factory(tables)

        assert service.migrate_members() == []
        assert tables.dumps == {}

    def test_existing_active_member_is_skipped(
        self, tables_factory, membership_service_factory
    ):
        tables = tables_factory(
            members=[make_member_row(email="m@x.com")], migration=[legacy_row()]
        )
        service = membership_service_factory(tables)

        assert service.migrate_members() == []

    def test_failed_row_does_not_stop_the_rest(
        self, tables_factory, membership_service_factory, group_backend
    ):
        group_backend.failures[("bad@x.com", "g1@club.example")] = "Not Authorized"
        tables = tables_factory(
            migration=[legacy_row(email="bad@x.com"), legacy_row(email="m@x.com")]
        )
        service = membership_service_factory(tables)

        with pytest.raises(AggregateError) as excinfo:
            service.migrate_members()

        assert excinfo.value.errors[0].startswith("Row 2 (bad@x.com)")
        assert [r["Email"] for r in tables.get_data("ActiveMembers")] == ["m@x.com"]
        migrated = [r["Migrated"] for r in tables.get_data("CEMembers")]
        assert migrated == ["", "2024-03-01"]
        assert service.notifier.of(Outcome.MIGRATION_FAILURE)[0].email == "bad@x.com"

    def test_explicit_rows_are_not_written_back(
        self, tables_factory, membership_service_factory
    ):
        tables = tables_factory()
        service = membership_service_factory(tables)
        rows = [legacy_row()]

        service.migrate_members(rows)

        assert rows[0]["Migrated"] == "2024-03-01"
        assert "CEMembers" not in tables.dumps
