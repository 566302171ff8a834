"""Unit tests for translating transactions into membership actions."""

from datetime import date

import pytest

from modules.membership.domain.models import ActionType, Transaction
from modules.membership.transactions import (
    add_years,
    calculate_expiration_date,
    classify_actions,
    derive_paid_member_actions,
    has_pending_payments,
    parse_period,
)
from tests.factories.membership import make_member, make_transaction_row


@pytest.mark.unit
class TestDerivePaidMemberActions:
    def test_status_and_period_rules(self):
        """PAID in any case counts; missing payment text means one year."""
        rows = [
            make_transaction_row(email="two@x.com", payable_status="PAID", payment="2 years"),
            make_transaction_row(email="none@x.com", payment=""),
            make_transaction_row(email="wait@x.com", payable_status="pending"),
        ]

        actions = derive_paid_member_actions(rows)

        assert [(a.email, a.period) for a in actions] == [("two@x.com", 2), ("none@x.com", 1)]

    def test_processed_rows_are_skipped(self):
        rows = [
            make_transaction_row(email="done@x.com", processed="2024-02-01"),
            make_transaction_row(email="new@x.com"),
        ]
        actions = derive_paid_member_actions(rows)
        assert [(a.email, a.index) for a in actions] == [("new@x.com", 1)]

    def test_accepts_transaction_objects(self):
        txn = Transaction(email="A@X.com", first="Ann", last="Lee", payable_status="paid")
        action = derive_paid_member_actions([txn])[0]
        assert (action.email, action.first, action.last, action.period) == (
            "a@x.com",
            "Ann",
            "Lee",
            1,
        )
        assert action.transaction is txn

    def test_end_to_end_example(self):
        actions = derive_paid_member_actions(
            [make_transaction_row(email="a@x.com", payment="1 year")]
        )
        classified = classify_actions(actions, [])
        assert [(t, a.email, a.period) for t, a in classified] == [
            (ActionType.JOIN, "a@x.com", 1)
        ]


@pytest.mark.unit
class TestParsePeriod:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1 year", 1),
            ("2 years", 2),
            ("Membership - 3 Years ($75)", 3),
            ("4", 4),
            ("0 years", 1),
            ("lifetime", 1),
            ("", 1),
            (None, 1),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_period(text) == expected


@pytest.mark.unit
class TestClassifyActions:
    def test_join_or_renew_by_active_home_email(self):
        members = [
            make_member(email="active@x.com"),
            make_member(email="gone@x.com", status="Expired"),
        ]
        actions = derive_paid_member_actions(
            [
                make_transaction_row(email="ACTIVE@x.com"),
                make_transaction_row(email="gone@x.com"),
            ]
        )
        types = [t for t, _ in classify_actions(actions, members)]
        assert types == [ActionType.RENEW, ActionType.JOIN]


@pytest.mark.unit
class TestExpirationDates:
    def test_extends_from_later_date(self):
        assert calculate_expiration_date(date(2024, 3, 1), date(2024, 6, 1), 1) == date(2025, 6, 1)
        assert calculate_expiration_date(date(2024, 3, 1), date(2023, 6, 1), 2) == date(2026, 3, 1)

    def test_missing_dates_raise(self):
        with pytest.raises(ValueError, match="reference"):
            calculate_expiration_date(None, date(2024, 1, 1))
        with pytest.raises(ValueError, match="expiration"):
            calculate_expiration_date(date(2024, 1, 1), None)

    def test_leap_day(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
        assert add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)


@pytest.mark.unit
class TestHasPendingPayments:
    def test_unpaid_unprocessed_is_pending(self):
        assert has_pending_payments([make_transaction_row(payable_status="Pending")])

    def test_processed_or_paid_is_not_pending(self):
        assert not has_pending_payments(
            [
                make_transaction_row(),
                make_transaction_row(payable_status="", processed="2024-03-01"),
            ]
        )
