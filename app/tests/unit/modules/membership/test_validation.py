"""Unit tests for action spec parsing and validation alerts."""

import pytest

from modules.membership.domain.models import ActionType
from modules.membership.mail import InMemoryMailSender
from modules.membership.validation import (
    RowError,
    parse_action_spec,
    parse_action_specs,
    render_validation_alert,
    send_validation_alert,
)
from tests.factories.membership import make_action_spec_rows


@pytest.mark.unit
class TestParseActionSpecs:
    def test_all_default_rows_are_valid(self):
        specs, errors = parse_action_specs(make_action_spec_rows())
        assert errors == []
        assert set(specs) == set(ActionType)
        assert specs[ActionType.EXPIRY1].offset == -30

    def test_invalid_rows_do_not_block_valid_ones(self):
        rows = make_action_spec_rows() + [
            {"Type": "Expiry9", "Subject": "s", "Body": "b"},
            {"Type": "Join", "Subject": "again", "Body": "b"},
        ]
        rows[3]["Offset"] = "soon"

        specs, errors = parse_action_specs(rows)

        assert ActionType.EXPIRY1 not in specs
        assert ActionType.JOIN in specs
        assert [e.row_number for e in errors] == [5, 9, 10]
        assert "Duplicate spec for Join" in errors[-1].reason

    def test_groups_and_whole_number_offsets(self):
        spec = parse_action_spec(
            {
                "Type": "Expiry4",
                "Subject": "Expired",
                "Body": "Bye",
                "Offset": "30.0",
                "Groups": "a@club.example, b@club.example",
            }
        )
        assert spec.offset == 30
        assert spec.groups == ["a@club.example", "b@club.example"]

    @pytest.mark.parametrize("offset", ["1.5", "x"])
    def test_bad_offsets(self, offset):
        specs, errors = parse_action_specs(
            [{"Type": "Expiry1", "Subject": "s", "Body": "b", "Offset": offset}]
        )
        assert specs == {}
        assert len(errors) == 1

    def test_missing_subject(self):
        _, errors = parse_action_specs([{"Type": "Renew", "Body": "b"}])
        assert errors[0].reason == "Renew has no Subject"


@pytest.mark.unit
class TestValidationAlert:
    def test_one_alert_lists_every_error(self):
        mail = InMemoryMailSender()
        errors = [
            RowError(3, "bad offset", {"Type": "Expiry1"}),
            RowError(0, "<script>", {}, label="Queue item 7"),
        ]

        assert send_validation_alert(mail, "alerts@club.example", "Action Specs", errors)

        assert len(mail.sent) == 1
        message = mail.sent[0]
        assert message.subject == "Data Validation Errors: Action Specs"
        assert "Row 3: bad offset" in message.html_body
        assert "Queue item 7: &lt;script&gt;" in message.html_body

    def test_no_errors_sends_nothing(self):
        mail = InMemoryMailSender()
        assert send_validation_alert(mail, "alerts@club.example", "x", []) is False
        assert mail.sent == []

    def test_failed_send_returns_false(self):
        mail = InMemoryMailSender()
        mail.failures["alerts@club.example"] = "down"
        assert not send_validation_alert(
            mail, "alerts@club.example", "x", [RowError(2, "r")]
        )

    def test_render_counts_rows(self):
        _, body = render_validation_alert("Expiry Queue", [RowError(2, "r"), RowError(3, "s")])
        assert "2 row(s) were rejected" in body
