"""Unit tests for template expansion."""

from datetime import date

import pytest

from modules.membership.templates import expand_template


@pytest.mark.unit
class TestExpandTemplate:
    def test_fields_and_dates(self):
        text = expand_template(
            "Hi {First}, you expire on {Expires}",
            {"First": "Ann", "Expires": date(2025, 1, 5)},
        )
        assert text == "Hi Ann, you expire on 1/5/2025"

    def test_date_strings_are_reformatted(self):
        assert expand_template("{Scheduled On}", {"Scheduled On": "2024-12-16"}) == "12/16/2024"

    def test_missing_values_render_empty(self):
        assert expand_template("[{Phone}][{Joined}]", {"Phone": None}) == "[][]"

    def test_unparseable_date_left_as_text(self):
        assert expand_template("{Expires}", {"Expires": "someday"}) == "someday"

    def test_empty_template(self):
        assert expand_template("", {"First": "Ann"}) == ""
