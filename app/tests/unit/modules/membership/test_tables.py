"""Unit tests for tabular storage."""

from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest

from infrastructure.operations import OperationResult
from modules.membership.tables import (
    InMemoryTable,
    SheetsTable,
    TableStoreError,
    merge_headers,
)


@pytest.mark.unit
class TestInMemoryTable:
    def test_staged_rows_are_written_on_dump(self):
        table = InMemoryTable({"ActiveMembers": [{"Email": "a@x.com"}]})
        table.set_data("ActiveMembers", [{"Email": "b@x.com"}])
        assert table.get_data("ActiveMembers") == [{"Email": "a@x.com"}]

        table.dump_values("ActiveMembers")

        assert table.get_data("ActiveMembers") == [{"Email": "b@x.com"}]
        assert table.dumps == {"ActiveMembers": 1}

    def test_missing_sheet_has_no_rows(self):
        assert InMemoryTable().get_data("Nope") == []

    def test_reads_are_copies(self):
        table = InMemoryTable({"S": [{"a": 1}]})
        table.get_data("S")[0]["a"] = 2
        assert table.get_data("S") == [{"a": 1}]

    def test_header_order_preserved(self):
        table = InMemoryTable({"S": [{"b": 1, "a": 2}]})
        table.set_data("S", [{"a": 3, "c": 4}])
        table.dump_values("S")
        assert table.headers("S") == ["b", "a", "c"]


@pytest.mark.unit
def test_merge_headers_appends_new_keys():
    assert merge_headers(["Date"], [{"Email": 1, "Date": 2}, {"Type": 3}]) == [
        "Date",
        "Email",
        "Type",
    ]


@pytest.fixture
def sheets():
    client = MagicMock()
    client.get_values.return_value = OperationResult.success(
        data={
            "values": [
                ["Email", "First", "Expires"],
                ["a@x.com", "Ann"],
                ["", "", ""],
                ["b@x.com", "Bo", "2025-01-01"],
            ]
        }
    )
    client.clear_values.return_value = OperationResult.success()
    client.update_values.return_value = OperationResult.success()
    return client


@pytest.mark.unit
class TestSheetsTable:
    def test_get_data_pads_rows_and_skips_blanks(self, sheets):
        rows = SheetsTable(sheets, "sheet-1").get_data("ActiveMembers")
        assert rows == [
            {"Email": "a@x.com", "First": "Ann", "Expires": ""},
            {"Email": "b@x.com", "First": "Bo", "Expires": "2025-01-01"},
        ]

    def test_dump_values_writes_headers_then_rows(self, sheets):
        table = SheetsTable(sheets, "sheet-1")
        table.get_data("ActiveMembers")
        table.set_data(
            "ActiveMembers",
            [{"Email": "a@x.com", "Expires": date(2025, 3, 1), "Status": "Active"}],
        )

        table.dump_values("ActiveMembers")

        sheets.clear_values.assert_called_once_with("sheet-1", "ActiveMembers")
        sheets.update_values.assert_called_once_with(
            "sheet-1",
            "ActiveMembers!A1",
            [
                ["Email", "First", "Expires", "Status"],
                ["a@x.com", "", "2025-03-01", "Active"],
            ],
        )

    def test_read_failure_raises(self, sheets):
        sheets.get_values.return_value = OperationResult.permanent_error("forbidden")
        with pytest.raises(TableStoreError, match="forbidden"):
            SheetsTable(sheets, "sheet-1").get_data("ActiveMembers")

    def test_write_failure_raises(self, sheets):
        sheets.update_values.return_value = OperationResult.transient_error("503")
        table = SheetsTable(sheets, "sheet-1")
        table.set_data("ExpirySchedule", [{"Date": "2025-01-01"}])
        with pytest.raises(TableStoreError):
            table.dump_values("ExpirySchedule")

    def test_last_modified_from_drive(self, sheets):
        drive = MagicMock()
        drive.get_file.return_value = OperationResult.success(
            data={"modifiedTime": "2024-03-01T12:00:00.000Z"}
        )
        modified = SheetsTable(sheets, "sheet-1", drive=drive).last_modified()
        assert modified == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_last_modified_unknown(self, sheets):
        drive = MagicMock()
        drive.get_file.return_value = OperationResult.permanent_error("forbidden")
        assert SheetsTable(sheets, "sheet-1", drive=drive).last_modified() is None
        assert SheetsTable(sheets, "sheet-1").last_modified() is None

    def test_last_modified_rate_limited_reports_now(self, sheets):
        drive = MagicMock()
        drive.get_file.return_value = OperationResult.transient_error("rate limited")
        modified = SheetsTable(sheets, "sheet-1", drive=drive).last_modified()
        assert modified is not None
        assert modified.tzinfo is not None
