"""Tabular storage: sheets addressed by name, rows as header-keyed dicts.

Rows are read with ``get_data``, replaced in memory with ``set_data`` and
written back with ``dump_values``. Column order is preserved: existing
headers keep their position and new keys are appended.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from infrastructure.clients.google_workspace.drive import DriveClient
from infrastructure.clients.google_workspace.sheets import SheetsClient
from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationStatus
from modules.membership.domain.errors import MembershipError

logger = get_module_logger()

Row = Dict[str, Any]


class TableStoreError(MembershipError):
    """Raised when a sheet cannot be read or written."""


class TableStore(Protocol):
    def get_data(self, name: str) -> List[Row]:
        """Current rows of sheet ``name``; a missing sheet has no rows."""
        ...

    def set_data(self, name: str, rows: List[Row]) -> None:
        """Stage ``rows`` as the new content of sheet ``name``."""
        ...

    def dump_values(self, name: str) -> None:
        """Write the staged rows of sheet ``name``."""
        ...

    def last_modified(self) -> Optional[datetime]:
        """When the backing document last changed, or None if unknown."""
        ...


def merge_headers(existing: List[str], rows: List[Row]) -> List[str]:
    headers = list(existing)
    for row in rows:
        for key in row:
            if key not in headers:
                headers.append(key)
    return headers


def _cell(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if value is None:
        return ""
    return value


class InMemoryTable:
    """Dict-backed TableStore.

    Attributes:
        modified_at: Value returned by last_modified(); tests set it
        dumps: Number of dump_values calls per sheet
    """

    def __init__(
        self,
        tables: Optional[Dict[str, List[Row]]] = None,
        modified_at: Optional[datetime] = None,
    ) -> None:
        self._tables: Dict[str, List[Row]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self._headers: Dict[str, List[str]] = {
            name: merge_headers([], rows) for name, rows in self._tables.items()
        }
        self._staged: Dict[str, List[Row]] = {}
        self.modified_at = modified_at
        self.dumps: Dict[str, int] = {}

    def get_data(self, name: str) -> List[Row]:
        return [dict(r) for r in self._tables.get(name, [])]

    def set_data(self, name: str, rows: List[Row]) -> None:
        self._staged[name] = [dict(r) for r in rows]

    def dump_values(self, name: str) -> None:
        if name not in self._staged:
            return
        rows = self._staged.pop(name)
        self._headers[name] = merge_headers(self._headers.get(name, []), rows)
        self._tables[name] = rows
        self.dumps[name] = self.dumps.get(name, 0) + 1

    def headers(self, name: str) -> List[str]:
        return list(self._headers.get(name, []))

    def last_modified(self) -> Optional[datetime]:
        return self.modified_at


class SheetsTable:
    """TableStore backed by one Google spreadsheet.

    Args:
        sheets: SheetsClient from the Google Workspace facade
        spreadsheet_id: The spreadsheet holding every membership sheet
        drive: DriveClient used for the last-modified watermark
    """

    def __init__(
        self,
        sheets: SheetsClient,
        spreadsheet_id: str,
        drive: Optional[DriveClient] = None,
    ) -> None:
        self._sheets = sheets
        self._drive = drive
        self.spreadsheet_id = spreadsheet_id
        self._headers: Dict[str, List[str]] = {}
        self._staged: Dict[str, List[Row]] = {}

    def get_data(self, name: str) -> List[Row]:
        result = self._sheets.get_values(self.spreadsheet_id, name)
        if not result.is_success:
            raise TableStoreError(f"Failed to read sheet {name}: {result.message}")

        values = (result.data or {}).get("values", [])
        if not values:
            self._headers[name] = []
            return []

        headers = [str(h) for h in values[0]]
        self._headers[name] = headers
        rows: List[Row] = []
        for raw in values[1:]:
            if not any(cell not in ("", None) for cell in raw):
                continue
            padded = list(raw) + [""] * (len(headers) - len(raw))
            rows.append(dict(zip(headers, padded)))
        logger.debug("sheet_read", sheet=name, rows=len(rows))
        return rows

    def set_data(self, name: str, rows: List[Row]) -> None:
        self._staged[name] = [dict(r) for r in rows]

    def dump_values(self, name: str) -> None:
        if name not in self._staged:
            return
        rows = self._staged.pop(name)
        headers = merge_headers(self._headers.get(name, []), rows)
        values = [headers] + [[_cell(row.get(h)) for h in headers] for row in rows]

        cleared = self._sheets.clear_values(self.spreadsheet_id, name)
        if not cleared.is_success:
            raise TableStoreError(f"Failed to clear sheet {name}: {cleared.message}")
        written = self._sheets.update_values(self.spreadsheet_id, f"{name}!A1", values)
        if not written.is_success:
            raise TableStoreError(f"Failed to write sheet {name}: {written.message}")

        self._headers[name] = headers
        logger.info("sheet_written", sheet=name, rows=len(rows))

    def last_modified(self) -> Optional[datetime]:
        """Drive ``modifiedTime`` of the spreadsheet.

        A rate-limited lookup reports now, so the caller re-checks rather
        than waits; any other failure reports None.
        """
        if self._drive is None:
            return None
        result = self._drive.get_file(self.spreadsheet_id, fields="modifiedTime")
        if result.is_success:
            return datetime.fromisoformat(
                result.data["modifiedTime"].replace("Z", "+00:00")
            )
        logger.warning("sheet_last_modified_unavailable", error=result.message)
        if result.status == OperationStatus.TRANSIENT_ERROR:
            return datetime.now(timezone.utc)
        return None
