"""Sheets client for Google Workspace operations.

Reads and writes cell values. All methods return OperationResult for
consistent error handling.
"""

from typing import TYPE_CHECKING, Any, List, Optional

import structlog

from infrastructure.clients.google_workspace.executor import execute_google_api_call
from infrastructure.operations.result import OperationResult

if TYPE_CHECKING:
    from infrastructure.clients.google_workspace.session_provider import (
        SessionProvider,
    )

logger = structlog.get_logger()

SHEETS_FULL_SCOPE = "https://www.googleapis.com/auth/spreadsheets"

VALUE_INPUT_OPTION_RAW = "RAW"
VALUE_INPUT_OPTION_USER_ENTERED = "USER_ENTERED"


class SheetsClient:
    """Client for Google Sheets values operations.

    Thread safety: Not thread-safe. Create one instance per thread.

    Usage:
        result = sheets_client.get_values(
            spreadsheet_id="abc123",
            cell_range="ActiveMembers",
        )
        if result.is_success:
            rows = result.data.get("values", [])
    """

    def __init__(self, session_provider: "SessionProvider") -> None:
        self._session_provider = session_provider
        self._logger = logger.bind(client="sheets")

    def _values(self, delegated_email: Optional[str]) -> Any:
        service = self._session_provider.get_service(
            service_name="sheets",
            version="v4",
            scopes=[SHEETS_FULL_SCOPE],
            delegated_user_email=delegated_email,
        )
        return service.spreadsheets().values()

    def get_values(
        self,
        spreadsheet_id: str,
        cell_range: str,
        value_render_option: str = "UNFORMATTED_VALUE",
        date_time_render_option: str = "FORMATTED_STRING",
        delegated_email: Optional[str] = None,
    ) -> OperationResult:
        """Get values from a range in a spreadsheet.

        Args:
            spreadsheet_id: The spreadsheet ID
            cell_range: The A1 notation range or a sheet name
            value_render_option: How values should be represented
            date_time_render_option: How dates should be represented
            delegated_email: Optional email to delegate authentication to

        Returns:
            OperationResult with range and values

        Reference:
            https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets.values/get
        """
        self._logger.debug(
            "getting_values", spreadsheet_id=spreadsheet_id, cell_range=cell_range
        )

        def api_call() -> Any:
            return (
                self._values(delegated_email)
                .get(
                    spreadsheetId=spreadsheet_id,
                    range=cell_range,
                    majorDimension="ROWS",
                    valueRenderOption=value_render_option,
                    dateTimeRenderOption=date_time_render_option,
                )
                .execute()
            )

        return execute_google_api_call(
            operation_name="sheets.values.get",
            api_callable=api_call,
        )

    def update_values(
        self,
        spreadsheet_id: str,
        cell_range: str,
        values: List[List[Any]],
        value_input_option: str = VALUE_INPUT_OPTION_USER_ENTERED,
        delegated_email: Optional[str] = None,
    ) -> OperationResult:
        """Write a 2D array of values starting at ``cell_range``."""
        self._logger.info(
            "updating_values",
            spreadsheet_id=spreadsheet_id,
            cell_range=cell_range,
            row_count=len(values),
        )

        def api_call() -> Any:
            return (
                self._values(delegated_email)
                .update(
                    spreadsheetId=spreadsheet_id,
                    range=cell_range,
                    valueInputOption=value_input_option,
                    body={"values": values},
                )
                .execute()
            )

        return execute_google_api_call(
            operation_name="sheets.values.update",
            api_callable=api_call,
        )

    def clear_values(
        self,
        spreadsheet_id: str,
        cell_range: str,
        delegated_email: Optional[str] = None,
    ) -> OperationResult:
        self._logger.info(
            "clearing_values", spreadsheet_id=spreadsheet_id, cell_range=cell_range
        )

        def api_call() -> Any:
            return (
                self._values(delegated_email)
                .clear(spreadsheetId=spreadsheet_id, range=cell_range, body={})
                .execute()
            )

        return execute_google_api_call(
            operation_name="sheets.values.clear",
            api_callable=api_call,
        )
