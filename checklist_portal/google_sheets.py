from __future__ import annotations

from typing import Callable, Iterable, List

import logging
import ssl
import time

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import Resource
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import HttpRequest
from httplib2 import HttpLib2Error

from .config import SheetsConfig

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

LOGGER = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
_MAX_RETRY_ATTEMPTS = 4
_INITIAL_BACKOFF_SECONDS = 1.0
_MAX_BACKOFF_SECONDS = 8.0
_RETRYABLE_EXCEPTIONS = (ssl.SSLEOFError, HttpLib2Error)


class GoogleSheetsClient:
    """Thin wrapper around the Google Sheets API for the portal spreadsheet."""

    def __init__(self, conf: SheetsConfig) -> None:
        self._conf = conf
        self._service: Resource | None = None

    @property
    def config(self) -> SheetsConfig:
        return self._conf

    def _service_client(self) -> Resource:
        if self._service is None:
            creds = Credentials.from_service_account_file(
                str(self._conf.credentials_file), scopes=SCOPES
            )
            self._service = build("sheets", "v4", credentials=creds)
        return self._service

    # Reading -----------------------------------------------------------------
    def fetch_values(self, sheet_name: str) -> List[List[str]]:
        """Load all values from the given tab of the portal spreadsheet."""

        def _build_request() -> HttpRequest:
            service = self._service_client()
            return (
                service.spreadsheets()
                .values()
                .get(
                    spreadsheetId=self._conf.spreadsheet_id,
                    range=sheet_name,
                )
            )

        result = self._execute_with_retry(_build_request, operation=f"fetch '{sheet_name}'")
        return result.get("values", [])

    def fetch_projects(self) -> List[List[str]]:
        return self.fetch_values(self._conf.projects_sheet_name)

    def fetch_logins(self) -> List[List[str]]:
        return self.fetch_values(self._conf.logins_sheet_name)

    def fetch_past_inspections(self) -> List[List[str]]:
        if not self._conf.past_inspections_sheet_name:
            return []
        return self.fetch_values(self._conf.past_inspections_sheet_name)

    # Writing -----------------------------------------------------------------
    def append_rows(self, sheet_name: str, values: Iterable[Iterable[str]]) -> dict | None:
        """Append rows to a tab without touching existing data."""

        rows = [list(row) for row in values]
        if not rows:
            return None

        payload = {"values": rows}
        target_range = f"{sheet_name}!A1"

        def _append_request() -> HttpRequest:
            service = self._service_client()
            return (
                service.spreadsheets()
                .values()
                .append(
                    spreadsheetId=self._conf.spreadsheet_id,
                    range=target_range,
                    valueInputOption="USER_ENTERED",
                    insertDataOption="INSERT_ROWS",
                    body=payload,
                )
            )

        return self._execute_with_retry(_append_request, operation=f"append to '{sheet_name}'")

    # Internal ----------------------------------------------------------------
    def _reset_service(self) -> None:
        self._service = None

    def _execute_with_retry(
        self,
        request_builder: Callable[[], HttpRequest],
        *,
        operation: str,
    ) -> dict:
        """Execute a Sheets API request with retries for transient failures."""

        backoff = _INITIAL_BACKOFF_SECONDS
        last_exc: Exception | None = None

        for attempt in range(1, _MAX_RETRY_ATTEMPTS + 1):
            try:
                return request_builder().execute()
            except _RETRYABLE_EXCEPTIONS as exc:
                last_exc = exc
            except HttpError as exc:
                status = getattr(exc.resp, "status", None)
                if status not in _RETRYABLE_STATUS_CODES:
                    raise
                last_exc = exc

            if attempt == _MAX_RETRY_ATTEMPTS:
                raise last_exc

            wait_time = min(backoff, _MAX_BACKOFF_SECONDS)
            LOGGER.warning(
                "Sheets API %s failed on attempt %s/%s (%s); retrying in %.1f seconds",
                operation,
                attempt,
                _MAX_RETRY_ATTEMPTS,
                last_exc,
                wait_time,
            )
            self._reset_service()
            time.sleep(wait_time)
            backoff *= 2

        raise RuntimeError("Sheets API request failed without capturing an exception")
