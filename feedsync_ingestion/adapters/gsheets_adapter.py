"""
Google Sheets source adapter.

Reads one worksheet through gspread, authorized with google-auth
service-account credentials.  Worksheet selection: ``gid`` first, then a
case-insensitive ``sheet_name`` match, then the first worksheet.  The
spreadsheet must be shared with the service account's email.
"""

from __future__ import annotations

from typing import Any, Callable

import gspread
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials

from feedsync_config.schema import SourceConfig
from feedsync_ingestion.adapters.base import source_label
from feedsync_ingestion.adapters.headers import build_rows
from feedsync_ingestion.domain.types import SourceRows
from feedsync_kernel.exceptions import SourceFetchError
from feedsync_kernel.logging_config import get_logger

logger = get_logger("ingestion.gsheets")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


def authorize_from_file(credentials_file: str) -> gspread.Client:
    credentials = Credentials.from_service_account_file(credentials_file, scopes=SCOPES)
    return gspread.authorize(credentials)


class GoogleSheetsSourceAdapter:
    """
    Fetch rows from a Google Sheets worksheet.

    ``client_factory`` receives the credentials file path and returns a
    gspread client; tests pass a fake.
    """

    def __init__(
        self,
        client_factory: Callable[[str | None], Any] | None = None,
    ):
        self._client_factory = client_factory

    def fetch(self, source: SourceConfig) -> SourceRows:
        label = source_label(source)
        if not source.spreadsheet_id:
            raise SourceFetchError(label, "spreadsheet_id is required")

        try:
            client = self._client(source)
            spreadsheet = client.open_by_key(source.spreadsheet_id)
            worksheet = self._select_worksheet(spreadsheet, source)
            if worksheet is None:
                raise SourceFetchError(label, "spreadsheet has no worksheets")
            values = worksheet.get_all_values()
        except (gspread.exceptions.GSpreadException, GoogleAuthError, OSError, ValueError) as exc:
            raise SourceFetchError(label, f"{type(exc).__name__}: {exc}") from exc

        if not values:
            rows = SourceRows(headers=(), rows=(), source_label=label)
        else:
            rows = build_rows(values[0], values[1:], source_label=label)

        logger.info(
            "source_fetched",
            extra={
                "source": label,
                "worksheet": worksheet.title,
                "row_count": len(rows),
                "column_count": len(rows.headers),
            },
        )
        return rows

    def _client(self, source: SourceConfig) -> Any:
        if self._client_factory is not None:
            return self._client_factory(source.credentials_file)
        if not source.credentials_file:
            raise SourceFetchError(
                source_label(source),
                "no service account credentials configured "
                "(set GOOGLE_SERVICE_ACCOUNT_FILE)",
            )
        return authorize_from_file(source.credentials_file)

    def _select_worksheet(self, spreadsheet: Any, source: SourceConfig) -> Any | None:
        worksheets = spreadsheet.worksheets()
        if not worksheets:
            return None

        if source.gid and source.gid.strip().lstrip("-").isdigit():
            gid = int(source.gid)
            for ws in worksheets:
                if ws.id == gid:
                    return ws

        if source.sheet_name:
            wanted = source.sheet_name.lower()
            for ws in worksheets:
                if ws.title.lower() == wanted:
                    return ws

        return worksheets[0]
