"""Shared test helpers: static source adapter, settings and row builders."""

from typing import Any

from feedsync_config.schema import (
    FeedSettings,
    LockSettings,
    RateLimitSettings,
    SourceConfig,
    SyncSettings,
)
from feedsync_ingestion.adapters.headers import build_rows
from feedsync_ingestion.domain.types import SourceRows
from feedsync_kernel.domain.values import FeedVariant
from feedsync_kernel.exceptions import SourceFetchError

POSVENDA_KEY = "posvenda_llc"
TAX_FORM_KEY = "tax_form_2026"
STATIC_KIND = "static"

SECRET_HEADERS = {"X-Sync-Secret": "cron-secret"}
SESSION_HEADERS = {"X-Session-Token": "ui-token"}


class StaticSourceAdapter:
    """
    In-memory SourceAdapter.

    Rows are registered per locator (the feed key in the default settings);
    ``fail_with`` makes every fetch raise SourceFetchError.
    """

    def __init__(self):
        self._rows: dict[str, SourceRows] = {}
        self.fail_with: str | None = None
        self.fetch_count = 0

    def set_rows(self, locator: str, rows: list[dict[str, Any]]) -> None:
        headers: list[str] = []
        for row in rows:
            for key in row:
                if key not in headers:
                    headers.append(key)
        values = [[row.get(h, "") for h in headers] for row in rows]
        self._rows[locator] = build_rows(headers, values, source_label=f"static:{locator}")

    def set_source_rows(self, locator: str, rows: SourceRows) -> None:
        self._rows[locator] = rows

    def fetch(self, source: SourceConfig) -> SourceRows:
        self.fetch_count += 1
        label = f"static:{source.locator}"
        if self.fail_with is not None:
            raise SourceFetchError(label, self.fail_with)
        return self._rows.get(source.locator) or SourceRows(headers=(), rows=(), source_label=label)


def make_settings(**overrides: Any) -> SyncSettings:
    values: dict[str, Any] = {
        "database_url": "sqlite://",
        "environment": "development",
        "trigger_secret": "cron-secret",
        "session_tokens": ("ui-token",),
        "rate_limits": RateLimitSettings(),
        "lock": LockSettings(backend="lease"),
        "feeds": {
            POSVENDA_KEY: FeedSettings(
                key=POSVENDA_KEY,
                variant=FeedVariant.POSVENDA,
                code_prefix="PV",
                source=SourceConfig(kind=STATIC_KIND, path=POSVENDA_KEY),
            ),
            TAX_FORM_KEY: FeedSettings(
                key=TAX_FORM_KEY,
                variant=FeedVariant.TAX_FORM,
                code_prefix="TAX",
                source=SourceConfig(kind=STATIC_KIND, path=TAX_FORM_KEY),
            ),
        },
    }
    values.update(overrides)
    return SyncSettings(**values)


def posvenda_row(empresa: str, **cells: Any) -> dict[str, Any]:
    """A posvenda sheet row keyed by normalized header."""
    row: dict[str, Any] = {"empresa": empresa}
    row.update(cells)
    return row


def tax_form_row(company_name: str, **cells: Any) -> dict[str, Any]:
    row: dict[str, Any] = {"company_name": company_name}
    row.update(cells)
    return row
