"""
Cell coercers: pure string -> typed conversions for sheet values.

Every coercer takes the raw (already trimmed) cell text and returns the
typed value, or None when the text cannot be read.  None is an omission,
never an error.  ZERO I/O.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from dateutil import parser as date_parser

from feedsync_ingestion.domain.identity import strip_accents

AFFIRMATIVE = frozenset({"1", "true", "sim", "sí", "si", "yes", "s", "y"})

_CURRENCY_NOISE = re.compile(r"(?i)us\$|r\$|\$|\s")
_DMY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_ISO = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# -----------------------------------------------------------------------------
# Row access
# -----------------------------------------------------------------------------


def pick(row: Mapping[str, str], *keys: str) -> str:
    """First non-blank value among ``keys`` (trimmed), else ''."""
    for key in keys:
        value = (row.get(key) or "").strip()
        if value:
            return value
    return ""


def join_present(parts: Sequence[str], separator: str = " · ") -> str:
    return separator.join(p for p in parts if p)


# -----------------------------------------------------------------------------
# Coercers
# -----------------------------------------------------------------------------


def _canonical_decimal_text(text: str) -> str:
    """
    Rewrite a locale-formatted number so Decimal can read it.

    "1.234,56" -> "1234.56", "1,500.00" -> "1500.00", "1.500" -> "1500",
    "12,5" -> "12.5".
    """
    last_dot = text.rfind(".")
    last_comma = text.rfind(",")
    if last_dot >= 0 and last_comma >= 0:
        if last_comma > last_dot:
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")
    if last_comma >= 0:
        if text.count(",") > 1:
            return text.replace(",", "")
        return text.replace(",", ".")
    if text.count(".") > 1:
        return text.replace(".", "")
    if last_dot >= 0 and len(text) - last_dot - 1 == 3:
        return text.replace(".", "")
    return text


def parse_cents(value: str | None) -> int | None:
    """
    Currency text -> integer cents, rounded half-up.

    Currency symbols ($, US$, R$) and spaces are ignored.  Negative amounts
    are returned as-is; callers decide whether they are acceptable.
    """
    text = _CURRENCY_NOISE.sub("", value or "")
    if not text:
        return None
    try:
        amount = Decimal(_canonical_decimal_text(text))
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_percentage(value: str | None) -> float | None:
    """Percentage text -> float clamped to [0, 100]; comma or dot decimal."""
    text = (value or "").strip().rstrip("%").strip().replace(",", ".")
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return min(100.0, max(0.0, number))


def parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in AFFIRMATIVE


def parse_date(value: str | None) -> date | None:
    """DD/MM/YYYY, YYYY-MM-DD, else a day-first dateutil parse."""
    text = (value or "").strip()
    if not text:
        return None
    try:
        match = _DMY.match(text)
        if match:
            day, month, year = (int(g) for g in match.groups())
            return date(year, month, day)
        if _ISO.match(text):
            return date.fromisoformat(text)
        return date_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


def match_choice(value: str | None, choices: Sequence[str]) -> str | None:
    """
    Match free text against a fixed enumeration.

    Case- and accent-insensitive equality wins; otherwise the first choice
    that starts with the text.  No match (or blank text) gives None.
    """
    wanted = strip_accents((value or "").strip()).casefold()
    if not wanted:
        return None
    folded = [(choice, strip_accents(choice).casefold()) for choice in choices]
    for choice, key in folded:
        if key == wanted:
            return choice
    for choice, key in folded:
        if key.startswith(wanted):
            return choice
    return None


def parse_int(value: str | None) -> int | None:
    text = (value or "").strip()
    try:
        return int(text)
    except ValueError:
        return None
