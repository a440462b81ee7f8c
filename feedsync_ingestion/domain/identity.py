"""
Identity helpers: company-name normalization and the deterministic
fallback customer code.  Both are pure functions of their input.
"""

import hashlib
import re
import unicodedata

_NAME_PUNCTUATION = re.compile(r"[.,\-/()\[\]'\"]")
_WHITESPACE = re.compile(r"\s+")


def strip_accents(value: str) -> str:
    """'São João' -> 'Sao Joao'."""
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_company_name(name: str) -> str:
    """
    Identity key for a company name.

    Trim, lowercase, strip accents, drop ``. , - / ( ) [ ] ' "`` and
    collapse whitespace, so "Acme, Inc." and "ACME INC" compare equal.
    """
    value = strip_accents(name.strip().lower())
    value = _NAME_PUNCTUATION.sub("", value)
    return _WHITESPACE.sub(" ", value).strip()


def deterministic_customer_code(prefix: str, normalized_name: str) -> str:
    """``<PREFIX>-`` plus the first 12 hex chars of sha256(normalized_name), uppercased."""
    digest = hashlib.sha256(normalized_name.encode("utf-8")).hexdigest()
    return f"{prefix}-{digest[:12].upper()}"
