"""
Settings loader (``feedsync_config.loader``).

Responsibility
--------------
Reads the YAML settings file with ``yaml.safe_load``, applies environment
overrides and parses the result into the frozen ``feedsync_config.schema``
dataclasses.

Environment overrides
---------------------
* ``FEEDSYNC_ENV``              -> ``environment``
* ``FEEDSYNC_DATABASE_URL``     -> ``database_url``
* ``FEEDSYNC_TRIGGER_SECRET``   -> ``trigger_secret``
* ``FEEDSYNC_SESSION_TOKENS``   -> ``session_tokens`` (comma-separated)
* ``GOOGLE_SERVICE_ACCOUNT_FILE`` -> ``google_credentials_file``
* per-source ``<field>_env`` keys name the variable holding that field,
  e.g. ``spreadsheet_id_env: POSVENDA_SHEETS_SPREADSHEET_ID``.

Failure modes
-------------
* Missing settings file     -> ``FileNotFoundError`` propagates.
* Malformed YAML            -> ``yaml.YAMLError`` propagates.
* Missing or invalid values -> ``InvalidSettingsError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from feedsync_config.schema import (
    SOURCE_KINDS,
    FeedSettings,
    LockSettings,
    RateLimitSettings,
    SourceConfig,
    SyncSettings,
)
from feedsync_kernel.domain.values import FeedVariant
from feedsync_kernel.exceptions import InvalidSettingsError

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults" / "feedsync.yaml"

_SOURCE_FIELDS = ("spreadsheet_id", "gid", "sheet_name", "path", "credentials_file")

_LOCK_BACKENDS = frozenset({"auto", "advisory", "lease"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _env_value(env: Mapping[str, str], name: str | None) -> str | None:
    if not name:
        return None
    value = env.get(name, "").strip()
    return value or None


def _non_negative_int(value: Any, setting: str) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError):
        raise InvalidSettingsError(setting, f"expected an integer, got {value!r}") from None
    if result < 0:
        raise InvalidSettingsError(setting, "must not be negative")
    return result


def parse_source(
    data: dict[str, Any],
    env: Mapping[str, str],
    feed_key: str,
    default_credentials: str | None = None,
) -> SourceConfig:
    """Parse a SourceConfig, resolving ``*_env`` indirections."""
    kind = data.get("kind", "google_sheets")
    if kind not in SOURCE_KINDS:
        raise InvalidSettingsError(
            f"feeds.{feed_key}.source.kind",
            f"unknown source kind {kind!r}; expected one of {sorted(SOURCE_KINDS)}",
        )

    values: dict[str, Any] = {}
    for name in _SOURCE_FIELDS:
        value = data.get(name)
        if value is None:
            value = _env_value(env, data.get(f"{name}_env"))
        values[name] = str(value) if value is not None else None

    if values["credentials_file"] is None:
        values["credentials_file"] = default_credentials

    if kind in ("csv", "xlsx") and not values["path"]:
        raise InvalidSettingsError(
            f"feeds.{feed_key}.source.path", f"required for {kind} sources",
        )

    return SourceConfig(
        kind=kind,
        delimiter=data.get("delimiter", ","),
        encoding=data.get("encoding", "utf-8"),
        **values,
    )


def parse_feed(
    key: str,
    data: dict[str, Any],
    env: Mapping[str, str],
    default_credentials: str | None = None,
) -> FeedSettings:
    """Parse one ``feeds.<key>`` block."""
    try:
        variant = FeedVariant(data["variant"])
    except KeyError:
        raise InvalidSettingsError(f"feeds.{key}.variant", "missing") from None
    except ValueError:
        raise InvalidSettingsError(
            f"feeds.{key}.variant",
            f"unknown variant {data['variant']!r}",
        ) from None

    code_prefix = data.get("code_prefix")
    if not code_prefix:
        raise InvalidSettingsError(f"feeds.{key}.code_prefix", "missing")

    return FeedSettings(
        key=key,
        variant=variant,
        code_prefix=str(code_prefix),
        source=parse_source(data.get("source") or {}, env, key, default_credentials),
    )


def parse_settings(data: dict[str, Any], env: Mapping[str, str]) -> SyncSettings:
    """Build SyncSettings from an already-loaded dict plus overrides."""
    database_url = _env_value(env, "FEEDSYNC_DATABASE_URL") or data.get("database_url")
    if not database_url:
        raise InvalidSettingsError("database_url", "missing")

    environment = _env_value(env, "FEEDSYNC_ENV") or data.get("environment") or "development"
    trigger_secret = _env_value(env, "FEEDSYNC_TRIGGER_SECRET") or data.get("trigger_secret")

    tokens_env = _env_value(env, "FEEDSYNC_SESSION_TOKENS")
    if tokens_env is not None:
        session_tokens = tuple(t.strip() for t in tokens_env.split(",") if t.strip())
    else:
        session_tokens = tuple(str(t) for t in data.get("session_tokens") or ())

    credentials = (
        _env_value(env, "GOOGLE_SERVICE_ACCOUNT_FILE")
        or data.get("google_credentials_file")
    )

    limits_data = data.get("rate_limits") or {}
    rate_limits = RateLimitSettings(
        trigger_seconds=_non_negative_int(
            limits_data.get("trigger_seconds", 60), "rate_limits.trigger_seconds",
        ),
        confirm_seconds=_non_negative_int(
            limits_data.get("confirm_seconds", 60), "rate_limits.confirm_seconds",
        ),
        preview_seconds=_non_negative_int(
            limits_data.get("preview_seconds", 60), "rate_limits.preview_seconds",
        ),
    )

    lock_data = data.get("lock") or {}
    backend = lock_data.get("backend", "auto")
    if backend not in _LOCK_BACKENDS:
        raise InvalidSettingsError(
            "lock.backend", f"expected one of {sorted(_LOCK_BACKENDS)}, got {backend!r}",
        )
    lock = LockSettings(
        backend=backend,
        lease_ttl_seconds=_non_negative_int(
            lock_data.get("lease_ttl_seconds", 1800), "lock.lease_ttl_seconds",
        ),
    )

    feeds = {
        str(key): parse_feed(str(key), feed_data or {}, env, credentials)
        for key, feed_data in (data.get("feeds") or {}).items()
    }

    return SyncSettings(
        database_url=str(database_url),
        environment=str(environment),
        trigger_secret=str(trigger_secret) if trigger_secret else None,
        session_tokens=session_tokens,
        google_credentials_file=credentials,
        rate_limits=rate_limits,
        lock=lock,
        feeds=feeds,
    )


def load_settings(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> SyncSettings:
    """
    Load settings from ``path`` (default: the packaged feedsync.yaml).

    ``env`` defaults to ``os.environ``; tests pass an explicit mapping.
    """
    settings_path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    return parse_settings(
        load_yaml_file(settings_path),
        os.environ if env is None else env,
    )
