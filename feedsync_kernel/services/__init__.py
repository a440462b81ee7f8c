"""Kernel services (flush-only; callers own transaction boundaries)."""

from feedsync_kernel.services.auditor_service import (
    SYSTEM_ACTOR,
    AuditorService,
    diff_changed_fields,
)

__all__ = ["SYSTEM_ACTOR", "AuditorService", "diff_changed_fields"]
