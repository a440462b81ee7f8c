"""ORM models. Importing this package registers every table on Base.metadata."""

from feedsync_kernel.models.audit_log import AuditAction, AuditLogEntry
from feedsync_kernel.models.client import Client, ClientLineItem, ClientPartner
from feedsync_kernel.models.sync_state import RunStatus, SyncLease, SyncRun, SyncState

__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "Client",
    "ClientLineItem",
    "ClientPartner",
    "RunStatus",
    "SyncLease",
    "SyncRun",
    "SyncState",
]
