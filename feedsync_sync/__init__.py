"""
feedsync_sync -- the reconciliation engine.

Resolver, planner, per-feed lock, batch executor and preview engine.  The
executor is the only component that writes customer data or SyncState.
"""
