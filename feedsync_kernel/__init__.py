"""
FeedSync Kernel

Shared infrastructure for the feed reconciliation engine:
- SQLAlchemy declarative base and engine/session management
- Structured JSON logging with context propagation
- Typed exception hierarchy with machine-readable codes
- Injectable clock
- Customer, sync-state, run-history and audit-log models
"""

__version__ = "0.1.0"
