"""
IdentityResolver -- find the persisted customer a mapped row refers to.

Responsibility:
    Read-only lookup of at most one non-deleted customer per row.

Precedence:
    1. Explicit customer code: a non-deleted customer with that code wins.
    2. Otherwise customers sharing the normalized name; ties are broken by
       more line items, then more partners, then most recently updated,
       then oldest created, then id.
    A code match and a name match pointing at different customers resolve
    to the code match and log ``identity_code_name_conflict``.

Runs inside the caller's session/transaction so that a customer created
by an earlier row of the same run is visible to later rows.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from feedsync_ingestion.domain.types import ClientPatch
from feedsync_kernel.domain.values import FeedVariant
from feedsync_kernel.logging_config import get_logger
from feedsync_kernel.models.client import Client, ClientLineItem, ClientPartner
from feedsync_sync.domain.types import ExistingMatch

logger = get_logger("sync.resolver")


class IdentityResolver:
    """Resolves ClientPatch identities against the clients table."""

    def __init__(self, session: Session, variant: FeedVariant):
        self._session = session
        self._variant = FeedVariant(variant)

    def resolve(self, patch: ClientPatch) -> ExistingMatch | None:
        by_code = self._find_by_code(patch.customer_code) if patch.customer_code else None

        if by_code is not None:
            if by_code.normalized_name != patch.normalized_name:
                by_name = self._find_by_name(patch.normalized_name)
                if by_name is not None and by_name.id != by_code.id:
                    logger.warning(
                        "identity_code_name_conflict",
                        extra={
                            "customer_code": patch.customer_code,
                            "code_client_id": str(by_code.id),
                            "name_client_id": str(by_name.id),
                        },
                    )
            return self._to_match(by_code, "code")

        by_name = self._find_by_name(patch.normalized_name)
        if by_name is None:
            return None
        return self._to_match(by_name, "name")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _find_by_code(self, customer_code: str) -> Client | None:
        return self._session.execute(
            select(Client).where(
                Client.customer_code == customer_code,
                Client.deleted_at.is_(None),
            )
        ).scalar_one_or_none()

    def _find_by_name(self, normalized_name: str) -> Client | None:
        if not normalized_name:
            return None

        items_count = (
            select(func.count(ClientLineItem.id))
            .where(ClientLineItem.client_id == Client.id)
            .correlate(Client)
            .scalar_subquery()
        )
        partners_count = (
            select(func.count(ClientPartner.id))
            .where(ClientPartner.client_id == Client.id)
            .correlate(Client)
            .scalar_subquery()
        )
        return self._session.execute(
            select(Client)
            .where(
                Client.normalized_name == normalized_name,
                Client.deleted_at.is_(None),
            )
            .order_by(
                items_count.desc(),
                partners_count.desc(),
                Client.updated_at.desc(),
                Client.created_at.asc(),
                Client.id.asc(),
            )
            .limit(1)
        ).scalars().first()

    def _to_match(self, client: Client, matched_by: str) -> ExistingMatch:
        items = self._session.execute(
            select(ClientLineItem)
            .where(
                ClientLineItem.client_id == client.id,
                ClientLineItem.source_feed == self._variant.value,
            )
            .order_by(ClientLineItem.position)
        ).scalars()
        partners = self._session.execute(
            select(ClientPartner)
            .where(
                ClientPartner.client_id == client.id,
                ClientPartner.source_feed == self._variant.value,
            )
            .order_by(ClientPartner.position)
        ).scalars()
        return ExistingMatch(
            client_id=client.id,
            customer_code=client.customer_code,
            snapshot=client.to_snapshot(),
            line_items=tuple(item.to_snapshot() for item in items),
            partners=tuple(partner.to_snapshot() for partner in partners),
            matched_by=matched_by,
        )
