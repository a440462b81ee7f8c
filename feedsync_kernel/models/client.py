"""
Customer, line-item and partner ORM models.

Client rows are created once and then updated in place; feed runs never
soft-delete them (``deleted_at`` is owned by the application's CRUD
surface).  Line items and partners carry ``source_feed`` so a feed run
replaces only the children it owns; rows with ``source_feed = NULL`` were
entered by hand and are left alone.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from feedsync_kernel.db.base import TrackedBase, UUIDString


class Client(TrackedBase):
    """A business customer."""

    __tablename__ = "clients"

    __table_args__ = (
        Index("idx_clients_normalized_name", "normalized_name"),
        Index("idx_clients_customer_code", "customer_code", unique=True),
    )

    display_name: Mapped[str] = mapped_column(String(300), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(300), nullable=False)
    customer_code: Mapped[str] = mapped_column(String(100), nullable=False)

    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    commercial: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sdr: Mapped[str | None] = mapped_column(String(50), nullable=True)
    business_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(200), nullable=True)
    anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    holding: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    affiliate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    express: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Tax questionnaire answers (tax_form feed)
    tax_profile: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # Free-form row metadata (e.g. naics, origem)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    line_items: Mapped[list[ClientLineItem]] = relationship(
        back_populates="client",
        order_by="ClientLineItem.position",
    )
    partners: Mapped[list[ClientPartner]] = relationship(
        back_populates="client",
        order_by="ClientPartner.position",
    )

    def __repr__(self) -> str:
        return f"<Client {self.customer_code} {self.display_name!r}>"

    def to_snapshot(self) -> dict[str, Any]:
        """JSON-safe copy of the persisted customer fields (for audit)."""
        return {
            "display_name": self.display_name,
            "normalized_name": self.normalized_name,
            "customer_code": self.customer_code,
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "commercial": self.commercial,
            "sdr": self.sdr,
            "business_type": self.business_type,
            "payment_method": self.payment_method,
            "anonymous": self.anonymous,
            "holding": self.holding,
            "affiliate": self.affiliate,
            "express": self.express,
            "notes": self.notes,
            "tax_profile": self.tax_profile,
            "meta": self.meta,
        }


class ClientLineItem(TrackedBase):
    """A billable unit attached to a customer."""

    __tablename__ = "client_line_items"

    __table_args__ = (
        Index("idx_line_items_client_feed", "client_id", "source_feed"),
    )

    client_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
    )
    source_feed: Mapped[str | None] = mapped_column(String(50), nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    value_cents: Mapped[int] = mapped_column(nullable=False)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    billing_period: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address_provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address_line1: Mapped[str | None] = mapped_column(String(300), nullable=True)
    address_line2: Mapped[str | None] = mapped_column(String(300), nullable=True)
    ste_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    llc_state: Mapped[str | None] = mapped_column(String(2), nullable=True)
    llc_category: Mapped[str | None] = mapped_column(String(200), nullable=True)

    client: Mapped[Client] = relationship(back_populates="line_items")

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "description": self.description,
            "value_cents": self.value_cents,
            "meta": self.meta,
            "billing_period": self.billing_period,
            "address_provider": self.address_provider,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "ste_number": self.ste_number,
            "llc_state": self.llc_state,
            "llc_category": self.llc_category,
        }


class ClientPartner(TrackedBase):
    """An ownership record attached to a customer."""

    __tablename__ = "client_partners"

    __table_args__ = (
        Index("idx_partners_client_feed", "client_id", "source_feed"),
    )

    client_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
    )
    source_feed: Mapped[str | None] = mapped_column(String(50), nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    full_name: Mapped[str] = mapped_column(String(300), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    # 100% == 10000
    percentage_basis_points: Mapped[int] = mapped_column(Integer, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    client: Mapped[Client] = relationship(back_populates="partners")

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "full_name": self.full_name,
            "role": self.role,
            "percentage_basis_points": self.percentage_basis_points,
            "phone": self.phone,
        }
