"""
Value enumerations shared by the ORM models and the ingestion domain.

ZERO I/O.  Enum values are the strings persisted in the database.
"""

from enum import Enum


class LineItemKind(str, Enum):
    """Billable line-item kinds."""

    ENTITY_FORMATION = "entity-formation"
    REGISTERED_ADDRESS = "registered-address"
    PAYMENT_GATEWAY = "payment-gateway"
    ANCILLARY_SERVICE = "ancillary-service"
    TRADITIONAL_BANK = "traditional-bank"
    RECURRING_FEE = "recurring-fee"
    OTHER = "other"


class PartnerRole(str, Enum):
    """Ownership role of a partner."""

    PRINCIPAL = "principal"
    SECONDARY = "secondary"


class BillingPeriod(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


class FeedVariant(str, Enum):
    """Known feed shapes. Each has its own field table and code prefix."""

    POSVENDA = "posvenda"
    TAX_FORM = "tax_form"


def percent_to_basis_points(percentage: float) -> int:
    """42.5 -> 4250. Basis points are the persisted form of percentages."""
    return int(round(percentage * 100))
