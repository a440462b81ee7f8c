"""
Field table for the posvenda (after-sale LLC) feed.

One row is one sold customer: commercial client fields, up to six
line-item families (formation, address, gateway, ancillary service,
traditional bank, recurring fee), up to five partners and free-form meta.
"""

from __future__ import annotations

from dataclasses import replace

from feedsync_ingestion.domain.identity import strip_accents
from feedsync_ingestion.domain.types import LineItem
from feedsync_ingestion.mapping.coercers import pick
from feedsync_ingestion.mapping.fields import (
    FeedFieldTable,
    FieldKind,
    FieldSpec,
    MoneyFieldSpec,
    PartnerFamilySpec,
    Row,
)
from feedsync_ingestion.mapping.us_states import US_STATES, state_code_for
from feedsync_kernel.domain.values import BillingPeriod, FeedVariant, LineItemKind

SALES_REPS = ("João", "Pablo", "Gabriel", "Gustavo")

LLC_CATEGORIES = (
    "Silver",
    "Gold",
    "Platinum",
    "Tradicional",
    "Promo",
    "Holding",
    "Holding e Offshore",
    "Personalizado",
)
CUSTOM_CATEGORY = "Personalizado"

NEW_MEXICO = "New Mexico"
FLORIDA = "Florida"
ADDRESS_PROVIDERS = (NEW_MEXICO, FLORIDA, "Próprio", "Agente Registrado")

NM_LINE1 = "412 W 7th St STE {ste}"
NM_LINE2 = "Clovis, NM, 88101"
FL_LINE1 = "6407 Magnolia St"
FL_LINE2 = "Milton, FL, 32570"


def _fold(value: str) -> str:
    return strip_accents(value.strip()).casefold()


def _exact_choice(value: str, choices: tuple[str, ...]) -> str | None:
    wanted = _fold(value)
    if not wanted:
        return None
    for choice in choices:
        if _fold(choice) == wanted:
            return choice
    return None


# -----------------------------------------------------------------------------
# Per-kind derivations
# -----------------------------------------------------------------------------


def derive_entity_formation(row: Row, item: LineItem) -> LineItem:
    """
    "<State Name> · <Category>" when the row names a US state and a known
    package category; otherwise the item is returned unchanged.
    """
    state = state_code_for(pick(row, "llc", "llc_2"))
    category = _exact_choice(pick(row, "pacote", "pacote_2"), LLC_CATEGORIES)
    if state is None or category is None:
        return item

    label = category
    if category == CUSTOM_CATEGORY:
        label = pick(row, "categoria_personalizada", "pacote_personalizado") or category
    return replace(
        item,
        description=f"{US_STATES[state]} · {label}",
        llc_state=state,
        llc_category=category,
    )


def derive_registered_address(row: Row, item: LineItem) -> LineItem:
    """Structured address fields; New Mexico and Florida use fixed addresses."""
    period = _fold(pick(row, "periodo_endereco", "billing_period"))
    if period in ("anual", "annual"):
        item = replace(item, billing_period=BillingPeriod.ANNUAL.value)

    provider = _exact_choice(pick(row, "endereco", "endereco_2"), ADDRESS_PROVIDERS)
    if provider is None:
        return item

    if provider == NEW_MEXICO:
        ste = pick(row, "ste", "ste_number", "suite")
        return replace(
            item,
            address_provider=provider,
            address_line1=NM_LINE1.format(ste=ste or "____"),
            address_line2=NM_LINE2,
            ste_number=ste or None,
        )
    if provider == FLORIDA:
        return replace(
            item,
            address_provider=provider,
            address_line1=FL_LINE1,
            address_line2=FL_LINE2,
        )
    return replace(
        item,
        address_provider=provider,
        address_line1=pick(row, "mailing_address", "mailing_address_2") or None,
        address_line2=pick(row, "second_line", "second_line_2") or None,
    )


# -----------------------------------------------------------------------------
# Table
# -----------------------------------------------------------------------------


POSVENDA_TABLE = FeedFieldTable(
    variant=FeedVariant.POSVENDA,
    name=FieldSpec("display_name", ("empresa", "company_name", "companyname", "nome_empresa")),
    code=FieldSpec(
        "customer_code", ("no", "n", "numero", "registro", "codigo", "codigo_cliente"),
    ),
    client_fields=(
        FieldSpec("payment_date", ("pagamento", "payment_date", "data_pagamento"), FieldKind.DATE),
        FieldSpec(
            "commercial", ("comercial", "commercial", "operador"), FieldKind.CHOICE, SALES_REPS,
        ),
        FieldSpec("sdr", ("sdr",), FieldKind.CHOICE, SALES_REPS),
        FieldSpec("business_type", ("tipo_de_negocio", "business_type", "tipo_negocio")),
        FieldSpec(
            "payment_method",
            ("forma_de_pgto", "forma_pgto", "payment_method", "pagamento_via"),
        ),
        FieldSpec("anonymous", ("anonimo", "anonimo_2", "anonymous"), FieldKind.BOOL),
        FieldSpec("holding", ("holding",), FieldKind.BOOL),
        FieldSpec("affiliate", ("filiado", "affiliate"), FieldKind.BOOL),
        FieldSpec("express", ("express",), FieldKind.BOOL),
        FieldSpec("notes", ("observacao", "observacao_2", "notes", "notas")),
    ),
    money_fields=(
        MoneyFieldSpec(
            kind=LineItemKind.ENTITY_FORMATION,
            value_aliases=("valor_llc", "valor_llc_2"),
            description_parts=(("llc", "llc_2"), ("pacote", "pacote_2")),
            default_description="LLC",
            meta_fields=(("pacote", ("pacote", "pacote_2")),),
            derive=derive_entity_formation,
        ),
        MoneyFieldSpec(
            kind=LineItemKind.REGISTERED_ADDRESS,
            value_aliases=("valor_endereco", "valor_endereco_2"),
            description_parts=(
                ("endereco", "endereco_2"),
                ("mailing_address", "mailing_address_2"),
                ("second_line", "second_line_2"),
            ),
            default_description="Endereço",
            meta_fields=(
                ("mailingAddress", ("mailing_address", "mailing_address_2")),
                ("secondLine", ("second_line", "second_line_2")),
            ),
            billing_period=BillingPeriod.MONTHLY,
            derive=derive_registered_address,
        ),
        MoneyFieldSpec(
            kind=LineItemKind.PAYMENT_GATEWAY,
            value_aliases=("valor_gateway", "valor_gateway_2"),
            description_parts=(("gateway", "gateway_2"),),
            default_description="Gateway",
        ),
        MoneyFieldSpec(
            kind=LineItemKind.ANCILLARY_SERVICE,
            value_aliases=("valor_serv_adicional", "valor_serv_adicional_2"),
            description_parts=(("serv_adicional", "serv_adicional_2"),),
            default_description="Serv. Adicional",
        ),
        MoneyFieldSpec(
            kind=LineItemKind.TRADITIONAL_BANK,
            value_aliases=("valor_b_tradicional", "valor_banco_tradicional"),
            description_parts=(("banco_tradicional", "banco_tradicional_2"),),
            default_description="Banco Tradicional",
        ),
        MoneyFieldSpec(
            kind=LineItemKind.RECURRING_FEE,
            value_aliases=("valor_mensalidade", "valor_mensalidade_2"),
            description_parts=(("mensalidade", "mensalidade_2"), ("modalidade", "modalidade_2")),
            default_description="Mensalidade",
            meta_fields=(("modalidade", ("modalidade", "modalidade_2")),),
        ),
    ),
    partners=PartnerFamilySpec(
        principal_name_parts=(("given_name", "given_name_2"), ("sur_name", "sur_name_2")),
        principal_name_fallback=("socio_a_principal", "socio_principal"),
        name_templates=(("socio_a_{i}", "socio_{i}", "socio_a_{i}_2", "socio_{i}_2"),),
        percentage_templates=("porcentagem_{i}", "porcentagem_{i}_2"),
        phone_templates=(
            ("telefone_americano_{i}", "telefone_americano_{i}_2"),
            ("telefone_{i}", "telefone_{i}_2"),
        ),
        count_aliases=("no_socios", "numero_socios", "n_socios"),
    ),
    meta_fields=(
        FieldSpec("naics", ("naics", "naics_2")),
        FieldSpec("origem", ("origem", "origem_2")),
    ),
)
