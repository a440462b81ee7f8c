"""
Field table for the tax_form feed (yearly tax questionnaire).

Client fields are name, code and notes; every other answer lands in the
``tax_profile`` dict through ``PROFILE_MAP`` (normalized header -> profile
field).  The principal owner and owners 2..5 become partners.  The feed
produces no line items.
"""

from __future__ import annotations

from typing import Any

from feedsync_ingestion.mapping.coercers import parse_bool, parse_cents
from feedsync_ingestion.mapping.fields import FeedFieldTable, FieldSpec, PartnerFamilySpec, Row
from feedsync_kernel.domain.values import FeedVariant

# Pseudo-field: appended to owner_full_legal_name.
_OWNER_LAST_NAME = "_owner_full_legal_name_last"

PROFILE_MAP: dict[str, str] = {
    "llc_name": "llc_name",
    "llcname": "llc_name",
    "nombre_de_la_llc": "llc_name",
    "nombre_de_la_llc_": "llc_name",
    "formation_date": "formation_date",
    "formationdate": "formation_date",
    "data_formacao": "formation_date",
    "fecha_de_formacion_de_su_llc": "formation_date",
    "fecha_de_formacion": "formation_date",
    "activities_description": "activities_description",
    "activitiesdescription": "activities_description",
    "descricao_atividades": "activities_description",
    "describa_brevemente_las_actividades_que_desempena_su_empresa": "activities_description",
    "describa_brevemente_las_actividades": "activities_description",
    "ein_number": "ein_number",
    "einnumber": "ein_number",
    "ein": "ein_number",
    "numero_ein_de_la_empresa": "ein_number",
    "numero_ein": "ein_number",
    "llc_us_address_line1": "llc_us_address_line1",
    "llc_us_address_line2": "llc_us_address_line2",
    "llc_us_city": "llc_us_city",
    "llc_us_state": "llc_us_state",
    "llc_us_zip": "llc_us_zip",
    "endereco_linha1": "llc_us_address_line1",
    "endereco_linha2": "llc_us_address_line2",
    "ciudad": "llc_us_city",
    "ciudad_": "llc_us_city",
    "estado": "llc_us_state",
    "direccion_de_la_empresa_llc_usa_direccion": "llc_us_address_line1",
    "direccion_de_la_empresa_llc_usa_direccion_linea_2": "llc_us_address_line2",
    "direccion_de_la_empresa_llc_usa_ciudad": "llc_us_city",
    "direccion_de_la_empresa_llc_usa_estado": "llc_us_state",
    "direccion_de_la_empresa_llc_usa_codigo_postal": "llc_us_zip",
    "direccion": "llc_us_address_line1",
    "direccion_linea_2": "llc_us_address_line2",
    "codigo_postal": "llc_us_zip",
    "cidade": "llc_us_city",
    "cep": "llc_us_zip",
    "zip": "llc_us_zip",
    "owner_email": "owner_email",
    "owneremail": "owner_email",
    "email": "owner_email",
    "owner_full_legal_name": "owner_full_legal_name",
    "owner_fulllegalname": "owner_full_legal_name",
    "ownerfulllegalname": "owner_full_legal_name",
    "nome_legal": "owner_full_legal_name",
    "nombre_legal_completo_propietario_principal_nombres": "owner_full_legal_name",
    "nombre_legal_completo_propietario_principal_apellidos": _OWNER_LAST_NAME,
    "owner_residence_country": "owner_residence_country",
    "owner_residencecountry": "owner_residence_country",
    "pais_residencia": "owner_residence_country",
    "cual_es_tu_pais_de_residencia": "owner_residence_country",
    "owner_citizenship_country": "owner_citizenship_country",
    "owner_citizenshipcountry": "owner_citizenship_country",
    "pais_cidadania": "owner_citizenship_country",
    "cual_es_tu_pais_de_ciudadania": "owner_citizenship_country",
    "owner_home_address_different": "owner_home_address_different",
    "owner_homeaddressdifferent": "owner_home_address_different",
    "tu_direccion_particular_es_diferente_a_la_de_tu_empresa": "owner_home_address_different",
    "endereco_residencial_diferente_da_empresa": "owner_home_address_different",
    "owner_residential_address_line1": "owner_residential_address_line1",
    "endereco_residencial_linha_1": "owner_residential_address_line1",
    "owner_residential_address_line2": "owner_residential_address_line2",
    "endereco_residencial_linha_2": "owner_residential_address_line2",
    "owner_residential_city": "owner_residential_city",
    "cidade_residencial": "owner_residential_city",
    "owner_residential_state": "owner_residential_state",
    "estado_residencial": "owner_residential_state",
    "owner_residential_postal_code": "owner_residential_postal_code",
    "cep_residencial": "owner_residential_postal_code",
    "owner_residential_country": "owner_residential_country",
    "pais_residencial": "owner_residential_country",
    "direccion_particular_si_es_diferente_a_la_del_negocio_direccion": "owner_residential_address_line1",
    "direccion_particular_si_es_diferente_a_la_del_negocio_direccion_linea_2": "owner_residential_address_line2",
    "direccion_particular_si_es_diferente_a_la_del_negocio_ciudad": "owner_residential_city",
    "direccion_particular_si_es_diferente_a_la_del_negocio_estado": "owner_residential_state",
    "direccion_particular_si_es_diferente_a_la_del_negocio_codigo_postal": "owner_residential_postal_code",
    "direccion_particular_si_es_diferente_a_la_del_negocio_pais": "owner_residential_country",
    "owner_us_tax_id": "owner_us_tax_id",
    "owner_ustaxid": "owner_us_tax_id",
    "identificacion_fiscal_de_ee_uu_del_propietario_si_corresponde": "owner_us_tax_id",
    "owner_foreign_tax_id": "owner_foreign_tax_id",
    "owner_foreigntaxid": "owner_foreign_tax_id",
    "identificacion_fiscal_personal_extranjera": "owner_foreign_tax_id",
    "llc_formation_cost_usd_cents": "llc_formation_cost_usd_cents",
    "llc_formation_cost": "llc_formation_cost_usd_cents",
    "custo_formacao": "llc_formation_cost_usd_cents",
    "cuanto_te_costo_establecer_tu_llc": "llc_formation_cost_usd_cents",
    "has_additional_owners": "has_additional_owners",
    "hay_otro_socio_para_agregar": "has_additional_owners",
    "total_assets_usd_cents": "total_assets_usd_cents",
    "total_assets": "total_assets_usd_cents",
    "activos_totales_del_negocio_hasta_el_31_de_diciembre": "total_assets_usd_cents",
    "ativos_totais_ate_31_dez_usd": "total_assets_usd_cents",
    "ativos_totais_da_empresa_ate_31_de_dezembro_usd": "total_assets_usd_cents",
    "has_us_bank_accounts": "has_us_bank_accounts",
    "la_empresa_tiene_cuentas_bancarias_en_ee_uu_a_nombre_de_la_llc": "has_us_bank_accounts",
    "possui_contas_bancarias_nos_eua": "has_us_bank_accounts",
    "possui_contas_bancarias_nos_eua_em_nome_da_llc": "has_us_bank_accounts",
    "aggregate_balance_over10k": "aggregate_balance_over_10k",
    "el_saldo_agregado_mas_alto_de_todas_las_cuentas_supero_los_10000_usd_en_algun_momento_del_ano": "aggregate_balance_over_10k",
    "saldo_agregado_superior_a_us_10000_no_ano_fbar": "aggregate_balance_over_10k",
    "total_withdrawals_usd_cents": "total_withdrawals_usd_cents",
    "total_de_retiros_durante_el_ultimo_ano_fiscal": "total_withdrawals_usd_cents",
    "total_transferred_to_llc_usd_cents": "total_transferred_to_llc_usd_cents",
    "total_transferido_pessoalmente_para_llc_usd": "total_transferred_to_llc_usd_cents",
    "cantidad_total_de_dinero_que_transfirio_personalmente_a_la_llc": "total_transferred_to_llc_usd_cents",
    "total_withdrawn_from_llc_usd_cents": "total_withdrawn_from_llc_usd_cents",
    "total_retirado_pessoalmente_da_llc_usd": "total_withdrawn_from_llc_usd_cents",
    "cantidad_total_de_dinero_que_retiro_personalmente_de_la_llc": "total_withdrawn_from_llc_usd_cents",
    "personal_expenses_paid_by_company_usd_cents": "personal_expenses_paid_by_company_usd_cents",
    "despesas_pessoais_pagas_com_fundos_comerciais_usd": "personal_expenses_paid_by_company_usd_cents",
    "monto_total_de_los_gastos_personales_que_pago_con_fondos_comerciales": "personal_expenses_paid_by_company_usd_cents",
    "business_expenses_paid_personally_usd_cents": "business_expenses_paid_personally_usd_cents",
    "despesas_comerciais_pagas_com_fundos_pessoais_usd": "business_expenses_paid_personally_usd_cents",
    "monto_total_de_los_gastos_comerciales_que_pago_con_fondos_personales": "business_expenses_paid_personally_usd_cents",
    "fbar_withdrawals_total_usd_cents": "fbar_withdrawals_total_usd_cents",
    "total_retiradas_ultimo_ano_fiscal_usd": "fbar_withdrawals_total_usd_cents",
    "fbar_personal_transfers_to_llc_usd_cents": "fbar_personal_transfers_to_llc_usd_cents",
    "fbar_personal_withdrawals_from_llc_usd_cents": "fbar_personal_withdrawals_from_llc_usd_cents",
    "fbar_personal_expenses_paid_by_company_usd_cents": "fbar_personal_expenses_paid_by_company_usd_cents",
    "despesas_pessoais_pagas_com_fundos_da_empresa_usd": "fbar_personal_expenses_paid_by_company_usd_cents",
    "fbar_business_expenses_paid_personally_usd_cents": "fbar_business_expenses_paid_personally_usd_cents",
    "despesas_da_empresa_pagas_com_fundos_pessoais_usd": "fbar_business_expenses_paid_personally_usd_cents",
    "passport_copies_provided": "passport_copies_provided",
    "copia_de_pasaportes_de_los_socios": "passport_copies_provided",
    "articles_of_organization_provided": "articles_of_organization_provided",
    "articles_of_organization": "articles_of_organization_provided",
    "ein_letter_provided": "ein_letter_provided",
    "ein_enviado_por_el_irs": "ein_letter_provided",
    "additional_documents_provided": "additional_documents_provided",
    "desea_enviar_un_documento_adicional": "additional_documents_provided",
    "additional_documents_notes": "additional_documents_notes",
    "documentos_adicionales": "additional_documents_notes",
    "que_documentos_todavia_no_ha_compartido": "additional_documents_notes",
    "declaration_accepted": "declaration_accepted",
}

MONEY_PROFILE_FIELDS = frozenset({
    "llc_formation_cost_usd_cents",
    "total_assets_usd_cents",
    "total_withdrawals_usd_cents",
    "total_transferred_to_llc_usd_cents",
    "total_withdrawn_from_llc_usd_cents",
    "personal_expenses_paid_by_company_usd_cents",
    "business_expenses_paid_personally_usd_cents",
    "fbar_withdrawals_total_usd_cents",
    "fbar_personal_transfers_to_llc_usd_cents",
    "fbar_personal_withdrawals_from_llc_usd_cents",
    "fbar_personal_expenses_paid_by_company_usd_cents",
    "fbar_business_expenses_paid_personally_usd_cents",
})

BOOL_PROFILE_FIELDS = frozenset({
    "owner_home_address_different",
    "has_additional_owners",
    "has_us_bank_accounts",
    "aggregate_balance_over_10k",
    "passport_copies_provided",
    "articles_of_organization_provided",
    "ein_letter_provided",
    "additional_documents_provided",
    "declaration_accepted",
})

RESIDENTIAL_FIELDS = (
    "owner_residential_address_line1",
    "owner_residential_address_line2",
    "owner_residential_city",
    "owner_residential_state",
    "owner_residential_postal_code",
    "owner_residential_country",
)

FBAR_FIELDS = (
    "fbar_withdrawals_total_usd_cents",
    "fbar_personal_transfers_to_llc_usd_cents",
    "fbar_personal_withdrawals_from_llc_usd_cents",
    "fbar_personal_expenses_paid_by_company_usd_cents",
    "fbar_business_expenses_paid_personally_usd_cents",
)


def build_tax_profile(row: Row, display_name: str) -> dict[str, Any]:
    """
    Collect questionnaire answers into a profile dict, then apply the
    consistency rules:

    * ``llc_name`` defaults to the company name
    * residential data implies ``owner_home_address_different`` unless the
      row explicitly says otherwise
    * no US bank accounts forces ``aggregate_balance_over_10k`` to False
    * residential fields are dropped unless the home address differs
    * FBAR amounts are None unless both bank answers are True
    """
    profile: dict[str, Any] = {}
    last_name = ""
    for header, value in row.items():
        field_name = PROFILE_MAP.get(header)
        value = (value or "").strip()
        if field_name is None or not value:
            continue
        if field_name == _OWNER_LAST_NAME:
            last_name = value
        elif field_name in MONEY_PROFILE_FIELDS:
            cents = parse_cents(value)
            if cents is not None and cents >= 0:
                profile[field_name] = cents
        elif field_name in BOOL_PROFILE_FIELDS:
            profile[field_name] = parse_bool(value)
        else:
            profile[field_name] = value

    if last_name:
        profile["owner_full_legal_name"] = " ".join(
            p for p in (profile.get("owner_full_legal_name"), last_name) if p
        )

    if not profile.get("llc_name"):
        profile["llc_name"] = display_name

    has_residential = any(profile.get(f) for f in RESIDENTIAL_FIELDS)
    if has_residential and profile.get("owner_home_address_different") is not False:
        profile["owner_home_address_different"] = True

    if profile.get("has_us_bank_accounts") is False:
        profile["aggregate_balance_over_10k"] = False

    if profile.get("owner_home_address_different") is not True:
        for f in RESIDENTIAL_FIELDS:
            profile.pop(f, None)

    fbar_applicable = (
        profile.get("has_us_bank_accounts") is True
        and profile.get("aggregate_balance_over_10k") is True
    )
    if not fbar_applicable:
        for f in FBAR_FIELDS:
            profile[f] = None

    return profile


TAX_FORM_TABLE = FeedFieldTable(
    variant=FeedVariant.TAX_FORM,
    name=FieldSpec(
        "display_name",
        (
            "company_name",
            "companyname",
            "nome_da_empresa",
            "empresa",
            "nombre_de_la_llc",
            "nombre_de_la_llc_",
        ),
    ),
    code=FieldSpec("customer_code", ("customer_code", "customercode", "codigo", "codigo_cliente")),
    client_fields=(
        FieldSpec("notes", ("notes", "observacoes", "notas"), keep_existing_if_empty=True),
    ),
    partners=PartnerFamilySpec(
        principal_name_parts=(
            (
                "owner_full_legal_name",
                "owner_fulllegalname",
                "ownerfulllegalname",
                "nome_legal",
                "nombre_legal_completo_propietario_principal_nombres",
            ),
            ("nombre_legal_completo_propietario_principal_apellidos",),
        ),
        principal_name_fallback=(),
        name_templates=(
            ("owner_{i}_full_legal_name", "owner{i}fulllegalname"),
            ("nombre_legal_completo_propietario_{i}_nombres", "nombre_legal_completo_propietario_{i}"),
            ("nombre_legal_completo_propietario_{i}_apellidos",),
        ),
    ),
    profile=build_tax_profile,
)
