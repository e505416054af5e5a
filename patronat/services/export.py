"""Excel export of partners and their payments."""
from __future__ import annotations

import io
from datetime import date
from typing import Any

import openpyxl
from openpyxl.styles import Font, PatternFill

from patronat.models import PAYMENT_FRACTIONS, PartnerStatus
from patronat.services.partners import get_partner, list_partners
from patronat.services.payments import (
    get_active_season,
    get_partner_payment_history,
    get_partner_payments_for_season,
)
from patronat.services.validation import format_date_for_ui

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

PARTNER_COLUMNS = (
    'ID', 'Nombre', 'Apellidos', 'Email', 'DNI', 'Teléfono', 'Dirección', 'IBAN',
    'Fecha de nacimiento', 'Estado', 'Fecha de registro',
)
PAYMENT_COLUMNS = ('Temporada', 'Fracción', 'Estado', 'Importe', 'Fecha de pago')
PARTNER_PAYMENT_COLUMNS = ('ID Socio', 'Nombre', 'Apellidos') + PAYMENT_COLUMNS

FRACTION_NAMES = ('Primera', 'Segunda', 'Tercera')
STATUS_TEXT = {
    PartnerStatus.APPROVED.value: 'Alta',
    PartnerStatus.REJECTED.value: 'Baja',
}


def status_text(status: str | None) -> str:
    return STATUS_TEXT.get(status, 'Pendiente')


def partner_row(partner: dict) -> dict:
    return {
        'ID': partner.get('id'),
        'Nombre': partner.get('name') or '',
        'Apellidos': partner.get('lastName') or '',
        'Email': partner.get('email') or '',
        'DNI': partner.get('dni') or '',
        'Teléfono': partner.get('phone') or '',
        'Dirección': partner.get('address') or '',
        'IBAN': partner.get('accountNumber') or '',
        'Fecha de nacimiento': format_date_for_ui(partner.get('birthDate')),
        'Estado': status_text(partner.get('status')),
        'Fecha de registro': format_date_for_ui(partner.get('createdAt')),
    }


def payment_rows(payment: dict, include_empty_first: bool = True) -> list[dict]:
    """
    One row per fraction of a payment.

    The first fraction is always listed for the current season; the others
    only when they carry a price.
    """
    rows = []
    for index, (done, _legacy, date_field, price_field) in enumerate(PAYMENT_FRACTIONS):
        price = payment.get(price_field) or 0
        if price <= 0 and not (index == 0 and include_empty_first):
            continue
        rows.append({
            'Temporada': payment.get('seasonYear'),
            'Fracción': FRACTION_NAMES[index],
            'Estado': 'Pagado' if payment.get(done) else 'Pendiente',
            'Importe': price,
            'Fecha de pago': format_date_for_ui(payment.get(date_field)),
        })
    return rows


def _write_sheet(workbook: openpyxl.Workbook, title: str, columns: tuple, rows: list[dict],
                 first: bool = False) -> None:
    sheet = workbook.active if first else workbook.create_sheet()
    sheet.title = title

    # Header styling
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF")

    for col_idx, column in enumerate(columns, start=1):
        cell = sheet.cell(row=1, column=col_idx, value=column)
        cell.fill = header_fill
        cell.font = header_font

    for row_idx, row in enumerate(rows, start=2):
        for col_idx, column in enumerate(columns, start=1):
            value: Any = row.get(column)
            sheet.cell(row=row_idx, column=col_idx, value='' if value is None else value)

    # Auto-size columns
    for column in sheet.columns:
        max_length = max(len(str(cell.value or '')) for cell in column)
        sheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)


def _to_bytes(workbook: openpyxl.Workbook) -> bytes:
    output = io.BytesIO()
    workbook.save(output)
    output.seek(0)
    return output.read()


def export_partner(partner_id: str, today: date | None = None) -> tuple[str, bytes]:
    """
    Workbook with a partner's personal data, current payment and history.

    Returns:
        (file name, XLSX bytes)
    """
    partner = get_partner(partner_id)
    season = get_active_season()
    season_year = season.get('seasonYear') if season else None

    current = []
    if season_year is not None:
        payment = get_partner_payments_for_season(partner_id, season_year, fallback_to_all=False)
        if payment:
            current = payment_rows(payment)
    history = [
        row
        for payment in get_partner_payment_history(partner_id, season_year)
        for row in payment_rows(payment, include_empty_first=False)
    ]

    workbook = openpyxl.Workbook()
    _write_sheet(workbook, 'Datos Personales', PARTNER_COLUMNS, [partner_row(partner)], first=True)
    if current:
        _write_sheet(workbook, 'Pagos Actuales', PAYMENT_COLUMNS, current)
    if history:
        _write_sheet(workbook, 'Historial de Pagos', PAYMENT_COLUMNS, history)

    stamp = (today or date.today()).isoformat()
    filename = f"socio_{partner.get('name', '')}_{partner.get('lastName', '')}_{stamp}.xlsx"
    return filename, _to_bytes(workbook)


def export_partners(today: date | None = None) -> tuple[str, bytes]:
    """
    Workbook with every partner plus the payments of the approved ones.

    Returns:
        (file name, XLSX bytes)
    """
    partners = list_partners()
    season = get_active_season()
    season_year = season.get('seasonYear') if season else None

    current: list[dict] = []
    history: list[dict] = []
    if season_year is not None:
        for partner in partners:
            if partner.get('status') != PartnerStatus.APPROVED.value:
                continue
            owner = {
                'ID Socio': partner['id'],
                'Nombre': partner.get('name') or '',
                'Apellidos': partner.get('lastName') or '',
            }
            payment = get_partner_payments_for_season(partner['id'], season_year, fallback_to_all=False)
            if payment:
                current.extend({**owner, **row} for row in payment_rows(payment))
            for past in get_partner_payment_history(partner['id'], season_year):
                history.extend({**owner, **row} for row in payment_rows(past, include_empty_first=False))

    workbook = openpyxl.Workbook()
    _write_sheet(workbook, 'Socios', PARTNER_COLUMNS, [partner_row(p) for p in partners], first=True)
    if current:
        _write_sheet(workbook, 'Pagos Actuales', PARTNER_PAYMENT_COLUMNS, current)
    if history:
        _write_sheet(workbook, 'Historial de Pagos', PARTNER_PAYMENT_COLUMNS, history)

    stamp = (today or date.today()).isoformat()
    return f"listado_completo_socios_{stamp}.xlsx", _to_bytes(workbook)


__all__ = [
    'XLSX_MIMETYPE',
    'export_partner',
    'export_partners',
    'partner_row',
    'payment_rows',
    'status_text',
]
