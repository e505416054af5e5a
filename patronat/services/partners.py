"""Partner (member) registration and approval workflow."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from flask import current_app

from patronat.models import PARTNERS, ChangeType, PartnerStatus
from patronat.services.history import record_change
from patronat.services.payments import create_payment_for_partner, get_active_season
from patronat.services.search import search_collection
from patronat.services.seasons import build_partner_payment
from patronat.services.store import SERVER_TIMESTAMP, NotFoundError, StoreError, get_store
from patronat.services.validation import (
    ValidationError,
    normalize_date,
    normalize_iban,
    validate_partner,
)

if TYPE_CHECKING:
    from patronat.auth import SessionContext

PARTNER_FIELDS = ('name', 'lastName', 'email', 'dni', 'phone', 'address', 'accountNumber', 'birthDate')


@dataclass
class ApprovalResult:
    partner: dict
    payment: dict | None = None
    payment_created: bool = False
    warning: str | None = None

    def to_dict(self) -> dict:
        return {
            'partner': self.partner,
            'payment': self.payment,
            'paymentCreated': self.payment_created,
            'warning': self.warning,
        }


def _clean(data: dict) -> dict:
    cleaned = {}
    for field in PARTNER_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if isinstance(value, str):
            value = value.strip()
        cleaned[field] = value
    if 'email' in cleaned and cleaned['email']:
        cleaned['email'] = cleaned['email'].lower()
    if 'dni' in cleaned and cleaned['dni']:
        cleaned['dni'] = cleaned['dni'].upper()
    if cleaned.get('accountNumber'):
        cleaned['accountNumber'] = normalize_iban(cleaned['accountNumber'])
    if 'birthDate' in cleaned:
        cleaned['birthDate'] = normalize_date(cleaned['birthDate'])
    return cleaned


def _display_name(partner: dict) -> str:
    return f"{partner.get('name', '')} {partner.get('lastName', '')}".strip()


def get_partner(partner_id: str) -> dict:
    snap = get_store().document(f"{PARTNERS}/{partner_id}").get()
    if not snap.exists:
        raise NotFoundError(f"Partner {partner_id} not found")
    return {'id': snap.id, **snap.to_dict()}


def list_partners(status: str | None = None, query: str | None = None) -> list[dict]:
    ref = get_store().collection(PARTNERS)
    if status:
        ref = ref.where('status', '==', status)
    partners = [{'id': snap.id, **snap.to_dict()} for snap in ref.get()]
    partners.sort(key=lambda p: (p.get('lastName') or '', p.get('name') or ''))
    return search_collection(PARTNERS, partners, query)


def register_partner(data: dict, ctx: SessionContext | None = None) -> dict:
    """Validate and store a new partner in ``pending`` state."""
    errors = validate_partner(data)
    if errors:
        raise ValidationError(errors)

    record = _clean(data)
    record.update({
        'status': PartnerStatus.PENDING.value,
        'createdAt': SERVER_TIMESTAMP,
        'lastUpdateDate': SERVER_TIMESTAMP,
    })
    if ctx is not None:
        record['userId'] = ctx.user_id

    ref = get_store().collection(PARTNERS).add(record)
    partner = get_partner(ref.id)
    if ctx is not None:
        record_change('partner', ref.id, _display_name(partner), ChangeType.CREATE, ctx, new=partner)
    return partner


def update_partner(partner_id: str, data: dict, ctx: SessionContext) -> dict:
    previous = get_partner(partner_id)
    merged = {**previous, **data}
    errors = validate_partner(merged)
    if errors:
        raise ValidationError(errors)

    changes = _clean(data)
    changes['lastUpdateDate'] = SERVER_TIMESTAMP
    get_store().document(f"{PARTNERS}/{partner_id}").update(changes)

    partner = get_partner(partner_id)
    record_change('partner', partner_id, _display_name(partner), ChangeType.UPDATE, ctx,
                  previous=previous, new=partner)
    return partner


def _set_status(partner_id: str, status: PartnerStatus, ctx: SessionContext) -> tuple[dict, dict]:
    previous = get_partner(partner_id)
    get_store().document(f"{PARTNERS}/{partner_id}").update({
        'status': status.value,
        'lastUpdateDate': SERVER_TIMESTAMP,
    })
    partner = get_partner(partner_id)
    record_change('partner', partner_id, _display_name(partner), ChangeType.UPDATE, ctx,
                  previous=previous, new=partner)
    return previous, partner


def approve_partner(partner_id: str, ctx: SessionContext) -> ApprovalResult:
    """
    Approve a partner and create the payment of the active season.

    The approval stands even if the payment cannot be created; the failure is
    logged and reported through ``warning``.
    """
    _, partner = _set_status(partner_id, PartnerStatus.APPROVED, ctx)
    result = ApprovalResult(partner=partner)

    season = get_active_season()
    if season is None:
        result.warning = 'noActiveSeason'
        return result

    try:
        outcome = create_payment_for_partner(partner_id, build_partner_payment(partner, season), ctx.user_id)
    except (StoreError, ValidationError) as e:
        current_app.logger.error(f"Partner {partner_id} approved but payment creation failed: {e}")
        result.warning = 'paymentFailed'
        return result

    result.payment = outcome.payment
    result.payment_created = outcome.created
    return result


def reject_partner(partner_id: str, ctx: SessionContext) -> dict:
    _, partner = _set_status(partner_id, PartnerStatus.REJECTED, ctx)
    return partner


def delete_partner(partner_id: str, ctx: SessionContext) -> None:
    """Hard delete: the partner and every payment it owns."""
    partner = get_partner(partner_id)
    store = get_store()
    store.recursive_delete(store.document(f"{PARTNERS}/{partner_id}"))
    record_change('partner', partner_id, _display_name(partner), ChangeType.DELETE, ctx, previous=partner)


__all__ = [
    'ApprovalResult',
    'approve_partner',
    'delete_partner',
    'get_partner',
    'list_partners',
    'register_partner',
    'reject_partner',
    'update_partner',
]
