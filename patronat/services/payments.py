"""Partner payments and season classification.

Each partner owns a ``payments`` subcollection with one document per season.
A payment splits the season fee in three fractions; each fraction has a paid
flag, a payment date and a price. The canonical paid flags are
``firstPaymentDone``, ``secondPaymentDone`` and ``thirdPaymentDone``. Older
documents may carry ``firstPayment``/``secondPayment``/``thirdPayment``
instead; those are folded into the canonical flag when read and never written.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from flask import current_app

from patronat.models import PARTNERS, PAYMENTS, PAYMENT_FRACTIONS, SEASONS, PartnerStatus
from patronat.services.retry import with_retry
from patronat.services.store import (
    DELETE_FIELD,
    DESCENDING,
    SERVER_TIMESTAMP,
    NotFoundError,
    get_store,
)
from patronat.services.validation import ValidationError, normalize_date

SYSTEM_USER = 'sistema'

DATE_FIELDS = tuple(fraction[2] for fraction in PAYMENT_FRACTIONS)
PRICE_FIELDS = tuple(fraction[3] for fraction in PAYMENT_FRACTIONS)


@dataclass
class PaymentResult:
    """Outcome of :func:`create_payment_for_partner`."""

    created: bool
    existing: bool
    payment: dict | None

    def to_dict(self) -> dict:
        return {'created': self.created, 'existing': self.existing, 'payment': self.payment}


def as_season_year(value: Any) -> int | None:
    """Season years are ints; legacy documents may hold them as strings."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def canonical_payment(payment_id: str, data: dict) -> dict:
    """Payment dict with legacy fraction flags folded into the ``*Done`` flags."""
    result = {'id': payment_id, **data}
    for done, legacy, _, _ in PAYMENT_FRACTIONS:
        result[done] = bool(result.get(done)) or bool(result.pop(legacy, False))
    return result


def _payments(partner_id: str):
    return get_store().collection(f"{PARTNERS}/{partner_id}/{PAYMENTS}")


def _to_price(field: str, value: Any) -> float:
    if value in (None, ''):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError({field: 'invalidNumber'})


def normalize_payment_dates(data: dict | None, fill_missing: bool = True) -> dict:
    """
    Normalize the date, flag and price fields of payment data.

    Date fields that are empty, None or unparseable become None, valid strings
    become ``date`` objects, and absent date fields are set to None when
    ``fill_missing`` is on. Flags and prices are only coerced when present;
    legacy flags are folded into the canonical ``*Done`` field.
    """
    if not data:
        return {}

    normalized = dict(data)

    for field in DATE_FIELDS:
        value = normalized.get(field)
        if field not in normalized and not fill_missing:
            continue
        if isinstance(value, (date, datetime)):
            continue
        if isinstance(value, str) and value.strip():
            parsed = normalize_date(value)
            if parsed is None:
                current_app.logger.warning(f"Invalid date for {field}: {value!r}")
            normalized[field] = parsed
        else:
            normalized[field] = None

    for done, legacy, _, _ in PAYMENT_FRACTIONS:
        if legacy in normalized:
            legacy_value = bool(normalized.pop(legacy))
            normalized[done] = bool(normalized.get(done)) or legacy_value
        elif done in normalized:
            normalized[done] = bool(normalized[done])

    for field in PRICE_FIELDS:
        if field in normalized:
            normalized[field] = _to_price(field, normalized[field])

    return normalized


# ---------------------------------------------------------------------------
# Seasons
# ---------------------------------------------------------------------------

def get_all_seasons(current_year: int | None = None) -> dict:
    """
    Classify seasons into active, historical and future.

    The active season is the first one flagged ``active``. Inactive seasons up to
    the current year are historical (newest first); later ones are future
    (soonest first).
    """
    current_year = current_year or date.today().year
    snapshots = with_retry(lambda: get_store().collection(SEASONS).get())

    active = None
    historical: list[dict] = []
    future: list[dict] = []
    for snap in snapshots:
        season = {'id': snap.id, **snap.to_dict()}
        if season.get('active') is True:
            if active is None:
                active = season
            continue
        year = as_season_year(season.get('seasonYear'))
        if year is None:
            continue
        if year <= current_year:
            historical.append(season)
        else:
            future.append(season)

    historical.sort(key=lambda s: as_season_year(s['seasonYear']), reverse=True)
    future.sort(key=lambda s: as_season_year(s['seasonYear']))
    return {'active': active, 'historical': historical, 'future': future}


def get_active_season() -> dict | None:
    matches = with_retry(lambda: get_store().collection(SEASONS).where('active', '==', True).get())
    if not matches:
        return None
    return {'id': matches[0].id, **matches[0].to_dict()}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_all_partner_payments(partner_id: str) -> list[dict]:
    snapshots = with_retry(lambda: _payments(partner_id).get())
    return [canonical_payment(snap.id, snap.to_dict()) for snap in snapshots]


def get_most_recent_payment(partner_id: str) -> dict | None:
    """Newest payment by ``createdAt``; the first stored one if none carries it."""
    def load():
        ordered = _payments(partner_id).order_by('createdAt', DESCENDING).limit(1).get()
        if ordered:
            return ordered[0]
        anything = _payments(partner_id).limit(1).get()
        return anything[0] if anything else None

    snap = with_retry(load)
    return canonical_payment(snap.id, snap.to_dict()) if snap else None


def get_partner_payments_for_season(partner_id: str, season_year: Any,
                                    fallback_to_all: bool = True) -> dict | None:
    """
    Payment of a partner for one season.

    With ``fallback_to_all`` a partner without a matching payment gets the most
    recently created payment instead. This degraded mode exists for documents
    that were never tagged with a season year.
    """
    if not partner_id:
        return None
    year = as_season_year(season_year)
    if year is not None:
        matches = with_retry(
            lambda: _payments(partner_id).where('seasonYear', 'in', [year, str(year)]).limit(1).get()
        )
        if matches:
            return canonical_payment(matches[0].id, matches[0].to_dict())

    if not fallback_to_all:
        return None
    return get_most_recent_payment(partner_id)


def get_partner_payments_by_status(partner_id: str) -> dict:
    """Split a partner's payments into the active season's and historical ones."""
    empty = {'current': None, 'historical': []}
    seasons = get_all_seasons()
    active = seasons['active']
    if not active:
        return empty

    payments = get_all_partner_payments(partner_id)
    if not payments:
        return empty

    active_year = as_season_year(active.get('seasonYear'))
    historical_years = {as_season_year(s.get('seasonYear')) for s in seasons['historical']}

    current = None
    historical = []
    for payment in payments:
        year = as_season_year(payment.get('seasonYear'))
        if year is None:
            continue
        if year == active_year:
            if current is None:
                current = payment
        elif year in historical_years:
            historical.append(payment)

    historical.sort(key=lambda p: as_season_year(p['seasonYear']), reverse=True)
    return {'current': current, 'historical': historical}


def get_partner_payment_history(partner_id: str, current_season_year: Any = None) -> list[dict]:
    """Payments of past seasons: not the given season, not active, not in the future."""
    if not partner_id:
        return []
    current_year = date.today().year
    exclude = as_season_year(current_season_year)
    active_years = {
        as_season_year(snap.get('seasonYear'))
        for snap in with_retry(lambda: get_store().collection(SEASONS).get())
        if snap.get('active') is True
    }

    history = []
    for payment in get_all_partner_payments(partner_id):
        year = as_season_year(payment.get('seasonYear'))
        if year is None or year == exclude or year in active_years or year > current_year:
            continue
        history.append(payment)

    history.sort(key=lambda p: as_season_year(p['seasonYear']), reverse=True)
    return history


def diagnose_season_year_issue(partner_id: str) -> list[dict]:
    """Report, per payment, whether it carries a season year."""
    return [
        {
            'id': payment['id'],
            'hasSeasonYear': 'seasonYear' in payment,
            'seasonYearValue': payment.get('seasonYear'),
        }
        for payment in get_all_partner_payments(partner_id)
    ]


def get_approved_partners() -> list[dict]:
    snapshots = with_retry(
        lambda: get_store().collection(PARTNERS).where('status', '==', PartnerStatus.APPROVED.value).get()
    )
    return [{'id': snap.id, **snap.to_dict()} for snap in snapshots]


def get_all_approved_partners_with_payments() -> list[dict]:
    if get_active_season() is None:
        return []
    return [
        {**partner, 'payments': get_partner_payments_by_status(partner['id'])}
        for partner in get_approved_partners()
    ]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def payment_document_id(season_year: int) -> str:
    return f"season-{season_year}"


def create_payment_for_partner(partner_id: str, data: dict, user_id: str | None = None) -> PaymentResult:
    """
    Create the payment of a partner for ``data['seasonYear']`` unless one exists.

    Returns:
        PaymentResult(created, existing, payment); an existing payment is
        returned untouched with ``created=False, existing=True``.
    """
    if not partner_id:
        raise ValidationError({'partnerId': 'required'})
    year = as_season_year((data or {}).get('seasonYear'))
    if year is None:
        raise ValidationError({'seasonYear': 'required'})

    store = get_store()
    if not store.document(f"{PARTNERS}/{partner_id}").get().exists:
        raise NotFoundError(f"Partner {partner_id} not found")

    existing = get_partner_payments_for_season(partner_id, year, fallback_to_all=False)
    if existing:
        return PaymentResult(created=False, existing=True, payment=existing)

    normalized = normalize_payment_dates(data)
    record = {
        'createdAt': SERVER_TIMESTAMP,
        'lastUpdateDate': SERVER_TIMESTAMP,
        'userId': user_id or SYSTEM_USER,
        'seasonYear': year,
    }
    for done, _, date_field, price_field in PAYMENT_FRACTIONS:
        record[done] = bool(normalized.get(done, False))
        record[date_field] = normalized.get(date_field)
        record[price_field] = _to_price(price_field, normalized.get(price_field))
    for extra in ('priceCategory', 'partnerAge'):
        if extra in normalized:
            record[extra] = normalized[extra]

    ref = _payments(partner_id).document(payment_document_id(year))
    with store.transaction() as tx:
        if tx.get(ref).exists:
            snap = ref.get()
            return PaymentResult(created=False, existing=True, payment=canonical_payment(snap.id, snap.to_dict()))
        tx.set(ref, record)

    snap = ref.get()
    current_app.logger.info(f"Created payment {ref.id} for partner {partner_id}")
    return PaymentResult(created=True, existing=False, payment=canonical_payment(snap.id, snap.to_dict()))


def update_partner_payment(partner_id: str, payment_id: str, data: dict, user_id: str | None) -> dict:
    """Merge normalized payment fields into an existing payment document."""
    if not partner_id or not payment_id:
        raise ValidationError({'paymentId': 'required'})

    provided = set(data or {})
    update = normalize_payment_dates(data, fill_missing=False)
    for done, legacy, _, _ in PAYMENT_FRACTIONS:
        if done in update or legacy in provided:
            update[legacy] = DELETE_FIELD
    update['lastUpdateDate'] = SERVER_TIMESTAMP
    update['userId'] = user_id or SYSTEM_USER
    update.pop('id', None)

    ref = _payments(partner_id).document(payment_id)
    ref.update(update)
    snap = ref.get()
    return canonical_payment(snap.id, snap.to_dict())


__all__ = [
    'PaymentResult',
    'as_season_year',
    'canonical_payment',
    'create_payment_for_partner',
    'diagnose_season_year_issue',
    'get_active_season',
    'get_all_approved_partners_with_payments',
    'get_all_partner_payments',
    'get_all_seasons',
    'get_approved_partners',
    'get_most_recent_payment',
    'get_partner_payment_history',
    'get_partner_payments_by_status',
    'get_partner_payments_for_season',
    'normalize_payment_dates',
    'payment_document_id',
    'update_partner_payment',
]
