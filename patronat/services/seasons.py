"""Season lifecycle and the payment fan-out that follows activation.

``activate_season`` and ``deactivate_season`` are the only writers of the
``active`` flag; activation clears every other active season in the same
transaction, so at most one season is active at any time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

from flask import current_app

from patronat.models import SEASONS, ChangeType
from patronat.services.fanout import fan_out
from patronat.services.history import record_change
from patronat.services.payments import (
    as_season_year,
    create_payment_for_partner,
    get_approved_partners,
)
from patronat.services.store import SERVER_TIMESTAMP, NotFoundError, get_store
from patronat.services.validation import ValidationError, calculate_age, is_junior_age

if TYPE_CHECKING:
    from patronat.auth import SessionContext

NUMBER_OF_FRACTIONS = 3

STANDARD_PRICE_FIELDS = ('totalPrice', 'priceFirstFraction', 'priceSeconFraction', 'priceThirdFraction')
JUNIOR_PRICE_FIELDS = (
    'totalPriceJunior',
    'priceFirstFractionJunior',
    'priceSeconFractionJunior',
    'priceThirdFractionJunior',
)


@dataclass
class SeasonReport:
    """Summary of the payment fan-out of a season activation."""

    season_id: str
    season_year: int
    created: int = 0
    skipped: int = 0
    adult: int = 0
    junior: int = 0
    failed: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'seasonId': self.season_id,
            'seasonYear': self.season_year,
            'created': self.created,
            'skipped': self.skipped,
            'adult': self.adult,
            'junior': self.junior,
            'failed': self.failed,
        }


def _price(data: dict, key: str) -> float:
    value = data.get(key)
    if value in (None, ''):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError({key: 'invalidNumber'})


def _check_tier(data: dict, fields: tuple[str, ...], errors: dict[str, str]) -> None:
    total_key, *fraction_keys = fields
    try:
        total = _price(data, total_key)
        fractions = [_price(data, key) for key in fraction_keys]
    except ValidationError as exc:
        errors.update(exc.errors)
        return
    if total < 0 or any(value < 0 for value in fractions):
        errors[total_key] = 'mustBePositive'
    elif abs(sum(fractions) - total) > 0.005:
        errors[total_key] = 'fractionSumMismatch'


def validate_season(data: dict, existing_years: set[int], current_year: int | None = None) -> dict[str, str]:
    """Field errors for new season data; empty when valid."""
    errors: dict[str, str] = {}
    current_year = current_year or date.today().year
    year = as_season_year(data.get('seasonYear'))
    if year is None:
        errors['seasonYear'] = 'required'
    elif year < current_year:
        errors['seasonYear'] = 'yearInPast'
    elif year in existing_years:
        errors['seasonYear'] = 'seasonExists'

    _check_tier(data, STANDARD_PRICE_FIELDS, errors)
    _check_tier(data, JUNIOR_PRICE_FIELDS, errors)
    return errors


def season_prices(season: dict, junior: bool) -> dict[str, float]:
    """Fraction prices of a season for the standard or the junior tier."""
    suffix = 'Junior' if junior else ''
    return {
        'firstPaymentPrice': _price(season, f'priceFirstFraction{suffix}'),
        'secondPaymentPrice': _price(season, f'priceSeconFraction{suffix}'),
        'thirdPaymentPrice': _price(season, f'priceThirdFraction{suffix}'),
    }


def build_partner_payment(partner: dict, season: dict, today: date | None = None) -> dict:
    """Payment data for ``partner`` in ``season`` priced by the partner's age tier."""
    age = calculate_age(partner.get('birthDate'), today)
    junior = is_junior_age(age)
    return {
        'seasonYear': as_season_year(season.get('seasonYear')),
        **season_prices(season, junior),
        'priceCategory': 'junior' if junior else 'adult',
        'partnerAge': age,
    }


def list_seasons() -> list[dict]:
    seasons = [{'id': snap.id, **snap.to_dict()} for snap in get_store().collection(SEASONS).get()]
    seasons.sort(key=lambda s: as_season_year(s.get('seasonYear')) or 0, reverse=True)
    return seasons


def get_season(season_id: str) -> dict:
    snap = get_store().document(f"{SEASONS}/{season_id}").get()
    if not snap.exists:
        raise NotFoundError(f"Season {season_id} not found")
    return {'id': snap.id, **snap.to_dict()}


def create_season(data: dict, ctx: SessionContext, current_year: int | None = None) -> tuple[dict, SeasonReport | None]:
    """
    Create a season and, when ``data['active']`` is set, activate it.

    Returns:
        (season, report) where report is the activation fan-out summary or None
    """
    existing = {as_season_year(s.get('seasonYear')) for s in list_seasons()}
    errors = validate_season(data, existing, current_year)
    if errors:
        raise ValidationError(errors)

    record: dict[str, Any] = {
        'seasonYear': as_season_year(data['seasonYear']),
        'numberOfFractions': NUMBER_OF_FRACTIONS,
        'active': False,
        'createdAt': SERVER_TIMESTAMP,
        'userId': ctx.user_id,
    }
    for key in STANDARD_PRICE_FIELDS + JUNIOR_PRICE_FIELDS:
        record[key] = _price(data, key)

    ref = get_store().collection(SEASONS).add(record)
    record_change('season', ref.id, str(record['seasonYear']), ChangeType.CREATE, ctx, new=record)

    report = None
    if data.get('active'):
        report = activate_season(ref.id, ctx)
    return get_season(ref.id), report


def _write_active_flag(season_id: str, active: bool) -> dict:
    store = get_store()
    target = store.document(f"{SEASONS}/{season_id}")
    with store.transaction() as tx:
        snap = tx.get(target)
        if not snap.exists:
            raise NotFoundError(f"Season {season_id} not found")
        if active:
            for other in tx.get(store.collection(SEASONS).where('active', '==', True)):
                if other.id != season_id:
                    tx.update(other.reference, {'active': False, 'updatedAt': SERVER_TIMESTAMP})
        tx.update(target, {'active': active, 'updatedAt': SERVER_TIMESTAMP})
    return {'id': snap.id, **snap.to_dict()}


def activate_season(season_id: str, ctx: SessionContext, create_payments: bool = True) -> SeasonReport:
    """Make ``season_id`` the only active season and create its payments."""
    previous = _write_active_flag(season_id, True)
    season = get_season(season_id)
    record_change('season', season_id, str(season.get('seasonYear')), ChangeType.UPDATE, ctx,
                  previous=previous, new=season)

    report = SeasonReport(season_id=season_id, season_year=as_season_year(season.get('seasonYear')))
    if create_payments:
        report = fan_out_season_payments(season, ctx)
    return report


def deactivate_season(season_id: str, ctx: SessionContext) -> dict:
    previous = _write_active_flag(season_id, False)
    season = get_season(season_id)
    record_change('season', season_id, str(season.get('seasonYear')), ChangeType.UPDATE, ctx,
                  previous=previous, new=season)
    return season


def delete_season(season_id: str, ctx: SessionContext) -> None:
    season = get_season(season_id)
    get_store().document(f"{SEASONS}/{season_id}").delete()
    record_change('season', season_id, str(season.get('seasonYear')), ChangeType.DELETE, ctx, previous=season)


def fan_out_season_payments(season: dict, ctx: SessionContext, today: date | None = None) -> SeasonReport:
    """
    Create the season payment of every approved partner.

    Partners run with bounded concurrency; a partner that fails is reported and
    does not stop the others. Partners that already have a payment for the
    season are counted as skipped.
    """
    today = today or date.today()
    report = SeasonReport(season_id=season['id'], season_year=as_season_year(season.get('seasonYear')))

    def create_for(partner: dict) -> tuple[str, bool]:
        payment = build_partner_payment(partner, season, today)
        result = create_payment_for_partner(partner['id'], payment, ctx.user_id)
        return payment['priceCategory'], result.created

    outcome = fan_out(get_approved_partners(), create_for, key=lambda partner: partner['id'])

    for _, (category, created) in outcome.results:
        if not created:
            report.skipped += 1
            continue
        report.created += 1
        if category == 'junior':
            report.junior += 1
        else:
            report.adult += 1
    report.failed = [{'partnerId': pid, 'error': error} for pid, error in outcome.failures]

    current_app.logger.info(
        f"Season {report.season_year}: {report.created} payments created "
        f"({report.adult} adult, {report.junior} junior), {report.skipped} skipped, {len(report.failed)} failed"
    )
    return report


__all__ = [
    'SeasonReport',
    'activate_season',
    'build_partner_payment',
    'create_season',
    'deactivate_season',
    'delete_season',
    'fan_out_season_payments',
    'get_season',
    'list_seasons',
    'season_prices',
    'validate_season',
]
