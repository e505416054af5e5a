"""Tests for partner registration and approval."""

from datetime import date

import pytest

from patronat.services import partners
from patronat.services.payments import get_all_partner_payments
from patronat.services.store import NotFoundError, StoreError
from patronat.services.validation import ValidationError

THIS_YEAR = date.today().year

PARTNER = {
    'name': ' Maria ',
    'lastName': 'Ferrer',
    'email': 'Maria@Example.com',
    'dni': '12345678z',
    'phone': '600111222',
    'accountNumber': 'es91 2100 0418 4502 0005 1332',
    'birthDate': '1985-04-12',
}


def activate(store, year=THIS_YEAR):
    store.document('seasons/current').set({
        'seasonYear': year,
        'active': True,
        'priceFirstFraction': 20,
        'priceSeconFraction': 20,
        'priceThirdFraction': 20,
        'priceFirstFractionJunior': 10,
        'priceSeconFractionJunior': 10,
        'priceThirdFractionJunior': 10,
    })


class TestRegistration:
    def test_register_normalizes_and_starts_pending(self, app):
        partner = partners.register_partner(PARTNER)

        assert partner['status'] == 'pending'
        assert partner['name'] == 'Maria'
        assert partner['email'] == 'maria@example.com'
        assert partner['dni'] == '12345678Z'
        assert partner['accountNumber'] == 'ES9121000418450200051332'
        assert partner['birthDate'] == date(1985, 4, 12)

    def test_invalid_partner(self, app):
        with pytest.raises(ValidationError) as exc:
            partners.register_partner({**PARTNER, 'dni': 'X'})
        assert exc.value.errors == {'dni': 'invalidDni'}

    def test_registration_by_user_is_recorded(self, store, user_ctx):
        partner = partners.register_partner(PARTNER, user_ctx)
        assert partner['userId'] == user_ctx.user_id
        changes = store.collection('changes').where('entityId', '==', partner['id']).get()
        assert [snap.get('changeType') for snap in changes] == ['create']

    def test_list_filters_and_searches(self, app):
        maria = partners.register_partner(PARTNER)
        partners.register_partner({**PARTNER, 'name': 'Joan', 'lastName': 'Alemany', 'email': 'joan@example.com'})

        assert [p['name'] for p in partners.list_partners()] == ['Joan', 'Maria']
        assert [p['id'] for p in partners.list_partners(query='ferrer')] == [maria['id']]
        assert partners.list_partners(status='approved') == []

    def test_update_validates_merged_data(self, app, admin_ctx):
        partner = partners.register_partner(PARTNER)

        updated = partners.update_partner(partner['id'], {'phone': '699000000'}, admin_ctx)
        assert updated['phone'] == '699000000'

        with pytest.raises(ValidationError):
            partners.update_partner(partner['id'], {'email': 'broken'}, admin_ctx)


class TestApproval:
    def test_approve_creates_active_season_payment(self, store, admin_ctx):
        activate(store)
        partner = partners.register_partner(PARTNER)

        result = partners.approve_partner(partner['id'], admin_ctx)

        assert result.partner['status'] == 'approved'
        assert result.payment_created is True
        assert result.warning is None
        assert result.payment['seasonYear'] == THIS_YEAR
        assert result.payment['firstPaymentPrice'] == 20.0
        assert result.to_dict()['paymentCreated'] is True

    def test_approve_junior_partner_uses_junior_prices(self, store, admin_ctx):
        activate(store)
        partner = partners.register_partner({**PARTNER, 'birthDate': date(THIS_YEAR - 14, 1, 1).isoformat()})

        result = partners.approve_partner(partner['id'], admin_ctx)

        assert result.payment['priceCategory'] == 'junior'
        assert result.payment['firstPaymentPrice'] == 10.0

    def test_approve_twice_keeps_one_payment(self, store, admin_ctx):
        activate(store)
        partner = partners.register_partner(PARTNER)

        partners.approve_partner(partner['id'], admin_ctx)
        again = partners.approve_partner(partner['id'], admin_ctx)

        assert again.payment_created is False
        assert len(get_all_partner_payments(partner['id'])) == 1

    def test_approve_without_active_season(self, store, admin_ctx):
        partner = partners.register_partner(PARTNER)

        result = partners.approve_partner(partner['id'], admin_ctx)

        assert result.partner['status'] == 'approved'
        assert result.payment is None
        assert result.warning == 'noActiveSeason'

    def test_payment_failure_keeps_approval(self, store, admin_ctx, monkeypatch):
        activate(store)
        partner = partners.register_partner(PARTNER)

        def failing(*args, **kwargs):
            raise StoreError('disk full')

        monkeypatch.setattr(partners, 'create_payment_for_partner', failing)
        result = partners.approve_partner(partner['id'], admin_ctx)

        assert result.warning == 'paymentFailed'
        assert partners.get_partner(partner['id'])['status'] == 'approved'

    def test_reject(self, store, admin_ctx):
        partner = partners.register_partner(PARTNER)
        assert partners.reject_partner(partner['id'], admin_ctx)['status'] == 'rejected'

    def test_approve_unknown_partner(self, app, admin_ctx):
        with pytest.raises(NotFoundError):
            partners.approve_partner('ghost', admin_ctx)


def test_delete_removes_payments(store, admin_ctx):
    activate(store)
    partner = partners.register_partner(PARTNER)
    partners.approve_partner(partner['id'], admin_ctx)

    partners.delete_partner(partner['id'], admin_ctx)

    with pytest.raises(NotFoundError):
        partners.get_partner(partner['id'])
    assert get_all_partner_payments(partner['id']) == []
