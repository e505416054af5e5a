"""Tests for the flask CLI commands."""

from datetime import date, datetime, timedelta

import openpyxl
import pytest

from patronat.services.store import get_store
from patronat.services.users import find_user_by_email

THIS_YEAR = date.today().year


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def create_season(runner, year=THIS_YEAR, *extra):
    return runner.invoke(args=[
        'season', 'create', '--year', str(year), '--total', '60', '--fractions', '20', '20', '20', *extra,
    ])


class TestSeasonCommands:
    def test_create_and_list(self, runner, store):
        result = create_season(runner)
        assert 'Season created successfully!' in result.output
        assert 'Active: False' in result.output

        listing = runner.invoke(args=['season', 'list'])
        assert str(THIS_YEAR) in listing.output

    def test_create_invalid(self, runner, store):
        result = runner.invoke(args=[
            'season', 'create', '--year', str(THIS_YEAR), '--total', '50', '--fractions', '20', '20', '20',
        ])
        assert 'Error' in result.output
        assert store.collection('seasons').get() == []

    def test_create_active_creates_payments(self, runner, store):
        store.document('partners/p1').set({'name': 'Maria', 'status': 'approved', 'birthDate': '1980-01-01'})

        result = create_season(runner, THIS_YEAR, '--activate')

        assert 'Payments created: 1 (1 adult, 0 junior)' in result.output
        assert store.document(f'partners/p1/payments/season-{THIS_YEAR}').get().exists

    def test_activate(self, runner, store):
        create_season(runner)
        season_id = store.collection('seasons').get()[0].id

        result = runner.invoke(args=['season', 'activate', season_id, '--no-payments'])

        assert f'Season {THIS_YEAR} is now active.' in result.output
        assert store.document(f'seasons/{season_id}').get().get('active') is True

    def test_activate_unknown(self, runner, store):
        result = runner.invoke(args=['season', 'activate', 'ghost'])
        assert 'not found' in result.output

    def test_list_empty(self, runner, store):
        assert 'No seasons found.' in runner.invoke(args=['season', 'list']).output


class TestUserCommands:
    def test_create_admin(self, runner):
        result = runner.invoke(args=['user', 'create', '--email', 'Presi@Example.com', '--password', 'secret123'])

        assert 'User created successfully!' in result.output
        user_id, data = find_user_by_email('presi@example.com')
        assert data['role'] == 'admin'

    def test_duplicate_email(self, runner):
        runner.invoke(args=['user', 'create', '--email', 'presi@example.com', '--password', 'secret123'])
        result = runner.invoke(args=['user', 'create', '--email', 'presi@example.com', '--password', 'secret123'])
        assert 'Error' in result.output

    def test_set_role(self, runner, regular_user):
        result = runner.invoke(args=['user', 'set-role', '--email', 'vecina@example.com', '--role', 'admin', '--staff'])

        assert 'Role updated.' in result.output
        _, data = find_user_by_email('vecina@example.com')
        assert data['role'] == 'admin'
        assert data['isStaff'] is True

    def test_set_role_unknown_user(self, runner):
        result = runner.invoke(args=['user', 'set-role', '--email', 'ningu@example.com', '--role', 'user'])
        assert 'No user' in result.output


def test_crews_reconcile(runner, store):
    store.document('games/g1').set({'name': 'Truc', 'season': '2026', 'status': 'Activo'})
    store.document('crews/c1').set({'title': 'Els Xics', 'season': '2026', 'status': 'Activo'})

    result = runner.invoke(args=['crews', 'reconcile'])

    assert 'Created: 1' in result.output
    assert store.document('crews/c1/games/g1').get().exists


def test_events_complete_finished(runner, store):
    yesterday = (datetime.now() - timedelta(days=1)).strftime('%Y-%m-%d')
    store.document('events/e1').set({'title': 'Sopar', 'status': 'Activo', 'endDate': yesterday, 'endTime': '23:00'})

    result = runner.invoke(args=['events', 'complete-finished'])

    assert 'Marked 1 events as completed.' in result.output
    assert store.document('events/e1').get().get('status') == 'Completado'
    assert 'No events need a status update.' in runner.invoke(args=['events', 'complete-finished']).output


def test_export_partners(runner, store, tmp_path):
    store.document('partners/p1').set({'name': 'Maria', 'lastName': 'Ferrer', 'status': 'approved'})

    result = runner.invoke(args=['export', 'partners', '--output-dir', str(tmp_path / 'out')])

    assert 'Exported to' in result.output
    files = list((tmp_path / 'out').glob('listado_completo_socios_*.xlsx'))
    assert len(files) == 1
    assert openpyxl.load_workbook(files[0]).sheetnames == ['Socios']


def test_export_unknown_partner(runner, store, tmp_path):
    result = runner.invoke(args=['export', 'partners', '--partner', 'ghost', '--output-dir', str(tmp_path)])
    assert 'not found' in result.output
    assert get_store().collection('partners').get() == []
