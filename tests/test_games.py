"""Tests for games and the crew mirror synchronisation."""

from datetime import date

import pytest

from patronat.services import crew_sync, games
from patronat.services.store import NotFoundError
from patronat.services.validation import ValidationError


def add_crew(store, crew_id, status='Activo', season=None):
    data = {'title': crew_id, 'status': status, 'responsable': [], 'membersNames': []}
    if season:
        data['season'] = season
    store.document(f'crews/{crew_id}').set(data)


def mirror(store, crew_id, game_id):
    return store.document(f'crews/{crew_id}/games/{game_id}').get()


@pytest.fixture
def crews(store):
    add_crew(store, 'c1', season='2026')
    add_crew(store, 'c2', season='2026')
    add_crew(store, 'pending', status='Pendiente')
    return ['c1', 'c2']


class TestGames:
    def test_create_mirrors_into_active_crews(self, store, crews, admin_ctx):
        game, report = games.create_game({'name': 'Truc', 'season': '2026', 'date': '2026-08-10'}, admin_ctx)

        assert game['status'] == 'Inactivo'
        assert game['date'] == date(2026, 8, 10)
        assert report.created == 2
        copy = mirror(store, 'c1', game['id']).to_dict()
        assert copy['gameName'] == 'Truc'
        assert copy['gameDate'] == date(2026, 8, 10)
        assert copy['participationStatus'] == 'Pendiente'
        assert copy['points'] == 0
        assert not mirror(store, 'pending', game['id']).exists

    def test_create_validation(self, app, admin_ctx):
        with pytest.raises(ValidationError) as exc:
            games.create_game({'name': '', 'date': 'someday', 'status': 'Whatever', 'score': 'x'}, admin_ctx)
        assert exc.value.errors == {
            'name': 'required',
            'date': 'invalidDate',
            'status': 'invalidStatus',
            'score': 'invalidNumber',
        }

    def test_rename_propagates_to_existing_mirrors_only(self, store, crews, admin_ctx):
        game, _ = games.create_game({'name': 'Truc', 'season': '2026'}, admin_ctx)
        add_crew(store, 'late')

        updated, report = games.update_game(game['id'], {'name': 'Truc (2026)'}, admin_ctx)

        assert updated['name'] == 'Truc (2026)'
        assert report.updated == 2
        assert mirror(store, 'c2', game['id']).get('gameName') == 'Truc (2026)'
        # No blind writes: crews without the mirror are left alone
        assert not mirror(store, 'late', game['id']).exists

    def test_status_change_only_touches_status(self, store, crews, admin_ctx):
        game, _ = games.create_game({'name': 'Truc'}, admin_ctx)
        store.document(f"crews/c1/games/{game['id']}").update({'points': 7})

        _, report = games.update_game_status(game['id'], 'Activo', admin_ctx)

        assert report.updated == 2
        copy = mirror(store, 'c1', game['id']).to_dict()
        assert copy['gameStatus'] == 'Activo'
        assert copy['points'] == 7

    def test_unsynced_change_does_not_touch_crews(self, store, crews, admin_ctx):
        game, _ = games.create_game({'name': 'Truc'}, admin_ctx)
        _, report = games.update_game(game['id'], {'location': 'Plaça Major'}, admin_ctx)
        assert report is None

    def test_updates_are_chunked(self, store, app, admin_ctx):
        app.config['CREW_BATCH_LIMIT'] = 2
        for index in range(5):
            add_crew(store, f'c{index}')
        game, created = games.create_game({'name': 'Truc'}, admin_ctx)
        assert created.commits == [2, 2, 1]

        _, report = games.update_game(game['id'], {'name': 'Parchís'}, admin_ctx)

        assert report.commits == [2, 2, 1]
        assert all(count <= 2 for count in report.commits)

    def test_batch_limit_is_capped(self, app):
        app.config['CREW_BATCH_LIMIT'] = 1000
        assert crew_sync.batch_limit() == crew_sync.CREW_BATCH_LIMIT

    def test_clone_for_new_season(self, store, admin_ctx):
        add_crew(store, 'old-crew', season='2025')
        add_crew(store, 'new-crew', season='2026')
        game, _ = games.create_game({'name': 'Truc (2025)', 'season': '2025', 'status': 'Completado'}, admin_ctx)

        clone, report = games.clone_game_for_season(game['id'], '2026', admin_ctx)

        assert clone['id'] != game['id']
        assert clone['name'] == 'Truc (2026)'
        assert clone['status'] == 'Planificado'
        assert clone['isClonedFrom'] == game['id']
        assert report.created == 1
        assert mirror(store, 'new-crew', clone['id']).exists
        assert not mirror(store, 'old-crew', clone['id']).exists
        assert games.get_game(game['id'])['season'] == '2025'

    def test_clone_falls_back_to_every_active_crew(self, store, admin_ctx):
        add_crew(store, 'any-crew', season='2025')
        game, _ = games.create_game({'name': 'Truc', 'season': '2025'}, admin_ctx)

        clone, report = games.clone_game_for_season(game['id'], '2027', admin_ctx)

        assert report.created == 1
        assert mirror(store, 'any-crew', clone['id']).exists

    def test_clone_requires_season(self, store, admin_ctx):
        game, _ = games.create_game({'name': 'Truc'}, admin_ctx)
        with pytest.raises(ValidationError):
            games.clone_game_for_season(game['id'], '', admin_ctx)

    def test_delete_removes_mirrors(self, store, crews, admin_ctx):
        game, _ = games.create_game({'name': 'Truc'}, admin_ctx)

        report = games.delete_game(game['id'], admin_ctx)

        assert report.removed == 2
        assert not mirror(store, 'c1', game['id']).exists
        with pytest.raises(NotFoundError):
            games.get_game(game['id'])

    def test_list_filters(self, store, admin_ctx):
        games.create_game({'name': 'Truc', 'season': '2025'}, admin_ctx)
        games.create_game({'name': 'Dòmino', 'season': '2026', 'location': 'Casino'}, admin_ctx)

        assert [g['name'] for g in games.list_games(season='2026')] == ['Dòmino']
        assert [g['name'] for g in games.list_games(query='casino')] == ['Dòmino']


class TestReconcile:
    def test_reconcile_repairs_drift(self, store, crews, admin_ctx):
        game, _ = games.create_game({'name': 'Truc', 'season': '2026'}, admin_ctx)
        other, _ = games.create_game({'name': 'Dòmino', 'season': '2026'}, admin_ctx)

        # Drift: stale name, lost mirror, orphan mirror
        store.document(f"crews/c1/games/{game['id']}").update({'gameName': 'Old name', 'points': 4})
        store.document(f"crews/c2/games/{other['id']}").delete()
        store.document('crews/c2/games/deleted-game').set({'gameName': 'Gone'})

        report = crew_sync.reconcile_crew_games()

        assert (report.created, report.updated, report.removed) == (1, 1, 1)
        fixed = mirror(store, 'c1', game['id']).to_dict()
        assert fixed['gameName'] == 'Truc'
        assert fixed['points'] == 4
        assert mirror(store, 'c2', other['id']).exists
        assert not mirror(store, 'c2', 'deleted-game').exists

    def test_reconcile_is_idempotent(self, store, crews, admin_ctx):
        games.create_game({'name': 'Truc', 'season': '2026'}, admin_ctx)
        crew_sync.reconcile_crew_games()

        report = crew_sync.reconcile_crew_games()

        assert (report.created, report.updated, report.removed) == (0, 0, 0)
        assert report.commits == []

    def test_reconcile_respects_crew_season(self, store, admin_ctx):
        add_crew(store, 'c2025', season='2025')
        game, _ = games.create_game({'name': 'Truc', 'season': '2026'}, admin_ctx)
        store.document(f"crews/c2025/games/{game['id']}").delete()

        report = crew_sync.reconcile_crew_games()

        assert report.created == 0
        assert not mirror(store, 'c2025', game['id']).exists
