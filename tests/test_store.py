"""Tests for the hierarchical document store."""

from datetime import date, datetime

import pytest

from patronat.services.store import (
    DELETE_FIELD,
    DESCENDING,
    MAX_BATCH_OPERATIONS,
    SERVER_TIMESTAMP,
    BatchLimitError,
    NotFoundError,
    listeners,
)


class TestDocuments:
    def test_set_and_get(self, store):
        ref = store.collection('partners').document('p1')
        ref.set({'name': 'Maria', 'birthDate': date(2010, 5, 1)})

        snap = ref.get()
        assert snap.exists
        assert snap.id == 'p1'
        assert snap.to_dict() == {'name': 'Maria', 'birthDate': date(2010, 5, 1)}

    def test_missing_document(self, store):
        snap = store.document('partners/nobody').get()
        assert not snap.exists
        assert snap.to_dict() is None

    def test_add_generates_id(self, store):
        ref = store.collection('games').add({'name': 'Truc'})
        assert ref.id
        assert ref.get().get('name') == 'Truc'

    def test_server_timestamp_is_resolved(self, store):
        ref = store.collection('games').add({'createdAt': SERVER_TIMESTAMP})
        value = ref.get().get('createdAt')
        assert isinstance(value, datetime)
        assert value.tzinfo is not None

    def test_set_replaces_unless_merge(self, store):
        ref = store.document('games/g1')
        ref.set({'name': 'Truc', 'score': 3})
        ref.set({'name': 'Parchís'})
        assert ref.get().to_dict() == {'name': 'Parchís'}

        ref.set({'score': 5}, merge=True)
        assert ref.get().to_dict() == {'name': 'Parchís', 'score': 5}

    def test_update_dotted_path_and_delete_field(self, store):
        ref = store.document('users/u1')
        ref.set({'profile': {'name': 'Pep', 'phone': '600'}, 'role': 'user'})
        ref.update({'profile.name': 'Josep', 'role': DELETE_FIELD})

        assert ref.get().to_dict() == {'profile': {'name': 'Josep', 'phone': '600'}}

    def test_update_missing_document_raises(self, store):
        with pytest.raises(NotFoundError):
            store.document('users/ghost').update({'role': 'admin'})

    def test_subcollection_paths(self, store):
        crew = store.document('crews/c1')
        crew.set({'title': 'Els Xics'})
        mirror = crew.collection('games').document('g1')
        mirror.set({'points': 0})

        assert mirror.path == 'crews/c1/games/g1'
        assert mirror.parent.parent == crew
        assert [snap.id for snap in crew.collection('games').get()] == ['g1']
        # Subcollection documents are not part of the parent collection
        assert [snap.id for snap in store.collection('crews').get()] == ['c1']

    def test_invalid_paths(self, store):
        with pytest.raises(ValueError):
            store.document('crews')
        with pytest.raises(ValueError):
            store.collection('crews/c1')


class TestQueries:
    @pytest.fixture
    def seasons(self, store):
        store.document('seasons/s2024').set({'seasonYear': 2024, 'active': False})
        store.document('seasons/s2025').set({'seasonYear': 2025, 'active': True})
        store.document('seasons/s2026').set({'seasonYear': 2026, 'active': False})
        store.document('seasons/legacy').set({'seasonYear': '2023'})
        return store.collection('seasons')

    def test_equality_on_booleans_is_strict(self, store):
        store.document('flags/a').set({'active': True})
        store.document('flags/b').set({'active': 1})
        result = store.collection('flags').where('active', '==', True).get()
        assert [snap.id for snap in result] == ['a']

    def test_missing_field_never_matches(self, seasons):
        assert 'legacy' not in [snap.id for snap in seasons.where('active', '!=', True).get()]

    def test_range_and_in(self, seasons):
        newer = seasons.where('seasonYear', '>=', 2025).get()
        assert sorted(snap.id for snap in newer) == ['s2025', 's2026']

        mixed = seasons.where('seasonYear', 'in', [2023, '2023']).get()
        assert [snap.id for snap in mixed] == ['legacy']

    def test_order_by_and_limit(self, seasons):
        ordered = seasons.where('active', '==', False).order_by('seasonYear', DESCENDING).get()
        assert [snap.id for snap in ordered] == ['s2026', 's2024']

        first = seasons.order_by('seasonYear').limit(1).get()
        assert len(first) == 1

    def test_order_by_excludes_documents_without_the_field(self, store):
        store.document('payments/a').set({'createdAt': datetime(2024, 1, 1)})
        store.document('payments/b').set({'seasonYear': 2024})
        result = store.collection('payments').order_by('createdAt').get()
        assert [snap.id for snap in result] == ['a']

    def test_array_contains(self, store):
        store.document('events/e1').set({'tags': ['música', 'nit']})
        store.document('events/e2').set({'tags': ['infantil']})
        result = store.collection('events').where('tags', 'array-contains', 'nit').get()
        assert [snap.id for snap in result] == ['e1']

    def test_unknown_operator(self, store):
        with pytest.raises(ValueError):
            store.collection('events').where('tags', 'like', 'x')


class TestBatchesAndTransactions:
    def test_batch_commit_is_atomic(self, store):
        store.document('games/g1').set({'name': 'Truc'})
        batch = store.batch()
        batch.set(store.document('games/g2'), {'name': 'Dòmino'})
        batch.update(store.document('games/missing'), {'name': 'x'})

        with pytest.raises(NotFoundError):
            batch.commit()
        assert not store.document('games/g2').get().exists

    def test_batch_returns_operation_count(self, store):
        batch = store.batch()
        for index in range(3):
            batch.set(store.document(f'crews/c{index}'), {'title': f'Penya {index}'})
        assert batch.commit() == 3
        assert len(store.collection('crews').get()) == 3

    def test_batch_limit(self, store):
        batch = store.batch()
        for index in range(MAX_BATCH_OPERATIONS):
            batch.delete(store.document(f'crews/c{index}'))
        with pytest.raises(BatchLimitError):
            batch.delete(store.document('crews/one-too-many'))

    def test_transaction_buffers_writes(self, store):
        ref = store.document('seasons/s1')
        ref.set({'active': False})

        with store.transaction() as tx:
            snap = tx.get(ref)
            tx.update(ref, {'active': not snap.get('active')})
            # Not visible until the transaction commits
            assert ref.get().get('active') is False

        assert ref.get().get('active') is True

    def test_transaction_discards_writes_on_error(self, store):
        ref = store.document('seasons/s1')
        ref.set({'active': False})

        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                tx.update(ref, {'active': True})
                raise RuntimeError('boom')

        assert ref.get().get('active') is False

    def test_recursive_delete(self, store):
        partner = store.document('partners/p1')
        partner.set({'name': 'Maria'})
        partner.collection('payments').document('season-2025').set({'seasonYear': 2025})
        store.document('partners/p10').set({'name': 'Not a child'})

        assert store.recursive_delete(partner) == 2
        assert not partner.get().exists
        assert partner.collection('payments').get() == []
        assert store.document('partners/p10').get().exists


class TestListeners:
    def test_on_snapshot_receives_initial_and_later_results(self, store):
        received = []
        query = store.collection('chats/c1/messages').order_by('createdAt')
        unsubscribe = store.on_snapshot(query, lambda snaps: received.append([s.get('text') for s in snaps]))
        try:
            store.collection('chats/c1/messages').add({'text': 'Hola', 'createdAt': SERVER_TIMESTAMP})
            store.collection('chats/c2/messages').add({'text': 'Other chat', 'createdAt': SERVER_TIMESTAMP})
        finally:
            unsubscribe()

        assert received == [[], ['Hola']]
        assert listeners.count('chats/c1/messages') == 0

    def test_failing_listener_does_not_break_writes(self, store):
        def explode(snapshots):
            if snapshots:
                raise RuntimeError('listener failure')

        unsubscribe = store.on_snapshot(store.collection('games'), explode)
        try:
            store.collection('games').add({'name': 'Truc'})
        finally:
            unsubscribe()
        assert len(store.collection('games').get()) == 1
