"""Tests for events, participation forms and the completion job."""

from datetime import datetime

import pytest

from patronat.services import events
from patronat.services.store import NotFoundError
from patronat.services.validation import ValidationError

FORM = [
    {'fieldId': 'nom', 'label': 'Nom', 'required': True},
    {'fieldId': 'telefono', 'label': 'Telèfon', 'type': 'text'},
    {'fieldId': 'talla', 'label': 'Talla', 'type': 'select', 'options': ['S', 'M', 'L']},
]


def event_data(**overrides):
    data = {
        'title': 'Sopar de Germanor',
        'description': 'Sopar popular a la plaça',
        'startDate': '2026-08-14',
        'startTime': '21:30',
        'endDate': '2026-08-15',
        'endTime': '01:00',
        'location': 'Plaça Major',
        'capacity': '300',
        'tags': ['sopar', 'popular'],
    }
    data.update(overrides)
    return data


class TestEvents:
    def test_create_defaults(self, app, admin_ctx):
        event = events.create_event(event_data(), admin_ctx)

        assert event['slug'] == 'sopar-de-germanor'
        assert event['status'] == 'Activo'
        assert event['needForm'] is False
        assert event['capacity'] == 300.0
        assert events.get_event_by_slug('sopar-de-germanor')['id'] == event['id']

    def test_validation(self, app, admin_ctx):
        with pytest.raises(ValidationError) as exc:
            events.create_event(event_data(startTime='25:99', endDate='2026-08-01', tags='sopar'), admin_ctx)
        assert exc.value.errors == {'startTime': 'invalidTime', 'endDate': 'endBeforeStart', 'tags': 'mustBeList'}

    def test_search_by_tag(self, app, admin_ctx):
        events.create_event(event_data(), admin_ctx)
        events.create_event(event_data(title='Cercavila', tags=['música']), admin_ctx)

        assert [e['title'] for e in events.list_events(query='música')] == ['Cercavila']

    def test_delete_removes_form_fields(self, store, admin_ctx):
        event = events.create_event(event_data(needForm=True, formFields=FORM), admin_ctx)

        events.delete_event(event['id'], admin_ctx)

        with pytest.raises(NotFoundError):
            events.get_event(event['id'])
        assert store.collection(f"events/{event['id']}/formCamps").get() == []


class TestForms:
    def test_form_fields_ordered_and_phone_forced(self, app, admin_ctx):
        event = events.create_event(event_data(needForm=True, formFields=FORM), admin_ctx)

        fields = events.get_form_fields(event['id'])

        assert [f['fieldId'] for f in fields] == ['nom', 'telefono', 'talla']
        assert [f['order'] for f in fields] == [1, 2, 3]
        assert fields[1]['type'] == 'phone'
        assert fields[2]['options'] == ['S', 'M', 'L']

    def test_replacing_fields(self, app, admin_ctx):
        event = events.create_event(event_data(needForm=True, formFields=FORM), admin_ctx)
        fields = events.set_form_fields(event['id'], [{'fieldId': 'email', 'label': 'Email', 'type': 'email'}])
        assert [f['fieldId'] for f in fields] == ['email']

    def test_fields_need_id_and_label(self, app, admin_ctx):
        event = events.create_event(event_data(), admin_ctx)
        with pytest.raises(ValidationError):
            events.set_form_fields(event['id'], [{'fieldId': 'nom'}])

    def test_submit_inscription(self, app, admin_ctx, user_ctx):
        event = events.create_event(event_data(needForm=True, formFields=FORM), admin_ctx)

        inscription = events.submit_inscription(
            event['id'], {'nom': 'Anna', 'talla': 'M', 'unexpected': 'x'}, user_ctx
        )

        assert inscription['status'] == 'pendiente'
        assert inscription['eventSlug'] == 'sopar-de-germanor'
        assert inscription['responses'] == {'nom': 'Anna', 'talla': 'M'}
        assert inscription['submitBy'] == user_ctx.user_id
        assert [i['id'] for i in events.list_inscriptions(event['id'])] == [inscription['id']]

    def test_required_answers(self, app, admin_ctx):
        event = events.create_event(event_data(needForm=True, formFields=FORM), admin_ctx)
        with pytest.raises(ValidationError) as exc:
            events.submit_inscription(event['id'], {'nom': '  '})
        assert exc.value.errors == {'nom': 'required'}

    def test_event_without_form(self, app, admin_ctx):
        event = events.create_event(event_data(), admin_ctx)
        with pytest.raises(ValidationError):
            events.submit_inscription(event['id'], {'nom': 'Anna'})


class TestCompletion:
    def test_completes_only_finished_active_events(self, app, admin_ctx):
        finished = events.create_event(event_data(title='Passat'), admin_ctx)
        upcoming = events.create_event(event_data(title='Futur', startDate='2026-09-01', endDate='2026-09-02'), admin_ctx)
        no_time = events.create_event(event_data(title='Sense hora', endTime=''), admin_ctx)
        inactive = events.create_event(event_data(title='Inactiu', status='Inactivo'), admin_ctx)

        updated = events.complete_finished_events(now=datetime(2026, 8, 20, 12, 0))

        assert updated == [finished['id']]
        assert events.get_event(finished['id'])['status'] == 'Completado'
        assert events.get_event(upcoming['id'])['status'] == 'Activo'
        assert events.get_event(no_time['id'])['status'] == 'Activo'
        assert events.get_event(inactive['id'])['status'] == 'Inactivo'

    def test_nothing_to_do(self, app):
        assert events.complete_finished_events(now=datetime(2026, 1, 1)) == []

    def test_end_is_compared_to_the_minute(self, app, admin_ctx):
        event = events.create_event(event_data(), admin_ctx)
        assert events.complete_finished_events(now=datetime(2026, 8, 15, 1, 0)) == []
        assert events.complete_finished_events(now=datetime(2026, 8, 15, 1, 1)) == [event['id']]
