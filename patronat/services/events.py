"""Events, their participation form fields, and inscriptions."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from flask import current_app

from patronat.models import EVENTS, FORM_FIELDS, INSCRIPTIONS, ChangeType, EventStatus
from patronat.services.history import record_change
from patronat.services.search import search_collection
from patronat.services.store import MAX_BATCH_OPERATIONS, SERVER_TIMESTAMP, NotFoundError, get_store
from patronat.services.validation import ValidationError, generate_slug, normalize_date

if TYPE_CHECKING:
    from patronat.auth import SessionContext

EVENT_FIELDS = (
    'title', 'description', 'startDate', 'startTime', 'endDate', 'endTime', 'location',
    'capacity', 'price', 'minAge', 'collaborators', 'participants', 'tags', 'category',
    'eventURL', 'imageURL', 'organizer', 'allowCars', 'hasBar', 'status', 'needForm',
)
FIELD_TYPES = ('text', 'email', 'phone', 'number', 'date', 'textarea', 'select', 'checkbox')
PHONE_FIELD_IDS = ('tel', 'telefono')
INSCRIPTION_PENDING = 'pendiente'


def _clean(data: dict, partial: bool = False) -> dict:
    errors: dict[str, str] = {}
    cleaned = {key: data[key] for key in EVENT_FIELDS if key in data}

    if not partial or 'title' in cleaned:
        if not str(cleaned.get('title') or '').strip():
            errors['title'] = 'required'
        else:
            cleaned['title'] = cleaned['title'].strip()
            cleaned['slug'] = generate_slug(cleaned['title'])
    for key in ('startDate', 'endDate'):
        if key in cleaned and cleaned[key]:
            parsed = normalize_date(cleaned[key])
            if parsed is None:
                errors[key] = 'invalidDate'
            else:
                cleaned[key] = parsed.isoformat()
    for key in ('startTime', 'endTime'):
        if key in cleaned and cleaned[key]:
            try:
                datetime.strptime(cleaned[key], '%H:%M')
            except (TypeError, ValueError):
                errors[key] = 'invalidTime'
    for key in ('capacity', 'price', 'minAge'):
        if key in cleaned and cleaned[key] not in (None, ''):
            try:
                cleaned[key] = float(cleaned[key])
            except (TypeError, ValueError):
                errors[key] = 'invalidNumber'
    for key in ('allowCars', 'hasBar', 'needForm'):
        if key in cleaned:
            cleaned[key] = bool(cleaned[key])
    for key in ('tags', 'collaborators', 'participants'):
        if key in cleaned and not isinstance(cleaned[key], list):
            errors[key] = 'mustBeList'
    if 'status' in cleaned and cleaned['status'] not in {s.value for s in EventStatus}:
        errors['status'] = 'invalidStatus'
    if cleaned.get('startDate') and cleaned.get('endDate') and cleaned['endDate'] < cleaned['startDate']:
        errors['endDate'] = 'endBeforeStart'

    if errors:
        raise ValidationError(errors)
    return cleaned


def get_event(event_id: str) -> dict:
    snap = get_store().document(f"{EVENTS}/{event_id}").get()
    if not snap.exists:
        raise NotFoundError(f"Event {event_id} not found")
    return {'id': snap.id, **snap.to_dict()}


def get_event_by_slug(slug: str) -> dict:
    matches = get_store().collection(EVENTS).where('slug', '==', slug).limit(1).get()
    if not matches:
        raise NotFoundError(f"Event {slug} not found")
    return {'id': matches[0].id, **matches[0].to_dict()}


def list_events(status: str | None = None, query: str | None = None) -> list[dict]:
    ref = get_store().collection(EVENTS)
    if status:
        ref = ref.where('status', '==', status)
    events = [{'id': snap.id, **snap.to_dict()} for snap in ref.get()]
    events.sort(key=lambda e: (e.get('startDate') or '', e.get('startTime') or ''))
    return search_collection(EVENTS, events, query)


def create_event(data: dict, ctx: SessionContext) -> dict:
    record = _clean(data)
    record.setdefault('status', EventStatus.ACTIVE.value)
    record.setdefault('needForm', False)
    record.update({'createdAt': SERVER_TIMESTAMP, 'updatedAt': SERVER_TIMESTAMP, 'userId': ctx.user_id})
    ref = get_store().collection(EVENTS).add(record)

    if data.get('formFields'):
        set_form_fields(ref.id, data['formFields'])
    event = get_event(ref.id)
    record_change('event', ref.id, event['title'], ChangeType.CREATE, ctx, new=event)
    return event


def update_event(event_id: str, data: dict, ctx: SessionContext) -> dict:
    previous = get_event(event_id)
    changes = _clean(data, partial=True)
    changes['updatedAt'] = SERVER_TIMESTAMP
    get_store().document(f"{EVENTS}/{event_id}").update(changes)
    if 'formFields' in data:
        set_form_fields(event_id, data['formFields'] or [])
    event = get_event(event_id)
    record_change('event', event_id, event['title'], ChangeType.UPDATE, ctx, previous=previous, new=event)
    return event


def delete_event(event_id: str, ctx: SessionContext) -> None:
    event = get_event(event_id)
    store = get_store()
    store.recursive_delete(store.document(f"{EVENTS}/{event_id}"))
    record_change('event', event_id, event.get('title', ''), ChangeType.DELETE, ctx, previous=event)


# ---------------------------------------------------------------------------
# Participation form
# ---------------------------------------------------------------------------

def set_form_fields(event_id: str, fields: list[dict]) -> list[dict]:
    """Replace the form fields of an event; ``order`` follows list position (1-based)."""
    errors = {}
    for index, field in enumerate(fields):
        if not field.get('fieldId') or not field.get('label'):
            errors[f"formFields[{index}]"] = 'required'
    if errors:
        raise ValidationError(errors)

    store = get_store()
    collection = store.collection(f"{EVENTS}/{event_id}/{FORM_FIELDS}")
    batch = store.batch()
    for existing in collection.get():
        batch.delete(existing.reference)
    for index, field in enumerate(fields):
        batch.set(collection.document(), {
            'fieldId': field['fieldId'],
            'label': field['label'],
            'type': field.get('type') or 'text',
            'required': bool(field.get('required', False)),
            'options': field.get('options') or [],
            'order': index + 1,
        })
    batch.commit()
    return get_form_fields(event_id)


def get_form_fields(event_id: str) -> list[dict]:
    """Form fields ordered by ``order``; phone-like ids always render as phone inputs."""
    snapshots = get_store().collection(f"{EVENTS}/{event_id}/{FORM_FIELDS}").get()
    fields = []
    for snap in snapshots:
        field = {'id': snap.id, **snap.to_dict()}
        if str(field.get('fieldId', '')).lower() in PHONE_FIELD_IDS:
            field['type'] = 'phone'
        fields.append(field)
    fields.sort(key=lambda f: f.get('order') or 0)
    return fields


def submit_inscription(event_id: str, responses: dict, ctx: SessionContext | None = None) -> dict:
    """Store the answers to an event's participation form."""
    event = get_event(event_id)
    if not event.get('needForm'):
        raise ValidationError({'event': 'noFormRequired'})

    fields = get_form_fields(event_id)
    responses = responses or {}
    missing = [
        field for field in fields
        if field.get('required') and not str(responses.get(field['fieldId']) or '').strip()
    ]
    if missing:
        raise ValidationError(
            {field['fieldId']: 'required' for field in missing},
            f"Missing required fields: {', '.join(field['label'] for field in missing)}",
        )

    known = {field['fieldId'] for field in fields}
    record = {
        'eventId': event_id,
        'eventTitle': event.get('title'),
        'eventSlug': event.get('slug'),
        'responses': {key: value for key, value in responses.items() if key in known},
        'createdAt': SERVER_TIMESTAMP,
        'status': INSCRIPTION_PENDING,
        'submitBy': ctx.user_id if ctx else None,
    }
    ref = get_store().collection(INSCRIPTIONS).add(record)
    return {'id': ref.id, **ref.get().to_dict()}


def list_inscriptions(event_id: str) -> list[dict]:
    snapshots = get_store().collection(INSCRIPTIONS).where('eventId', '==', event_id).get()
    return [{'id': snap.id, **snap.to_dict()} for snap in snapshots]


# ---------------------------------------------------------------------------
# Scheduled job
# ---------------------------------------------------------------------------

def _event_end(event: dict) -> datetime | None:
    end_date = event.get('endDate')
    end_time = event.get('endTime')
    if not end_date or not end_time:
        return None
    try:
        return datetime.strptime(f"{end_date} {end_time}", '%Y-%m-%d %H:%M')
    except (TypeError, ValueError):
        return None


def complete_finished_events(now: datetime | None = None) -> list[str]:
    """
    Mark active events whose end date and time have passed as completed.

    Event times are local wall-clock times, compared with a naive ``now``.

    Returns:
        Ids of the events that were updated
    """
    now = now or datetime.now()
    store = get_store()
    finished = []
    for snap in store.collection(EVENTS).where('status', '==', EventStatus.ACTIVE.value).get():
        end = _event_end(snap.to_dict())
        if end is not None and end < now:
            finished.append(snap)

    if not finished:
        current_app.logger.info('No events need a status update')
        return []

    for start in range(0, len(finished), MAX_BATCH_OPERATIONS):
        batch = store.batch()
        for snap in finished[start:start + MAX_BATCH_OPERATIONS]:
            current_app.logger.info(f"Event {snap.id} ({snap.get('title')}) has ended; marking as completed")
            batch.update(snap.reference, {'status': EventStatus.COMPLETED.value, 'updatedAt': SERVER_TIMESTAMP})
        batch.commit()
    current_app.logger.info(f"Marked {len(finished)} events as completed")
    return [snap.id for snap in finished]


__all__ = [
    'complete_finished_events',
    'create_event',
    'delete_event',
    'get_event',
    'get_event_by_slug',
    'get_form_fields',
    'list_events',
    'list_inscriptions',
    'set_form_fields',
    'submit_inscription',
    'update_event',
]
