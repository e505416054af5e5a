"""Change history: who changed which entity, and how."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flask import current_app

from patronat.models import CHANGES, ChangeType
from patronat.services.store import DESCENDING, SERVER_TIMESTAMP, StoreError, get_store
from patronat.services.search import filter_items

if TYPE_CHECKING:
    from patronat.auth import SessionContext

DEFAULT_PAGE_SIZE = 20

# Bookkeeping fields that never count as a change
IGNORED_FIELDS = {'createdAt', 'updatedAt', 'lastUpdateDate', 'userId'}


def diff_changes(previous: dict | None, new: dict | None) -> dict[str, dict[str, Any]]:
    """
    Compare two versions of a document.

    Returns:
        {field: {'previousValue': ..., 'newValue': ...}} for every field whose
        value differs, ignoring bookkeeping timestamps.
    """
    previous = previous or {}
    new = new or {}
    detail = {}
    for field in sorted(set(previous) | set(new)):
        if field in IGNORED_FIELDS:
            continue
        before = previous.get(field)
        after = new.get(field)
        if before != after:
            detail[field] = {'previousValue': before, 'newValue': after}
    return detail


def record_change(
    entity_type: str,
    entity_id: str,
    entity_name: str,
    change_type: ChangeType | str,
    ctx: SessionContext,
    previous: dict | None = None,
    new: dict | None = None,
) -> str | None:
    """
    Write a change record. Failures are logged and never reach the caller.

    Args:
        entity_type: Kind of entity (e.g. 'partner', 'game')
        entity_id: Identifier of the entity
        entity_name: Human readable name shown in the history list
        change_type: create, update or delete
        ctx: Acting user
        previous: Document before the change
        new: Document after the change

    Returns:
        The id of the change record, or None when nothing was written
    """
    change_type = change_type.value if isinstance(change_type, ChangeType) else change_type
    detail = diff_changes(previous, new)
    if change_type == ChangeType.UPDATE.value and not detail:
        return None

    try:
        ref = get_store().collection(CHANGES).add({
            'entityType': entity_type,
            'entityId': entity_id,
            'entityName': entity_name,
            'changeType': change_type,
            'changesDetail': detail,
            'modifiedBy': ctx.as_actor(),
            'timestamp': SERVER_TIMESTAMP,
        })
        return ref.id
    except StoreError as e:
        current_app.logger.error(f"Failed to record {change_type} of {entity_type} {entity_id}: {e}")
        return None


def _searchable(change: dict) -> dict:
    detail = change.get('changesDetail') or {}
    values = []
    for field, values_pair in detail.items():
        values.append(field)
        values.append(str(values_pair.get('previousValue', '')))
        values.append(str(values_pair.get('newValue', '')))
    return {**change, '_detail': values}


def list_changes(
    entity_type: str | None = None,
    entity_id: str | None = None,
    query: str = '',
    page: int = 1,
    per_page: int = DEFAULT_PAGE_SIZE,
) -> dict:
    """Newest-first page of change records, optionally filtered and searched."""
    ref = get_store().collection(CHANGES)
    if entity_type:
        ref = ref.where('entityType', '==', entity_type)
    if entity_id:
        ref = ref.where('entityId', '==', entity_id)
    changes = [{'id': snap.id, **snap.to_dict()} for snap in ref.order_by('timestamp', DESCENDING).get()]

    if query:
        matches = filter_items(
            [_searchable(change) for change in changes],
            query,
            search_fields=('entityName', 'entityType', 'changeType', 'modifiedBy.name'),
            array_fields=('_detail',),
        )
        changes = [{k: v for k, v in change.items() if k != '_detail'} for change in matches]

    page = max(page, 1)
    total = len(changes)
    start = (page - 1) * per_page
    return {
        'items': changes[start:start + per_page],
        'page': page,
        'perPage': per_page,
        'total': total,
        'pages': (total + per_page - 1) // per_page,
    }


__all__ = ['diff_changes', 'record_change', 'list_changes', 'DEFAULT_PAGE_SIZE']
