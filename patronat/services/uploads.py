"""Object storage for uploaded files and the documents that reference them."""

from __future__ import annotations

import os
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from flask import current_app
from werkzeug.datastructures import FileStorage

from patronat.models import COLLABORATORS, PARTICIPANTS, UPLOADS
from patronat.services.store import SERVER_TIMESTAMP, NotFoundError, StoreError, get_store
from patronat.services.validation import (
    DEFAULT_FILE_POLICY,
    IMAGE_POLICY,
    FilePolicy,
    ValidationError,
    is_image,
    sanitize_filename,
    validate_file,
)

if TYPE_CHECKING:
    from patronat.auth import SessionContext

FOLDERS = ('collaborators', 'participants', 'images', 'files', 'staff')
MEDIA_URL_PREFIX = '/media'


def upload_root() -> Path:
    """Return (and ensure) the storage root."""
    configured = current_app.config.get('UPLOAD_FOLDER')
    root = Path(configured) if configured else Path(current_app.instance_path) / 'uploads'
    root.mkdir(parents=True, exist_ok=True)
    return root


def _ensure_within_root(path: Path) -> None:
    root = upload_root().resolve()
    resolved = path.resolve()
    if root != resolved and root not in resolved.parents:
        raise PermissionError('Attempted to access a path outside the upload folder')


def _determine_size(file: FileStorage) -> int:
    stream = file.stream
    current = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(current)
    return size


def _policy(policy: FilePolicy) -> FilePolicy:
    return FilePolicy(policy.allowed_types, current_app.config.get('MAX_UPLOAD_SIZE', policy.max_size))


def store_file(file: FileStorage | None, folder: str, policy: FilePolicy = DEFAULT_FILE_POLICY) -> dict:
    """
    Validate and save an uploaded file under ``folder``.

    Args:
        file: The uploaded file from the request
        folder: One of FOLDERS
        policy: Accepted types and size limit

    Returns:
        {'url', 'fullPath', 'name', 'size', 'type', 'isImage'}

    Raises:
        ValidationError: with 'noFile', 'invalidType' or 'tooLarge' under 'file'
    """
    if folder not in FOLDERS:
        raise ValueError(f"Unknown upload folder: {folder}")
    if not file or not file.filename:
        raise ValidationError({'file': 'noFile'})

    size = _determine_size(file)
    ok, error = validate_file(file.mimetype, size, _policy(policy))
    if not ok:
        raise ValidationError({'file': error})

    name = f"{uuid.uuid4().hex[:12]}_{sanitize_filename(file.filename)}"
    target_dir = upload_root() / folder
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / name
    _ensure_within_root(target)

    file.stream.seek(0)
    file.save(str(target))
    full_path = f"{folder}/{name}"
    return {
        'url': f"{MEDIA_URL_PREFIX}/{full_path}",
        'fullPath': full_path,
        'name': name,
        'size': size,
        'type': file.mimetype,
        'isImage': is_image(file.mimetype),
    }


def resolve_path(full_path: str) -> Path:
    target = upload_root() / full_path
    _ensure_within_root(target)
    return target


def delete_file(full_path: str | None) -> bool:
    """Best-effort removal of a stored file. Failures are logged, never raised."""
    if not full_path:
        return False
    if full_path.startswith(f"{MEDIA_URL_PREFIX}/"):
        full_path = full_path[len(MEDIA_URL_PREFIX) + 1:]
    try:
        target = resolve_path(full_path)
        if target.is_file():
            target.unlink()
            return True
        current_app.logger.warning(f"File {full_path} was already gone")
    except (OSError, PermissionError) as e:
        current_app.logger.error(f"Could not delete file {full_path}: {e}")
    return False


@contextmanager
def discard_on_failure(full_path: str | None):
    """Remove a freshly stored file when the document write that references it fails."""
    try:
        yield
    except StoreError:
        current_app.logger.warning(f"Write failed; discarding uploaded file {full_path}")
        delete_file(full_path)
        raise


# ---------------------------------------------------------------------------
# Collaborators and participants
# ---------------------------------------------------------------------------

_GALLERY_FIELDS = {
    COLLABORATORS: ('name', 'email', 'web'),
    PARTICIPANTS: ('name', 'description'),
}


def _get(collection: str, doc_id: str) -> dict:
    snap = get_store().document(f"{collection}/{doc_id}").get()
    if not snap.exists:
        raise NotFoundError(f"{collection} {doc_id} not found")
    return {'id': snap.id, **snap.to_dict()}


def _list(collection: str) -> list[dict]:
    items = [{'id': snap.id, **snap.to_dict()} for snap in get_store().collection(collection).get()]
    items.sort(key=lambda item: (item.get('name') or '').lower())
    return items


def _create(collection: str, data: dict, file: FileStorage | None) -> dict:
    record = {key: (data.get(key) or '').strip() for key in _GALLERY_FIELDS[collection] if key in data}
    if not record.get('name'):
        raise ValidationError({'name': 'required'})
    stored = store_file(file, collection, IMAGE_POLICY)
    record.update({'url': stored['url'], 'fullPath': stored['fullPath'], 'createdAt': SERVER_TIMESTAMP})
    with discard_on_failure(stored['fullPath']):
        ref = get_store().collection(collection).add(record)
    return _get(collection, ref.id)


def _update(collection: str, doc_id: str, data: dict, file: FileStorage | None) -> dict:
    previous = _get(collection, doc_id)
    changes = {key: (data.get(key) or '').strip() for key in _GALLERY_FIELDS[collection] if key in data}
    if 'name' in changes and not changes['name']:
        raise ValidationError({'name': 'required'})
    replaced = None
    if file and file.filename:
        stored = store_file(file, collection, IMAGE_POLICY)
        changes.update({'url': stored['url'], 'fullPath': stored['fullPath']})
        replaced = stored['fullPath']
    changes['updatedAt'] = SERVER_TIMESTAMP
    with discard_on_failure(replaced):
        get_store().document(f"{collection}/{doc_id}").update(changes)

    # The old file goes only once the document points at the new one
    if replaced:
        delete_file(previous.get('fullPath') or previous.get('url'))
    return _get(collection, doc_id)


def _delete(collection: str, doc_id: str) -> None:
    previous = _get(collection, doc_id)
    get_store().document(f"{collection}/{doc_id}").delete()
    delete_file(previous.get('fullPath') or previous.get('url'))


def list_collaborators() -> list[dict]:
    return _list(COLLABORATORS)


def get_collaborator(collaborator_id: str) -> dict:
    return _get(COLLABORATORS, collaborator_id)


def create_collaborator(data: dict, file: FileStorage | None) -> dict:
    return _create(COLLABORATORS, data, file)


def update_collaborator(collaborator_id: str, data: dict, file: FileStorage | None = None) -> dict:
    return _update(COLLABORATORS, collaborator_id, data, file)


def delete_collaborator(collaborator_id: str) -> None:
    _delete(COLLABORATORS, collaborator_id)


def list_participants() -> list[dict]:
    return _list(PARTICIPANTS)


def get_participant(participant_id: str) -> dict:
    return _get(PARTICIPANTS, participant_id)


def create_participant(data: dict, file: FileStorage | None) -> dict:
    return _create(PARTICIPANTS, data, file)


def update_participant(participant_id: str, data: dict, file: FileStorage | None = None) -> dict:
    return _update(PARTICIPANTS, participant_id, data, file)


def delete_participant(participant_id: str) -> None:
    _delete(PARTICIPANTS, participant_id)


# ---------------------------------------------------------------------------
# Media library
# ---------------------------------------------------------------------------

def _split_tags(tags) -> list[str]:
    if isinstance(tags, list):
        return [str(tag).strip() for tag in tags if str(tag).strip()]
    return [tag.strip() for tag in (tags or '').split(',') if tag.strip()]


def create_upload(file: FileStorage | None, meta: dict, ctx: SessionContext) -> dict:
    """Store a gallery or document upload with its metadata."""
    folder = 'images' if file is not None and is_image(file.mimetype) else 'files'
    stored = store_file(file, folder)
    record = {
        'name': (meta.get('name') or '').strip() or stored['name'],
        'description': (meta.get('description') or '').strip(),
        'category': meta.get('category') or '',
        'tags': _split_tags(meta.get('tags')),
        'visibility': meta.get('visibility') or 'public',
        'url': stored['url'],
        'size': stored['size'],
        'type': stored['type'],
        'isImage': stored['isImage'],
        'fullPath': stored['fullPath'],
        'userId': ctx.user_id,
        'createdAt': SERVER_TIMESTAMP,
    }
    with discard_on_failure(stored['fullPath']):
        ref = get_store().collection(UPLOADS).add(record)
    current_app.logger.info(f"User {ctx.user_id} uploaded {record['fullPath']} ({record['size']} bytes)")
    return _get(UPLOADS, ref.id)


def list_uploads(images_only: bool = False, visibility: str | None = None) -> list[dict]:
    query = get_store().collection(UPLOADS)
    if images_only:
        query = query.where('isImage', '==', True)
    if visibility:
        query = query.where('visibility', '==', visibility)
    uploads = [{'id': snap.id, **snap.to_dict()} for snap in query.get()]
    uploads.sort(key=lambda item: str(item.get('createdAt') or ''), reverse=True)
    return uploads


def delete_upload(upload_id: str) -> None:
    _delete(UPLOADS, upload_id)


__all__ = [
    'FOLDERS',
    'create_collaborator',
    'create_participant',
    'create_upload',
    'delete_collaborator',
    'delete_file',
    'discard_on_failure',
    'delete_participant',
    'delete_upload',
    'get_collaborator',
    'get_participant',
    'list_collaborators',
    'list_participants',
    'list_uploads',
    'resolve_path',
    'store_file',
    'update_collaborator',
    'update_participant',
]
