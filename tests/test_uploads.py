"""Tests for file uploads, collaborators, participants and the media library."""

import io
from pathlib import Path

import pytest
from werkzeug.datastructures import FileStorage

from patronat.services import uploads
from patronat.services.store import CollectionRef, DocumentRef, NotFoundError, StoreError
from patronat.services.validation import ValidationError

PNG = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64


def upload(name='logo.png', content=PNG, content_type='image/png'):
    return FileStorage(stream=io.BytesIO(content), filename=name, content_type=content_type)


def stored_path(app, record):
    return Path(app.config['UPLOAD_FOLDER']) / record['fullPath']


class TestStoreFile:
    def test_saves_under_folder(self, app):
        stored = uploads.store_file(upload('El meu logo.png'), 'images')

        assert stored['fullPath'].startswith('images/')
        assert stored['url'] == f"/media/{stored['fullPath']}"
        assert stored['size'] == len(PNG)
        assert stored['isImage'] is True
        assert ' ' not in stored['name']
        assert stored_path(app, stored).read_bytes() == PNG

    def test_no_file(self, app):
        with pytest.raises(ValidationError) as exc:
            uploads.store_file(None, 'files')
        assert exc.value.errors == {'file': 'noFile'}

    def test_invalid_type(self, app):
        with pytest.raises(ValidationError) as exc:
            uploads.store_file(upload('notes.txt', b'hola', 'text/plain'), 'files')
        assert exc.value.errors == {'file': 'invalidType'}

    def test_too_large(self, app):
        app.config['MAX_UPLOAD_SIZE'] = 16
        with pytest.raises(ValidationError) as exc:
            uploads.store_file(upload(), 'images')
        assert exc.value.errors == {'file': 'tooLarge'}

    def test_unknown_folder(self, app):
        with pytest.raises(ValueError):
            uploads.store_file(upload(), 'secrets')

    def test_delete_missing_file_is_not_an_error(self, app):
        assert uploads.delete_file('images/gone.png') is False
        assert uploads.delete_file(None) is False

    def test_paths_stay_inside_upload_folder(self, app):
        with pytest.raises(PermissionError):
            uploads.resolve_path('../outside.txt')


class TestCollaborators:
    def test_create_requires_name_and_image(self, app):
        with pytest.raises(ValidationError):
            uploads.create_collaborator({'name': ' '}, upload())
        with pytest.raises(ValidationError) as exc:
            uploads.create_collaborator({'name': 'Forn Pujol'}, upload('menu.pdf', b'%PDF', 'application/pdf'))
        assert exc.value.errors == {'file': 'invalidType'}

    def test_lifecycle_removes_files(self, app):
        created = uploads.create_collaborator({'name': 'Forn Pujol', 'web': 'https://forn.example.com'}, upload())
        first = stored_path(app, created)
        assert first.is_file()
        assert [c['name'] for c in uploads.list_collaborators()] == ['Forn Pujol']

        updated = uploads.update_collaborator(created['id'], {'name': 'Forn Pujol i Fills'}, upload('nou.png'))
        assert updated['name'] == 'Forn Pujol i Fills'
        assert updated['fullPath'] != created['fullPath']
        assert not first.exists()

        uploads.delete_collaborator(created['id'])
        assert not stored_path(app, updated).exists()
        with pytest.raises(NotFoundError):
            uploads.get_collaborator(created['id'])

    def test_update_without_file_keeps_image(self, app):
        created = uploads.create_collaborator({'name': 'Bar Centre'}, upload())
        updated = uploads.update_collaborator(created['id'], {'email': 'bar@example.com'})

        assert updated['fullPath'] == created['fullPath']
        assert updated['email'] == 'bar@example.com'


class TestParticipants:
    def test_sorted_by_name(self, app):
        uploads.create_participant({'name': 'Xaranga'}, upload())
        uploads.create_participant({'name': 'batucada', 'description': 'Percussió'}, upload())

        assert [p['name'] for p in uploads.list_participants()] == ['batucada', 'Xaranga']


class TestMediaLibrary:
    def test_image_upload(self, app, admin_ctx):
        record = uploads.create_upload(upload(), {'tags': 'cartell, 2026 ,', 'visibility': 'private'}, admin_ctx)

        assert record['fullPath'].startswith('images/')
        assert record['tags'] == ['cartell', '2026']
        assert record['visibility'] == 'private'
        assert record['userId'] == 'admin-1'
        assert record['name'].endswith('logo.png')

    def test_document_upload(self, app, admin_ctx):
        record = uploads.create_upload(
            upload('acta.pdf', b'%PDF-1.4', 'application/pdf'),
            {'name': 'Acta assemblea', 'tags': ['actes']},
            admin_ctx,
        )

        assert record['fullPath'].startswith('files/')
        assert record['isImage'] is False
        assert record['visibility'] == 'public'

    def test_list_filters(self, app, admin_ctx):
        uploads.create_upload(upload(), {'visibility': 'private'}, admin_ctx)
        uploads.create_upload(upload('acta.pdf', b'%PDF', 'application/pdf'), {}, admin_ctx)

        assert len(uploads.list_uploads()) == 2
        assert [u['type'] for u in uploads.list_uploads(images_only=True)] == ['image/png']
        assert [u['type'] for u in uploads.list_uploads(visibility='public')] == ['application/pdf']

    def test_delete_upload(self, app, admin_ctx):
        record = uploads.create_upload(upload(), {}, admin_ctx)
        uploads.delete_upload(record['id'])

        assert uploads.list_uploads() == []
        assert not stored_path(app, record).exists()


class TestFailedWrites:
    @pytest.fixture
    def failing(self, monkeypatch):
        def fail(*args, **kwargs):
            raise StoreError('write rejected')

        def patch(cls, method):
            monkeypatch.setattr(cls, method, fail)
        return patch

    def folder_files(self, app, folder):
        directory = Path(app.config['UPLOAD_FOLDER']) / folder
        return sorted(p.name for p in directory.iterdir()) if directory.exists() else []

    def test_replacement_keeps_old_file_when_update_fails(self, app, failing):
        created = uploads.create_collaborator({'name': 'Forn Pujol'}, upload('a.png'))
        failing(DocumentRef, 'update')

        with pytest.raises(StoreError):
            uploads.update_collaborator(created['id'], {'name': 'Forn'}, upload('b.png'))

        assert uploads.get_collaborator(created['id'])['fullPath'] == created['fullPath']
        assert uploads.resolve_path(created['fullPath']).is_file()
        assert self.folder_files(app, 'collaborators') == [Path(created['fullPath']).name]

    def test_failed_create_leaves_no_orphan(self, app, failing):
        failing(CollectionRef, 'add')

        with pytest.raises(StoreError):
            uploads.create_participant({'name': 'Xaranga'}, upload())

        assert self.folder_files(app, 'participants') == []

    def test_failed_media_upload_leaves_no_orphan(self, app, admin_ctx, failing):
        failing(CollectionRef, 'add')

        with pytest.raises(StoreError):
            uploads.create_upload(upload(), {}, admin_ctx)

        assert self.folder_files(app, 'images') == []
