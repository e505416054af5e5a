"""Serves stored files from the upload folder."""

from __future__ import annotations

from flask import Blueprint, abort, send_from_directory

from patronat.services.uploads import FOLDERS, MEDIA_URL_PREFIX, upload_root

files_bp = Blueprint('files', __name__, url_prefix=MEDIA_URL_PREFIX)


@files_bp.route('/<folder>/<path:filename>')
def serve_file(folder, filename):
    if folder not in FOLDERS:
        abort(404)
    return send_from_directory(upload_root() / folder, filename)
