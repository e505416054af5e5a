"""Collaborator, participant and media library routes (multipart uploads)."""

from __future__ import annotations

from flask import jsonify, request
from flask_login import login_required

from patronat.auth import admin_required
from patronat.blueprints.api import api_bp
from patronat.blueprints.api.helpers import require_context
from patronat.services import uploads


def _form() -> dict:
    return request.form.to_dict()


@api_bp.route('/collaborators', methods=['GET'])
def list_collaborators_route():
    return jsonify({'items': uploads.list_collaborators()})


@api_bp.route('/collaborators/<collaborator_id>', methods=['GET'])
def get_collaborator_route(collaborator_id):
    return jsonify({'collaborator': uploads.get_collaborator(collaborator_id)})


@api_bp.route('/collaborators', methods=['POST'])
@admin_required
def create_collaborator_route():
    collaborator = uploads.create_collaborator(_form(), request.files.get('file'))
    return jsonify({'collaborator': collaborator}), 201


@api_bp.route('/collaborators/<collaborator_id>', methods=['PUT', 'PATCH'])
@admin_required
def update_collaborator_route(collaborator_id):
    collaborator = uploads.update_collaborator(collaborator_id, _form(), request.files.get('file'))
    return jsonify({'collaborator': collaborator})


@api_bp.route('/collaborators/<collaborator_id>', methods=['DELETE'])
@admin_required
def delete_collaborator_route(collaborator_id):
    uploads.delete_collaborator(collaborator_id)
    return jsonify({'success': True})


@api_bp.route('/participants', methods=['GET'])
def list_participants_route():
    return jsonify({'items': uploads.list_participants()})


@api_bp.route('/participants/<participant_id>', methods=['GET'])
def get_participant_route(participant_id):
    return jsonify({'participant': uploads.get_participant(participant_id)})


@api_bp.route('/participants', methods=['POST'])
@admin_required
def create_participant_route():
    participant = uploads.create_participant(_form(), request.files.get('file'))
    return jsonify({'participant': participant}), 201


@api_bp.route('/participants/<participant_id>', methods=['PUT', 'PATCH'])
@admin_required
def update_participant_route(participant_id):
    participant = uploads.update_participant(participant_id, _form(), request.files.get('file'))
    return jsonify({'participant': participant})


@api_bp.route('/participants/<participant_id>', methods=['DELETE'])
@admin_required
def delete_participant_route(participant_id):
    uploads.delete_participant(participant_id)
    return jsonify({'success': True})


@api_bp.route('/uploads', methods=['GET'])
def list_uploads_route():
    images_only = request.args.get('images', '').lower() in ('1', 'true')
    return jsonify({'items': uploads.list_uploads(images_only=images_only, visibility=request.args.get('visibility'))})


@api_bp.route('/uploads', methods=['POST'])
@login_required
def create_upload_route():
    upload = uploads.create_upload(request.files.get('file'), _form(), require_context())
    return jsonify({'upload': upload}), 201


@api_bp.route('/uploads/<upload_id>', methods=['DELETE'])
@admin_required
def delete_upload_route(upload_id):
    uploads.delete_upload(upload_id)
    return jsonify({'success': True})
