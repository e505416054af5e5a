"""Users, change history, notifications and CSRF token routes."""

from __future__ import annotations

from flask import jsonify, request
from flask_login import login_required
from flask_wtf.csrf import generate_csrf

from patronat.auth import admin_required
from patronat.blueprints.api import api_bp
from patronat.blueprints.api.helpers import int_arg, json_body, query_text, require_context
from patronat.services.history import list_changes
from patronat.services.notifications import send_bulk_notification
from patronat.services.store import NotFoundError, PermissionDeniedError
from patronat.services.users import get_user, list_users, serialize_user, update_user


@api_bp.route('/csrf-token', methods=['GET'])
def csrf_token_route():
    return jsonify({'csrfToken': generate_csrf()})


@api_bp.route('/users', methods=['GET'])
@admin_required
def list_users_route():
    return jsonify({'items': list_users()})


@api_bp.route('/users/<user_id>', methods=['GET'])
@login_required
def get_user_route(user_id):
    ctx = require_context()
    if not ctx.is_admin and ctx.user_id != user_id:
        raise PermissionDeniedError(f"User {ctx.user_id} cannot read user {user_id}")
    data = get_user(user_id)
    if data is None:
        raise NotFoundError(f"User {user_id} not found")
    return jsonify({'user': serialize_user(user_id, data)})


@api_bp.route('/users/<user_id>', methods=['PUT', 'PATCH'])
@login_required
def update_user_route(user_id):
    ctx = require_context()
    if not ctx.is_admin and ctx.user_id != user_id:
        raise PermissionDeniedError(f"User {ctx.user_id} cannot modify user {user_id}")
    data = update_user(user_id, json_body(), allow_admin_fields=ctx.is_admin)
    return jsonify({'user': serialize_user(user_id, data)})


@api_bp.route('/changes', methods=['GET'])
@admin_required
def list_changes_route():
    page = list_changes(
        entity_type=request.args.get('entityType'),
        entity_id=request.args.get('entityId'),
        query=query_text() or '',
        page=int_arg('page', 1),
    )
    return jsonify(page)


@api_bp.route('/notifications/bulk', methods=['POST'])
@admin_required
def bulk_notification_route():
    payload = json_body()
    result = send_bulk_notification(
        payload.get('recipientType'),
        payload.get('subject'),
        payload.get('message'),
        crew_ids=payload.get('crewIds'),
    )
    return jsonify(result)
