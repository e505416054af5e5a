"""Event, participation form and inscription routes."""

from __future__ import annotations

from flask import jsonify, request

from patronat.auth import admin_required, current_context
from patronat.blueprints.api import api_bp
from patronat.blueprints.api.helpers import json_body, query_text, require_context
from patronat.services.events import (
    complete_finished_events,
    create_event,
    delete_event,
    get_event,
    get_event_by_slug,
    get_form_fields,
    list_events,
    list_inscriptions,
    set_form_fields,
    submit_inscription,
    update_event,
)
from patronat.services.validation import ValidationError


@api_bp.route('/events', methods=['GET'])
def list_events_route():
    return jsonify({'items': list_events(status=request.args.get('status'), query=query_text())})


@api_bp.route('/events/slug/<slug>', methods=['GET'])
def event_by_slug_route(slug):
    return jsonify({'event': get_event_by_slug(slug)})


@api_bp.route('/events/<event_id>', methods=['GET'])
def get_event_route(event_id):
    return jsonify({'event': get_event(event_id)})


@api_bp.route('/events', methods=['POST'])
@admin_required
def create_event_route():
    return jsonify({'event': create_event(json_body(), require_context())}), 201


@api_bp.route('/events/<event_id>', methods=['PUT', 'PATCH'])
@admin_required
def update_event_route(event_id):
    return jsonify({'event': update_event(event_id, json_body(), require_context())})


@api_bp.route('/events/<event_id>', methods=['DELETE'])
@admin_required
def delete_event_route(event_id):
    delete_event(event_id, require_context())
    return jsonify({'success': True})


@api_bp.route('/events/<event_id>/form-fields', methods=['GET'])
def form_fields_route(event_id):
    get_event(event_id)
    return jsonify({'items': get_form_fields(event_id)})


@api_bp.route('/events/<event_id>/form-fields', methods=['PUT'])
@admin_required
def set_form_fields_route(event_id):
    get_event(event_id)
    fields = json_body().get('fields')
    if not isinstance(fields, list):
        raise ValidationError({'fields': 'mustBeList'})
    return jsonify({'items': set_form_fields(event_id, fields)})


@api_bp.route('/events/<event_id>/inscriptions', methods=['POST'])
def submit_inscription_route(event_id):
    responses = json_body().get('responses')
    if not isinstance(responses, dict):
        raise ValidationError({'responses': 'required'})
    return jsonify({'inscription': submit_inscription(event_id, responses, current_context())}), 201


@api_bp.route('/events/<event_id>/inscriptions', methods=['GET'])
@admin_required
def list_inscriptions_route(event_id):
    get_event(event_id)
    return jsonify({'items': list_inscriptions(event_id)})


@api_bp.route('/events/complete-finished', methods=['POST'])
@admin_required
def complete_finished_events_route():
    return jsonify({'updated': complete_finished_events()})
