"""Crew routes."""

from __future__ import annotations

from flask import jsonify, request
from flask_login import login_required

from patronat.auth import admin_required
from patronat.blueprints.api import api_bp
from patronat.blueprints.api.helpers import json_body, query_text, require_context
from patronat.services.crews import (
    approve_crew,
    crew_games,
    crew_ranking,
    delete_crew,
    get_crew,
    get_crew_by_slug,
    list_crews,
    register_crew,
    set_crew_points,
    update_crew,
)
from patronat.services.store import PermissionDeniedError
from patronat.services.validation import ValidationError


@api_bp.route('/crews', methods=['GET'])
def list_crews_route():
    return jsonify({'items': list_crews(status=request.args.get('status'), query=query_text())})


@api_bp.route('/crews/ranking', methods=['GET'])
def crew_ranking_route():
    return jsonify({'items': crew_ranking(request.args.get('season'))})


@api_bp.route('/crews/slug/<slug>', methods=['GET'])
def crew_by_slug_route(slug):
    return jsonify({'crew': get_crew_by_slug(slug)})


@api_bp.route('/crews/<crew_id>', methods=['GET'])
def get_crew_route(crew_id):
    return jsonify({'crew': get_crew(crew_id)})


@api_bp.route('/crews/<crew_id>/games', methods=['GET'])
def crew_games_route(crew_id):
    return jsonify({'items': crew_games(crew_id)})


@api_bp.route('/crews', methods=['POST'])
@login_required
def register_crew_route():
    return jsonify({'crew': register_crew(json_body(), require_context())}), 201


@api_bp.route('/crews/<crew_id>', methods=['PUT', 'PATCH'])
@login_required
def update_crew_route(crew_id):
    ctx = require_context()
    crew = get_crew(crew_id)
    if not ctx.is_admin and ctx.user_id not in (crew.get('responsable') or []):
        raise PermissionDeniedError(f"User {ctx.user_id} is not responsable of crew {crew_id}")
    return jsonify({'crew': update_crew(crew_id, json_body(), ctx)})


@api_bp.route('/crews/<crew_id>/approve', methods=['POST'])
@admin_required
def approve_crew_route(crew_id):
    crew, registered = approve_crew(crew_id, require_context())
    return jsonify({'crew': crew, 'gamesRegistered': registered})


@api_bp.route('/crews/<crew_id>/games/<game_id>/points', methods=['PUT', 'PATCH'])
@admin_required
def crew_points_route(crew_id, game_id):
    payload = json_body()
    if 'points' not in payload:
        raise ValidationError({'points': 'required'})
    return jsonify({'game': set_crew_points(crew_id, game_id, payload['points'], require_context())})


@api_bp.route('/crews/<crew_id>', methods=['DELETE'])
@admin_required
def delete_crew_route(crew_id):
    delete_crew(crew_id, require_context())
    return jsonify({'success': True})
