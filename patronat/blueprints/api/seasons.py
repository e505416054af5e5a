"""Season routes."""

from __future__ import annotations

from flask import jsonify

from patronat.auth import admin_required
from patronat.blueprints.api import api_bp
from patronat.blueprints.api.helpers import json_body, require_context
from patronat.services.payments import get_active_season, get_all_seasons
from patronat.services.seasons import (
    activate_season,
    create_season,
    deactivate_season,
    delete_season,
    get_season,
    list_seasons,
)


@api_bp.route('/seasons', methods=['GET'])
@admin_required
def list_seasons_route():
    return jsonify({'items': list_seasons(), **get_all_seasons()})


@api_bp.route('/seasons/active', methods=['GET'])
def active_season_route():
    return jsonify({'season': get_active_season()})


@api_bp.route('/seasons/<season_id>', methods=['GET'])
@admin_required
def get_season_route(season_id):
    return jsonify({'season': get_season(season_id)})


@api_bp.route('/seasons', methods=['POST'])
@admin_required
def create_season_route():
    season, report = create_season(json_body(), require_context())
    return jsonify({'season': season, 'report': report.to_dict() if report else None}), 201


@api_bp.route('/seasons/<season_id>/activate', methods=['POST'])
@admin_required
def activate_season_route(season_id):
    create_payments = json_body().get('createPayments', True) is not False
    report = activate_season(season_id, require_context(), create_payments=create_payments)
    return jsonify({'season': get_season(season_id), 'report': report.to_dict()})


@api_bp.route('/seasons/<season_id>/deactivate', methods=['POST'])
@admin_required
def deactivate_season_route(season_id):
    return jsonify({'season': deactivate_season(season_id, require_context())})


@api_bp.route('/seasons/<season_id>', methods=['DELETE'])
@admin_required
def delete_season_route(season_id):
    delete_season(season_id, require_context())
    return jsonify({'success': True})
