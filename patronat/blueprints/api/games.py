"""Game routes."""

from __future__ import annotations

from flask import jsonify, request

from patronat.auth import admin_required
from patronat.blueprints.api import api_bp
from patronat.blueprints.api.helpers import json_body, query_text, require_context
from patronat.services.crew_sync import reconcile_crew_games
from patronat.services.games import (
    clone_game_for_season,
    create_game,
    delete_game,
    get_game,
    list_games,
    update_game,
    update_game_status,
)
from patronat.services.validation import ValidationError


@api_bp.route('/games', methods=['GET'])
def list_games_route():
    games = list_games(season=request.args.get('season'), status=request.args.get('status'), query=query_text())
    return jsonify({'items': games})


@api_bp.route('/games/<game_id>', methods=['GET'])
def get_game_route(game_id):
    return jsonify({'game': get_game(game_id)})


@api_bp.route('/games', methods=['POST'])
@admin_required
def create_game_route():
    game, report = create_game(json_body(), require_context())
    return jsonify({'game': game, 'sync': report.to_dict()}), 201


@api_bp.route('/games/<game_id>', methods=['PUT', 'PATCH'])
@admin_required
def update_game_route(game_id):
    game, report = update_game(game_id, json_body(), require_context())
    return jsonify({'game': game, 'sync': report.to_dict() if report else None})


@api_bp.route('/games/<game_id>/status', methods=['PUT', 'PATCH'])
@admin_required
def update_game_status_route(game_id):
    status = json_body().get('status')
    if not status:
        raise ValidationError({'status': 'required'})
    game, report = update_game_status(game_id, status, require_context())
    return jsonify({'game': game, 'sync': report.to_dict() if report else None})


@api_bp.route('/games/<game_id>/clone', methods=['POST'])
@admin_required
def clone_game_route(game_id):
    game, report = clone_game_for_season(game_id, json_body().get('season'), require_context())
    return jsonify({'game': game, 'sync': report.to_dict()}), 201


@api_bp.route('/games/<game_id>', methods=['DELETE'])
@admin_required
def delete_game_route(game_id):
    report = delete_game(game_id, require_context())
    return jsonify({'success': True, 'sync': report.to_dict()})


@api_bp.route('/games/reconcile', methods=['POST'])
@admin_required
def reconcile_games_route():
    report = reconcile_crew_games(json_body().get('season'))
    return jsonify({'sync': report.to_dict()})
