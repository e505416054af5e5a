"""Partner and payment routes."""

from __future__ import annotations

import io

from flask import jsonify, request, send_file

from patronat.auth import admin_required, current_context
from patronat.blueprints.api import api_bp
from patronat.blueprints.api.helpers import json_body, query_text, require_context
from patronat.forms import validate_payload
from patronat.forms.registration import PartnerForm
from patronat.services import payments
from patronat.services.export import XLSX_MIMETYPE, export_partner, export_partners
from patronat.services.partners import (
    approve_partner,
    delete_partner,
    get_partner,
    list_partners,
    register_partner,
    reject_partner,
    update_partner,
)


@api_bp.route('/partners', methods=['POST'])
def register_partner_route():
    payload = json_body()
    validate_payload(PartnerForm, payload)
    partner = register_partner(payload, current_context())
    return jsonify({'partner': partner}), 201


@api_bp.route('/partners', methods=['GET'])
@admin_required
def list_partners_route():
    partners = list_partners(status=request.args.get('status'), query=query_text())
    return jsonify({'items': partners})


@api_bp.route('/partners/export', methods=['GET'])
@admin_required
def export_partners_route():
    filename, content = export_partners()
    return send_file(io.BytesIO(content), mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)


@api_bp.route('/partners/<partner_id>', methods=['GET'])
@admin_required
def get_partner_route(partner_id):
    return jsonify({'partner': get_partner(partner_id)})


@api_bp.route('/partners/<partner_id>', methods=['PUT', 'PATCH'])
@admin_required
def update_partner_route(partner_id):
    partner = update_partner(partner_id, json_body(), require_context())
    return jsonify({'partner': partner})


@api_bp.route('/partners/<partner_id>', methods=['DELETE'])
@admin_required
def delete_partner_route(partner_id):
    delete_partner(partner_id, require_context())
    return jsonify({'success': True})


@api_bp.route('/partners/<partner_id>/approve', methods=['POST'])
@admin_required
def approve_partner_route(partner_id):
    result = approve_partner(partner_id, require_context())
    return jsonify(result.to_dict())


@api_bp.route('/partners/<partner_id>/reject', methods=['POST'])
@admin_required
def reject_partner_route(partner_id):
    return jsonify({'partner': reject_partner(partner_id, require_context())})


@api_bp.route('/partners/<partner_id>/export', methods=['GET'])
@admin_required
def export_partner_route(partner_id):
    filename, content = export_partner(partner_id)
    return send_file(io.BytesIO(content), mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

@api_bp.route('/partners/<partner_id>/payments', methods=['GET'])
@admin_required
def partner_payments_route(partner_id):
    get_partner(partner_id)
    return jsonify(payments.get_partner_payments_by_status(partner_id))


@api_bp.route('/partners/<partner_id>/payments/history', methods=['GET'])
@admin_required
def partner_payment_history_route(partner_id):
    history = payments.get_partner_payment_history(partner_id, request.args.get('season'))
    return jsonify({'items': history})


@api_bp.route('/partners/<partner_id>/payments/season/<season_year>', methods=['GET'])
@admin_required
def partner_season_payment_route(partner_id, season_year):
    fallback = request.args.get('fallback', 'true').lower() != 'false'
    payment = payments.get_partner_payments_for_season(partner_id, season_year, fallback_to_all=fallback)
    return jsonify({'payment': payment})


@api_bp.route('/partners/<partner_id>/payments/diagnose', methods=['GET'])
@admin_required
def diagnose_payments_route(partner_id):
    return jsonify({'items': payments.diagnose_season_year_issue(partner_id)})


@api_bp.route('/partners/<partner_id>/payments', methods=['POST'])
@admin_required
def create_payment_route(partner_id):
    result = payments.create_payment_for_partner(partner_id, json_body(), require_context().user_id)
    return jsonify(result.to_dict()), 201 if result.created else 200


@api_bp.route('/partners/<partner_id>/payments/<payment_id>', methods=['PUT', 'PATCH'])
@admin_required
def update_payment_route(partner_id, payment_id):
    payment = payments.update_partner_payment(partner_id, payment_id, json_body(), require_context().user_id)
    return jsonify({'payment': payment})


@api_bp.route('/payments/approved-partners', methods=['GET'])
@admin_required
def approved_partners_payments_route():
    return jsonify({'items': payments.get_all_approved_partners_with_payments()})
