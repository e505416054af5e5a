"""Contact and bulk email endpoints.

They are registered on the main application and can also be deployed on
their own with :func:`create_mail_app`.
"""

from __future__ import annotations

from flask import Blueprint, Flask, current_app, jsonify, request

from patronat.config import Config
from patronat.extensions import csrf, limiter
from patronat.forms import validate_payload
from patronat.forms.contact import ContactForm
from patronat.i18n import translate
from patronat.services.emailer import EmailerError, get_email_service
from patronat.services.validation import EMAIL_RE, ValidationError

mail_bp = Blueprint('mail', __name__)


def _method_not_allowed():
    return jsonify({'success': False, 'error': 'Method Not Allowed'}), 405


@mail_bp.route('/sendContactEmail', methods=['GET', 'PUT', 'PATCH', 'DELETE', 'POST'])
@csrf.exempt
@limiter.limit("10 per hour", methods=['POST'])
def send_contact_email():
    if request.method != 'POST':
        return _method_not_allowed()

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    if str(payload.get('website') or '').strip():
        current_app.logger.warning(f"Contact form honeypot filled from {request.remote_addr}; ignoring")
        return jsonify({'success': True})

    try:
        form = validate_payload(ContactForm, payload)
    except ValidationError as e:
        missing = ', '.join(sorted(e.errors))
        return jsonify({'success': False, 'error': translate('missingFields', fields=missing)}), 400

    try:
        get_email_service().send_contact_email(
            name=form.name.data.strip(),
            email=form.email.data.strip(),
            phone=(form.phone.data or '').strip(),
            subject=form.subject.data.strip(),
            message=form.message.data,
        )
    except EmailerError as e:
        current_app.logger.error(f"Contact email failed: {e}")
        return jsonify({'success': False, 'error': translate('emailFailed')}), 500

    return jsonify({'success': True, 'message': translate('emailSent')})


@mail_bp.route('/sendBulkEmails', methods=['GET', 'PUT', 'PATCH', 'DELETE', 'POST'])
@csrf.exempt
@limiter.limit("20 per hour", methods=['POST'])
def send_bulk_emails():
    if request.method != 'POST':
        return _method_not_allowed()

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    recipients = payload.get('recipients')
    if not isinstance(recipients, list) or not recipients:
        return jsonify({'success': False, 'error': translate('invalidRecipients')}), 400

    valid = [
        r for r in recipients
        if isinstance(r, dict) and isinstance(r.get('email'), str) and EMAIL_RE.match(r['email'].strip())
    ]
    if not valid:
        return jsonify({'success': False, 'error': translate('invalidRecipients')}), 400
    if len(valid) < len(recipients):
        current_app.logger.warning(f"Dropped {len(recipients) - len(valid)} recipients without a valid email")

    subject = str(payload.get('subject') or '').strip()
    message = str(payload.get('message') or '').strip()
    missing = [name for name, value in (('subject', subject), ('message', message)) if not value]
    if missing:
        return jsonify({'success': False, 'error': translate('missingFields', fields=', '.join(missing))}), 400

    try:
        count = get_email_service().send_bulk_email(
            [{'name': r.get('name') or '', 'email': r['email'].strip()} for r in valid],
            subject,
            message,
            recipient_type=payload.get('recipientType'),
        )
    except EmailerError as e:
        current_app.logger.error(f"Bulk email failed: {e}")
        return jsonify({'success': False, 'error': translate('emailFailed')}), 500

    return jsonify({'success': True, 'message': translate('bulkSent', count=count)})


def create_mail_app(config_class=Config) -> Flask:
    """Standalone application serving only the email endpoints."""
    app = Flask('patronat', template_folder="templates")
    app.config.from_object(config_class)

    csrf.init_app(app)
    limiter.init_app(app)
    app.register_blueprint(mail_bp)
    return app


__all__ = ['mail_bp', 'create_mail_app']
