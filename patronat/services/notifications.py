"""Bulk email notifications to partners or crew responsables."""

from __future__ import annotations

import requests
from flask import current_app

from patronat.models import CREWS, PARTNERS
from patronat.services.fanout import fan_out
from patronat.services.store import get_store
from patronat.services.users import get_user
from patronat.services.validation import ValidationError

RECIPIENT_TYPES = ('partners', 'crew')
DEFAULT_PARTNER_NAME = 'Socio'
DEFAULT_RESPONSABLE_NAME = 'Responsable de peña'


class NotificationError(Exception):
    """Raised when the bulk email service rejects or cannot take a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _partner_recipients() -> list[dict]:
    recipients = []
    for snap in get_store().collection(PARTNERS).get():
        partner = snap.to_dict()
        if partner.get('email'):
            recipients.append({'name': partner.get('name') or DEFAULT_PARTNER_NAME, 'email': partner['email']})
    return recipients


def _crew_recipients(crew_ids: list[str]) -> list[dict]:
    store = get_store()
    # (user id, crew title) for every responsable of the selected crews
    wanted: list[tuple[str, str]] = []
    seen: set[str] = set()
    for crew_id in crew_ids:
        snap = store.document(f"{CREWS}/{crew_id}").get()
        if not snap.exists:
            current_app.logger.warning(f"Crew {crew_id} not found while resolving recipients")
            continue
        for user_id in snap.get('responsable') or []:
            if user_id not in seen:
                seen.add(user_id)
                wanted.append((user_id, snap.get('title') or ''))

    report = fan_out(wanted, lambda item: get_user(item[0]), key=lambda item: item[0])
    users = dict(report.results)

    recipients = []
    for user_id, crew_title in wanted:
        user = users.get(user_id)
        if not user or not user.get('email'):
            continue
        if user.get('emailNotifications') is False:
            continue
        recipients.append({
            'name': user.get('displayName') or crew_title or DEFAULT_RESPONSABLE_NAME,
            'email': user['email'],
        })
    return recipients


def resolve_recipients(recipient_type: str, crew_ids: list[str] | None = None) -> list[dict]:
    """
    Build the ``[{name, email}]`` audience of a bulk message.

    ``partners`` addresses every partner with an email; ``crew`` addresses the
    responsables of ``crew_ids`` that have not opted out of notifications.
    """
    if recipient_type == 'partners':
        return _partner_recipients()
    if recipient_type == 'crew':
        if not crew_ids:
            raise ValidationError({'crewIds': 'required'})
        return _crew_recipients(crew_ids)
    raise ValidationError({'recipientType': 'invalidRecipientType'})


def send_bulk_notification(recipient_type: str, subject: str, message: str,
                           crew_ids: list[str] | None = None) -> dict:
    """Resolve the audience and post it to the bulk email endpoint."""
    if not (subject or '').strip() or not (message or '').strip():
        raise ValidationError({'subject': 'required'} if not (subject or '').strip() else {'message': 'required'})
    recipients = resolve_recipients(recipient_type, crew_ids)
    if not recipients:
        raise ValidationError({'recipients': 'invalidRecipients'})

    url = current_app.config['BULK_EMAIL_URL']
    payload = {
        'recipientType': recipient_type,
        'recipients': recipients,
        'subject': subject,
        'message': message,
    }
    try:
        response = requests.post(url, json=payload, timeout=current_app.config.get('BULK_EMAIL_TIMEOUT', 30))
    except requests.RequestException as e:
        current_app.logger.error(f"Bulk email request to {url} failed: {e}")
        raise NotificationError(f"Bulk email service unreachable: {e}")

    try:
        body = response.json()
    except ValueError:
        body = {}
    if not response.ok:
        error = body.get('error') or f"HTTP {response.status_code}"
        current_app.logger.error(f"Bulk email service rejected the request: {error}")
        raise NotificationError(error, response.status_code)

    current_app.logger.info(f"Bulk email '{subject}' queued for {len(recipients)} {recipient_type} recipients")
    return {'success': True, 'recipients': len(recipients), 'message': body.get('message')}


__all__ = [
    'NotificationError',
    'RECIPIENT_TYPES',
    'resolve_recipients',
    'send_bulk_notification',
]
