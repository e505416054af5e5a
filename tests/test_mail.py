"""Tests for the contact and bulk email endpoints."""

import smtplib

import pytest

from patronat.services.emailer import EmailService, EmailerError

CONTACT = {
    'name': 'Maria Ferrer',
    'email': 'maria@example.com',
    'subject': 'Inscripció',
    'message': 'Hola,\nvoldria fer-me sòcia.',
}

BULK = {
    'recipientType': 'partners',
    'recipients': [{'name': 'Maria', 'email': 'maria@example.com'}, {'name': 'Joan', 'email': 'joan@example.com'}],
    'subject': 'Assemblea',
    'message': 'Dijous a les 20h.',
}


@pytest.fixture
def sent(monkeypatch):
    """Capture messages instead of logging them."""
    messages = []
    monkeypatch.setattr(EmailService, 'send', lambda self, msg: messages.append(msg))
    return messages


class TestContact:
    def test_contact_email(self, client, sent):
        response = client.post('/sendContactEmail', json=CONTACT)

        assert response.status_code == 200
        assert response.get_json()['success'] is True
        msg = sent[0]
        assert msg['Subject'] == 'Contacto web: Inscripció'
        assert msg['To'] == 'patronat@example.com'
        assert 'maria@example.com' in msg['Reply-To']

    def test_missing_fields(self, client, sent):
        response = client.post('/sendContactEmail', json={'name': 'Maria'})

        assert response.status_code == 400
        body = response.get_json()
        assert body['success'] is False
        assert body['error'].startswith('Faltan campos obligatorios')
        assert sent == []

    def test_honeypot(self, client, sent):
        response = client.post('/sendContactEmail', json={**CONTACT, 'website': 'http://spam.example'})
        assert response.status_code == 200
        assert sent == []

    def test_get_not_allowed(self, client):
        response = client.get('/sendContactEmail')
        assert response.status_code == 405
        assert response.get_json()['success'] is False

    def test_smtp_failure(self, client, monkeypatch):
        def fail(self, msg):
            raise EmailerError('SMTP error: connection refused')

        monkeypatch.setattr(EmailService, 'send', fail)
        response = client.post('/sendContactEmail', json=CONTACT)

        assert response.status_code == 500
        assert response.get_json()['error'] == 'Error en el envío de los correos'


class TestBulk:
    def test_bulk_email_uses_bcc(self, client, sent):
        response = client.post('/sendBulkEmails', json=BULK)

        assert response.status_code == 200
        body = response.get_json()
        assert body == {'success': True, 'message': 'Correos enviados correctamente a 2 destinatarios'}
        msg = sent[0]
        assert msg['To'] == 'patronat@example.com'
        assert 'joan@example.com' in msg['Bcc']

    @pytest.mark.parametrize('recipients', [[], None, 'maria@example.com', [{'name': 'Sense correu'}]])
    def test_invalid_recipients(self, client, sent, recipients):
        response = client.post('/sendBulkEmails', json={**BULK, 'recipients': recipients})

        assert response.status_code == 400
        assert response.get_json() == {
            'success': False,
            'error': 'Se requiere una lista válida de destinatarios',
        }
        assert sent == []

    def test_missing_subject(self, client, sent):
        response = client.post('/sendBulkEmails', json={**BULK, 'subject': ''})
        assert response.status_code == 400

    def test_invalid_entries_are_dropped(self, client, sent):
        recipients = BULK['recipients'] + [{'name': 'Broken', 'email': 'not-an-email'}]
        response = client.post('/sendBulkEmails', json={**BULK, 'recipients': recipients})

        assert response.status_code == 200
        assert 'not-an-email' not in sent[0]['Bcc']

    def test_put_not_allowed(self, client):
        assert client.put('/sendBulkEmails', json=BULK).status_code == 405


class TestEmailService:
    def test_incomplete_smtp_config(self, app):
        with pytest.raises(EmailerError):
            EmailService({'MAIL_ENABLED': True, 'SMTP_HOST': 'smtp.example.com'})

    def test_disabled_service_only_logs(self, app, monkeypatch):
        def no_smtp(*args, **kwargs):
            raise AssertionError('SMTP must not be used when mail is disabled')

        monkeypatch.setattr(smtplib, 'SMTP', no_smtp)
        service = EmailService()
        service.send(service.build_message('Prova', '<p>Hola</p>'))

    def test_smtp_errors_are_wrapped(self, app, monkeypatch):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError('refused')

        monkeypatch.setattr(smtplib, 'SMTP', refuse)
        service = EmailService({
            'MAIL_ENABLED': True,
            'SMTP_HOST': 'smtp.example.com',
            'SMTP_USERNAME': 'user',
            'SMTP_PASSWORD': 'secret',
        })
        with pytest.raises(EmailerError):
            service.send(service.build_message('Prova', '<p>Hola</p>'))

    def test_bulk_template_renders_lines(self, app):
        html = EmailService().render('bulk', {'subject': 'Assemblea', 'message': 'Primera\nSegona'})
        assert 'Primera' in html
        assert 'Segona' in html


def test_standalone_mail_app(mail_app):
    response = mail_app.test_client().post('/sendBulkEmails', json={**BULK, 'recipients': []})
    assert response.status_code == 400
