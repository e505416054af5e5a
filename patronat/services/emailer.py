"""Email service with SMTP and template support."""

from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Dict, Iterable, List, Optional

from flask import current_app, render_template
from jinja2 import TemplateNotFound


class EmailerError(Exception):
    """Raised when email operations fail."""
    pass


class EmailService:
    """Service for sending emails via SMTP with template support."""

    def __init__(self, config: Optional[Dict] = None):
        config = config if config is not None else current_app.config
        self.enabled = bool(config.get('MAIL_ENABLED'))
        self.smtp_host = config.get('SMTP_HOST')
        self.smtp_port = int(config.get('SMTP_PORT') or 587)
        self.smtp_username = config.get('SMTP_USERNAME')
        self.smtp_password = config.get('SMTP_PASSWORD')
        self.smtp_use_tls = bool(config.get('SMTP_USE_TLS', True))
        self.from_email = config.get('FROM_EMAIL') or self.smtp_username
        self.from_name = config.get('FROM_NAME') or 'Patronat de Festes'
        self.contact_recipient = config.get('CONTACT_RECIPIENT') or self.from_email

        if self.enabled and not all([self.smtp_host, self.smtp_username, self.smtp_password]):
            raise EmailerError("SMTP configuration incomplete. Check environment variables.")

    def render(self, template_key: str, context: Dict) -> str:
        """Render ``templates/email/{template_key}.html``."""
        try:
            return render_template(f'email/{template_key}.html', from_name=self.from_name, **context)
        except TemplateNotFound as e:
            raise EmailerError(f"Email template not found: {e}")

    def build_message(
        self,
        subject: str,
        html_content: str,
        to: Iterable[str] = (),
        bcc: Iterable[str] = (),
        reply_to: Optional[str] = None,
    ) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = formataddr((self.from_name, self.from_email)) if self.from_name else self.from_email
        to = list(to)
        # Bulk mail goes to the sender with the audience hidden in BCC
        msg['To'] = ', '.join(to) if to else self.from_email
        if reply_to:
            msg['Reply-To'] = reply_to
        bcc = list(bcc)
        if bcc:
            msg['Bcc'] = ', '.join(bcc)
        msg.attach(MIMEText(html_content, 'html', 'utf-8'))
        return msg

    def send(self, msg: MIMEMultipart) -> None:
        """Send via SMTP, or log the message when mail is disabled."""
        if not self.enabled:
            current_app.logger.info(
                f"MAIL_ENABLED is off; not sending '{msg['Subject']}' to {msg['To']}"
                + (f" (bcc: {msg['Bcc']})" if msg['Bcc'] else '')
            )
            return

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                if self.smtp_use_tls:
                    server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailerError(f"SMTP error: {str(e)}")

    def send_contact_email(self, name: str, email: str, subject: str, message: str, phone: str = '') -> None:
        """Forward a contact-form submission to the organisation's mailbox."""
        if not self.contact_recipient:
            raise EmailerError("No contact recipient configured")
        html_content = self.render('contact', {
            'name': name,
            'email': email,
            'phone': phone,
            'subject': subject,
            'message': message,
        })
        msg = self.build_message(
            subject=f"Contacto web: {subject}",
            html_content=html_content,
            to=[self.contact_recipient],
            reply_to=formataddr((name, email)),
        )
        self.send(msg)
        current_app.logger.info(f"Contact email from {email} forwarded to {self.contact_recipient}")

    def send_bulk_email(self, recipients: List[Dict], subject: str, message: str,
                        recipient_type: Optional[str] = None) -> int:
        """
        Send one message with every recipient in BCC.

        Returns:
            Number of recipients addressed
        """
        addresses = [formataddr((r.get('name') or '', r['email'])) for r in recipients if r.get('email')]
        if not addresses:
            raise EmailerError("No recipient has an email address")
        html_content = self.render('bulk', {
            'subject': subject,
            'message': message,
            'recipient_type': recipient_type,
        })
        self.send(self.build_message(subject=subject, html_content=html_content, bcc=addresses))
        current_app.logger.info(f"Bulk email '{subject}' sent to {len(addresses)} recipients ({recipient_type})")
        return len(addresses)


def get_email_service() -> EmailService:
    return EmailService()


__all__ = ['EmailService', 'EmailerError', 'get_email_service']
