"""Contact form posted from the public site."""

from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import EmailField, StringField, TelField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, Optional


class ContactForm(FlaskForm):
    name = StringField("Nombre", validators=[DataRequired(message='required'), Length(max=120)])
    email = EmailField("Email", validators=[DataRequired(message='required'), Email(message='invalidEmail')])
    phone = TelField("Teléfono", validators=[Optional(), Length(max=20)])
    subject = StringField("Asunto", validators=[DataRequired(message='required'), Length(max=200)])
    message = TextAreaField("Mensaje", validators=[DataRequired(message='required'), Length(max=5000)])
    # Honeypot: hidden from people, filled in by bots
    website = StringField("Website", validators=[Optional()])
