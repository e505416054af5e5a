"""Public registration forms: partners and user accounts."""

from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import BooleanField, DateField, EmailField, PasswordField, StringField, TelField
from wtforms.validators import DataRequired, Email, Length, Optional, Regexp

from patronat.services.validation import DNI_RE, IBAN_RE


class PartnerForm(FlaskForm):
    """Membership request sent from the public partner form."""

    name = StringField("Nombre", validators=[DataRequired(message='required'), Length(max=120)])
    lastName = StringField("Apellidos", validators=[DataRequired(message='required'), Length(max=200)])
    email = EmailField("Email", validators=[DataRequired(message='required'), Email(message='invalidEmail')])
    dni = StringField("DNI", validators=[DataRequired(message='required'), Regexp(DNI_RE, message='invalidDni')])
    phone = TelField("Teléfono", validators=[Optional(), Length(max=20)])
    address = StringField("Dirección", validators=[Optional(), Length(max=255)])
    accountNumber = StringField(
        "IBAN",
        # IBANs are often typed in groups of four
        filters=[lambda value: value.replace(' ', '').upper() if value else value],
        validators=[Optional(), Regexp(IBAN_RE, message='invalidIban')],
    )
    birthDate = DateField("Fecha de nacimiento", validators=[Optional()])


class LoginForm(FlaskForm):
    email = EmailField("Email", validators=[DataRequired(message='required'), Email(message='invalidEmail')])
    password = PasswordField("Password", validators=[DataRequired(message='required')])
    remember_me = BooleanField("Remember me")


class RegisterForm(FlaskForm):
    email = EmailField("Email", validators=[DataRequired(message='required'), Email(message='invalidEmail')])
    password = PasswordField("Password", validators=[DataRequired(message='required'),
                                                   Length(min=8, message='passwordTooShort')])
    displayName = StringField("Name", validators=[Optional(), Length(max=120)])
