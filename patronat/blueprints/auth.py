"""Session login for the JSON API."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from patronat.auth import AuthUser, current_context, current_language
from patronat.extensions import limiter
from patronat.forms import validate_payload
from patronat.forms.registration import LoginForm, RegisterForm
from patronat.i18n import translate
from patronat.services.users import authenticate, create_user, get_user, serialize_user

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    form = validate_payload(LoginForm, request.get_json(silent=True))
    found = authenticate(form.email.data, form.password.data)
    if found is None:
        current_app.logger.warning(f"Failed login for {form.email.data.strip().lower()}")
        return jsonify({'error': translate('invalidCredentials', current_language())}), 401

    user_id, data = found
    login_user(AuthUser(user_id, data), remember=form.remember_me.data)
    current_app.logger.info(f"User {user_id} logged in")
    return jsonify({'user': serialize_user(user_id, data)})


@auth_bp.route("/logout", methods=["POST"])
def logout():
    if current_user.is_authenticated:
        current_app.logger.info(f"User {current_user.id} logged out")
        logout_user()
    return jsonify({'success': True})


@auth_bp.route("/register", methods=["POST"])
@limiter.limit("10 per hour")
def register():
    payload = request.get_json(silent=True) or {}
    form = validate_payload(RegisterForm, payload)
    user_id, data = create_user(
        form.email.data,
        form.password.data,
        display_name=form.displayName.data or '',
        language=payload.get('preferredLanguage') or current_app.config.get('DEFAULT_LANGUAGE', 'es'),
    )
    login_user(AuthUser(user_id, data))
    return jsonify({'user': serialize_user(user_id, data)}), 201


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    ctx = current_context()
    data = get_user(ctx.user_id) or {}
    return jsonify({'user': serialize_user(ctx.user_id, data), 'isAdmin': ctx.is_admin})
