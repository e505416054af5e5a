"""Application factory for the Patronat de Festes membership service."""

from __future__ import annotations

import os
from datetime import date, datetime
from typing import Any

from flask import Flask, jsonify, redirect, request
from flask.json.provider import DefaultJSONProvider

from patronat.auth import AuthUser
from patronat.blueprints.api import api_bp
from patronat.blueprints.auth import auth_bp
from patronat.blueprints.errors import register_error_handlers
from patronat.blueprints.files import files_bp
from patronat.blueprints.mail import mail_bp
from patronat.config import Config
from patronat.extensions import (
    db,
    migrate,
    login_manager,
    csrf,
    limiter,
)
from patronat.i18n import translate
from patronat.models import USERS
from patronat.services.store import get_store


class PatronatJSONProvider(DefaultJSONProvider):
    """Dates are sent as ISO 8601 strings instead of HTTP dates."""

    @staticmethod
    def default(o: Any) -> Any:
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def create_app(config_class=Config):
    """Create Flask application."""
    app = Flask(__name__, template_folder="templates")
    app.json_provider_class = PatronatJSONProvider
    app.json = PatronatJSONProvider(app)
    app.config.from_object(config_class)

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # Documents live in a single table; create it when there are no migrations
    if os.getenv('PATRONAT_SKIP_BOOTSTRAP', '0') != '1':
        with app.app_context():
            db.create_all()

    @login_manager.user_loader
    def load_user(user_id: str):
        snap = get_store().document(f"{USERS}/{user_id}").get()
        if not snap.exists:
            return None
        return AuthUser(snap.id, snap.to_dict())

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        if request.is_json or request.path.startswith(('/api/', '/auth/')):
            return jsonify({'error': translate('unauthorized')}), 401
        return redirect('/')

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(files_bp)
    app.register_blueprint(mail_bp)
    register_error_handlers(app)

    # Register CLI commands
    from patronat.commands import register_commands
    register_commands(app)

    return app


__all__ = ['create_app']
