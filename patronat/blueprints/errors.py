"""JSON error responses for the service exceptions."""

from __future__ import annotations

from flask import Flask, current_app, jsonify

from patronat.auth import current_language
from patronat.i18n import translate
from patronat.services.notifications import NotificationError
from patronat.services.store import (
    NotFoundError,
    PermissionDeniedError,
    StoreError,
    TransientStoreError,
)
from patronat.services.validation import ValidationError


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        return jsonify({
            'error': translate('validation', current_language()),
            'fields': error.errors,
            'detail': str(error),
        }), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(error: NotFoundError):
        return jsonify({'error': translate('notFound', current_language())}), 404

    @app.errorhandler(PermissionDeniedError)
    def handle_permission_denied(error: PermissionDeniedError):
        current_app.logger.warning(f"Store permission denied: {error}")
        return jsonify({'error': translate('forbidden', current_language())}), 403

    @app.errorhandler(TransientStoreError)
    def handle_transient(error: TransientStoreError):
        current_app.logger.error(f"Store unavailable: {error}")
        return jsonify({'error': translate('storeUnavailable', current_language())}), 503

    @app.errorhandler(StoreError)
    def handle_store_error(error: StoreError):
        current_app.logger.error(f"Store error: {error}")
        return jsonify({'error': translate('unexpected', current_language())}), 500

    @app.errorhandler(NotificationError)
    def handle_notification_error(error: NotificationError):
        return jsonify({'success': False, 'error': str(error)}), 502


__all__ = ['register_error_handlers']
