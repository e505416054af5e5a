"""Authentication helpers and the explicit per-request session context."""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Callable, TypeVar, cast

from flask import jsonify, current_app
from flask_login import UserMixin, current_user

from patronat.models import UserRole

F = TypeVar('F', bound=Callable[..., object])


@dataclass(frozen=True)
class SessionContext:
    """Who is acting. Built once per request and passed to services explicitly."""

    user_id: str
    role: str = UserRole.USER.value
    is_staff: bool = False
    name: str = ''
    email: str = ''
    language: str = 'es'

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value or self.is_staff

    def as_actor(self) -> dict:
        """Compact representation stored on documents (``modifiedBy``)."""
        return {'id': self.user_id, 'name': self.name or self.email, 'email': self.email}


SYSTEM_CONTEXT = SessionContext(user_id='sistema', role=UserRole.ADMIN.value, is_staff=True, name='Sistema')


class AuthUser(UserMixin):
    """Flask-Login user backed by a ``users`` document."""

    def __init__(self, user_id: str, data: dict) -> None:
        self.id = user_id
        self.data = data

    @property
    def email(self) -> str:
        return self.data.get('email', '')

    @property
    def role(self) -> str:
        return self.data.get('role', UserRole.USER.value)

    @property
    def is_active(self) -> bool:
        return self.data.get('active', True)

    def to_context(self) -> SessionContext:
        return SessionContext(
            user_id=self.id,
            role=self.role,
            is_staff=bool(self.data.get('isStaff', False)),
            name=self.data.get('displayName') or '',
            email=self.email,
            language=self.data.get('preferredLanguage') or current_app.config.get('DEFAULT_LANGUAGE', 'es'),
        )


def current_context() -> SessionContext | None:
    """Session context of the logged-in user, or None for anonymous requests."""
    if current_user and current_user.is_authenticated:
        return current_user.to_context()
    return None


def current_language() -> str:
    ctx = current_context()
    return ctx.language if ctx else current_app.config.get('DEFAULT_LANGUAGE', 'es')


def admin_required(func: F) -> F:
    """Decorator to ensure the current user has admin or staff privileges."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx = current_context()
        if ctx is None:
            return current_app.login_manager.unauthorized()

        if not ctx.is_admin:
            from patronat.i18n import translate
            return jsonify({'error': translate('forbidden', ctx.language)}), 403

        return func(*args, **kwargs)

    return cast(F, wrapper)


__all__ = [
    'SessionContext',
    'SYSTEM_CONTEXT',
    'AuthUser',
    'current_context',
    'current_language',
    'admin_required',
]
