"""User accounts stored in the ``users`` collection."""

from __future__ import annotations

from patronat.extensions import bcrypt
from patronat.models import USERS, UserRole
from patronat.services.store import SERVER_TIMESTAMP, NotFoundError, get_store
from patronat.services.validation import EMAIL_RE, ValidationError

PROFILE_FIELDS = ('displayName', 'phone', 'emailNotifications', 'preferredLanguage', 'photoURL')
ADMIN_FIELDS = ('role', 'isStaff', 'active')
LANGUAGES = ('es', 'ca', 'en')


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def check_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))


def serialize_user(user_id: str, data: dict) -> dict:
    public = {k: v for k, v in data.items() if k != 'passwordHash'}
    return {'id': user_id, **public}


def find_user_by_email(email: str) -> tuple[str, dict] | None:
    matches = get_store().collection(USERS).where('email', '==', email.strip().lower()).limit(1).get()
    if not matches:
        return None
    return matches[0].id, matches[0].to_dict()


def get_user(user_id: str) -> dict | None:
    snap = get_store().document(f"{USERS}/{user_id}").get()
    return snap.to_dict() if snap.exists else None


def create_user(email: str, password: str, display_name: str = '', role: str = UserRole.USER.value,
                is_staff: bool = False, language: str = 'es') -> tuple[str, dict]:
    """Create a user account; raises ValidationError on bad input or duplicate email."""
    email = (email or '').strip().lower()
    errors = {}
    if not EMAIL_RE.match(email):
        errors['email'] = 'invalidEmail'
    if not password or len(password) < 8:
        errors['password'] = 'passwordTooShort'
    if role not in {r.value for r in UserRole}:
        errors['role'] = 'invalidRole'
    if errors:
        raise ValidationError(errors)
    if find_user_by_email(email):
        raise ValidationError({'email': 'emailInUse'})

    data = {
        'email': email,
        'displayName': display_name,
        'passwordHash': hash_password(password),
        'role': role,
        'isStaff': is_staff,
        'emailNotifications': True,
        'preferredLanguage': language if language in LANGUAGES else 'es',
        'active': True,
        'createdAt': SERVER_TIMESTAMP,
    }
    ref = get_store().collection(USERS).add(data)
    return ref.id, ref.get().to_dict()


def authenticate(email: str, password: str) -> tuple[str, dict] | None:
    found = find_user_by_email(email or '')
    if not found:
        return None
    user_id, data = found
    if not data.get('active', True) or not check_password(password or '', data.get('passwordHash')):
        return None
    return user_id, data


def update_user(user_id: str, changes: dict, allow_admin_fields: bool = False) -> dict:
    """Update profile fields (and role/staff flags when ``allow_admin_fields``)."""
    ref = get_store().document(f"{USERS}/{user_id}")
    if not ref.get().exists:
        raise NotFoundError(f"User {user_id} not found")

    allowed = PROFILE_FIELDS + (ADMIN_FIELDS if allow_admin_fields else ())
    update = {k: v for k, v in changes.items() if k in allowed}
    if 'preferredLanguage' in update and update['preferredLanguage'] not in LANGUAGES:
        raise ValidationError({'preferredLanguage': 'invalidLanguage'})
    if 'role' in update and update['role'] not in {r.value for r in UserRole}:
        raise ValidationError({'role': 'invalidRole'})
    if 'emailNotifications' in update:
        update['emailNotifications'] = bool(update['emailNotifications'])
    if 'password' in changes:
        if not changes['password'] or len(changes['password']) < 8:
            raise ValidationError({'password': 'passwordTooShort'})
        update['passwordHash'] = hash_password(changes['password'])

    if update:
        update['updatedAt'] = SERVER_TIMESTAMP
        ref.update(update)
    return ref.get().to_dict()


def list_users() -> list[dict]:
    return [serialize_user(snap.id, snap.to_dict()) for snap in get_store().collection(USERS).get()]


__all__ = [
    'authenticate',
    'check_password',
    'create_user',
    'find_user_by_email',
    'get_user',
    'hash_password',
    'list_users',
    'serialize_user',
    'update_user',
]
