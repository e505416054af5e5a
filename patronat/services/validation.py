"""Validation and formatting helpers shared by services and blueprints."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
DNI_RE = re.compile(r'^[0-9]{8}[A-Za-z]$')
IBAN_RE = re.compile(r'^ES[0-9]{22}$')
UNSAFE_FILENAME_RE = re.compile(r'[^a-zA-Z0-9.]')

JUNIOR_MIN_AGE = 14
JUNIOR_MAX_AGE = 16


class ValidationError(Exception):
    """Raised when input fails validation; ``errors`` maps field to message key."""

    def __init__(self, errors: dict[str, str] | str, message: str | None = None) -> None:
        if isinstance(errors, str):
            errors = {'_': errors}
        self.errors = errors
        super().__init__(message or ', '.join(f"{k}: {v}" for k, v in errors.items()))


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FilePolicy:
    """Allowed MIME types and size limit for an upload."""

    allowed_types: frozenset[str]
    max_size: int

    def restrict(self, *types: str) -> FilePolicy:
        return FilePolicy(self.allowed_types & frozenset(types), self.max_size)


IMAGE_TYPES = frozenset({'image/png', 'image/jpeg', 'application/jpg'})
DOCUMENT_TYPES = frozenset({'application/pdf'})
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB

DEFAULT_FILE_POLICY = FilePolicy(IMAGE_TYPES | DOCUMENT_TYPES, MAX_FILE_SIZE)
IMAGE_POLICY = DEFAULT_FILE_POLICY.restrict(*IMAGE_TYPES)


def validate_file(mimetype: str | None, size: int | None,
                  policy: FilePolicy = DEFAULT_FILE_POLICY) -> tuple[bool, str | None]:
    """
    Check a file against the upload policy.

    Returns:
        (True, None) when accepted, otherwise (False, error_key) with
        error_key one of 'noFile', 'invalidType', 'tooLarge'.
    """
    if not mimetype or size is None:
        return False, 'noFile'
    if mimetype.lower() not in policy.allowed_types:
        return False, 'invalidType'
    if size > policy.max_size:
        return False, 'tooLarge'
    return True, None


def is_image(mimetype: str | None) -> bool:
    return bool(mimetype) and mimetype.lower().startswith('image/')


def sanitize_filename(name: str) -> str:
    return UNSAFE_FILENAME_RE.sub('_', name or '')


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def normalize_date(value: Any) -> date | None:
    """Coerce a date-like value; empty or unparseable input yields None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
        except ValueError:
            return None
    return None


def format_date_for_ui(value: Any, mode: str = 'display') -> str:
    """Format a date as ``d/m/yyyy`` ('display') or ``YYYY-MM-DD`` ('input')."""
    parsed = normalize_date(value)
    if parsed is None:
        return ''
    if mode == 'input':
        return parsed.isoformat()
    return f"{parsed.day}/{parsed.month}/{parsed.year}"


def calculate_age(birth_date: Any, today: date | None = None) -> int | None:
    """Age in whole years, or None when the birth date is unusable."""
    born = normalize_date(birth_date)
    if born is None:
        return None
    today = today or date.today()
    age = today.year - born.year

    # Adjust if birthday hasn't occurred this year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1

    return age


def is_junior_age(age: int | None) -> bool:
    return age is not None and JUNIOR_MIN_AGE <= age <= JUNIOR_MAX_AGE


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def generate_slug(text: str) -> str:
    """Lowercase the text and turn runs of whitespace into dashes."""
    return re.sub(r'\s+', '-', (text or '').strip().lower())


def normalize_iban(value: str | None) -> str:
    return re.sub(r'\s+', '', value or '').upper()


def validate_partner(data: dict) -> dict[str, str]:
    """Return field errors for partner data; empty when valid."""
    errors: dict[str, str] = {}
    for field in ('name', 'lastName', 'email', 'dni'):
        if not str(data.get(field) or '').strip():
            errors[field] = 'required'

    email = str(data.get('email') or '').strip()
    if email and not EMAIL_RE.match(email):
        errors['email'] = 'invalidEmail'

    dni = str(data.get('dni') or '').strip()
    if dni and not DNI_RE.match(dni):
        errors['dni'] = 'invalidDni'

    iban = normalize_iban(data.get('accountNumber'))
    if iban and not IBAN_RE.match(iban):
        errors['accountNumber'] = 'invalidIban'

    return errors


__all__ = [
    'ValidationError',
    'FilePolicy',
    'DEFAULT_FILE_POLICY',
    'IMAGE_POLICY',
    'MAX_FILE_SIZE',
    'validate_file',
    'is_image',
    'sanitize_filename',
    'normalize_date',
    'format_date_for_ui',
    'calculate_age',
    'is_junior_age',
    'generate_slug',
    'normalize_iban',
    'validate_partner',
]
