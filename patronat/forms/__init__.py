"""WTForms used to validate JSON payloads at the HTTP boundary."""

from __future__ import annotations

from typing import Type, TypeVar

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict

from patronat.services.validation import ValidationError

FormT = TypeVar('FormT', bound=FlaskForm)


def _as_formdata(payload: dict | None) -> MultiDict:
    data = MultiDict()
    for key, value in (payload or {}).items():
        if value is None or isinstance(value, dict):
            continue
        if isinstance(value, bool):
            data.add(key, 'y' if value else '')
        elif isinstance(value, list):
            for item in value:
                data.add(key, str(item))
        else:
            data.add(key, str(value))
    return data


def validate_payload(form_class: Type[FormT], payload: dict | None) -> FormT:
    """
    Bind a JSON payload to ``form_class`` and validate it.

    CSRF is enforced once per request by CSRFProtect, so the form itself
    does not check a token.

    Raises:
        ValidationError: mapping each failing field to its first message
    """
    form = form_class(formdata=_as_formdata(payload), meta={'csrf': False})
    if not form.validate():
        raise ValidationError({field: messages[0] for field, messages in form.errors.items()})
    return form


__all__ = ['validate_payload']
