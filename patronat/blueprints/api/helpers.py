"""Request helpers shared by the API route modules."""

from __future__ import annotations

from flask import request

from patronat.auth import SessionContext, current_context
from patronat.services.store import PermissionDeniedError


def json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def require_context() -> SessionContext:
    """Context of a view already guarded by login_required or admin_required."""
    ctx = current_context()
    if ctx is None:
        raise PermissionDeniedError('Authentication required')
    return ctx


def query_text() -> str | None:
    return (request.args.get('q') or '').strip() or None


def int_arg(name: str, default: int) -> int:
    try:
        return max(int(request.args.get(name, default)), 1)
    except (TypeError, ValueError):
        return default
