"""JSON API blueprint."""

from __future__ import annotations

from flask import Blueprint

api_bp = Blueprint('api', __name__)

# Route modules register themselves on api_bp
from patronat.blueprints.api import (  # noqa: E402,F401
    chat,
    crews,
    events,
    games,
    media,
    partners,
    seasons,
    system,
)

__all__ = ['api_bp']
