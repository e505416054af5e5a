"""Games and the propagation of their changes to crews."""

from __future__ import annotations

from typing import TYPE_CHECKING

from patronat.models import GAMES, ChangeType, GameStatus
from patronat.services import crew_sync
from patronat.services.history import record_change
from patronat.services.search import search_collection
from patronat.services.store import SERVER_TIMESTAMP, NotFoundError, get_store
from patronat.services.validation import ValidationError, normalize_date

if TYPE_CHECKING:
    from patronat.auth import SessionContext

GAME_FIELDS = ('name', 'description', 'date', 'time', 'location', 'minParticipants', 'score', 'season', 'status')
GAME_STATUSES = {status.value for status in GameStatus}
SYNCED_FIELDS = ('name', 'season', 'date', 'status')


def _number(data: dict, key: str, errors: dict) -> int | float:
    value = data.get(key)
    if value in (None, ''):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        errors[key] = 'invalidNumber'
        return 0
    return int(number) if number.is_integer() else number


def _clean(data: dict, partial: bool = False) -> dict:
    errors: dict[str, str] = {}
    cleaned = {key: data[key] for key in GAME_FIELDS if key in data}

    if not partial or 'name' in cleaned:
        if not str(cleaned.get('name') or '').strip():
            errors['name'] = 'required'
        else:
            cleaned['name'] = cleaned['name'].strip()
    if 'date' in cleaned:
        parsed = normalize_date(cleaned['date'])
        if cleaned['date'] and parsed is None:
            errors['date'] = 'invalidDate'
        cleaned['date'] = parsed
    if 'status' in cleaned and cleaned['status'] not in GAME_STATUSES:
        errors['status'] = 'invalidStatus'
    for key in ('minParticipants', 'score'):
        if key in cleaned:
            cleaned[key] = _number(cleaned, key, errors)

    if errors:
        raise ValidationError(errors)
    return cleaned


def get_game(game_id: str) -> dict:
    snap = get_store().document(f"{GAMES}/{game_id}").get()
    if not snap.exists:
        raise NotFoundError(f"Game {game_id} not found")
    return {'id': snap.id, **snap.to_dict()}


def list_games(season: str | None = None, status: str | None = None, query: str | None = None) -> list[dict]:
    ref = get_store().collection(GAMES)
    if season:
        ref = ref.where('season', '==', season)
    if status:
        ref = ref.where('status', '==', status)
    games = [{'id': snap.id, **snap.to_dict()} for snap in ref.get()]
    return search_collection(GAMES, games, query)


def create_game(data: dict, ctx: SessionContext) -> tuple[dict, crew_sync.SyncReport]:
    """Store a game and add its mirror to every active crew."""
    record = _clean(data)
    record.setdefault('status', GameStatus.INACTIVE.value)
    record.update({'createdAt': SERVER_TIMESTAMP, 'updatedAt': SERVER_TIMESTAMP})

    ref = get_store().collection(GAMES).add(record)
    game = get_game(ref.id)
    report = crew_sync.add_game_to_crews(ref.id, game, crew_sync.active_crews())
    record_change('game', ref.id, game['name'], ChangeType.CREATE, ctx, new=game)
    return game, report


def update_game(game_id: str, data: dict, ctx: SessionContext) -> tuple[dict, crew_sync.SyncReport | None]:
    """Update a game; name, season, date or status changes reach the crews."""
    previous = get_game(game_id)
    changes = _clean(data, partial=True)
    changes['updatedAt'] = SERVER_TIMESTAMP
    get_store().document(f"{GAMES}/{game_id}").update(changes)
    game = get_game(game_id)

    report = None
    changed = [key for key in SYNCED_FIELDS if previous.get(key) != game.get(key)]
    if changed == ['status']:
        report = crew_sync.update_game_status_in_crews(game_id, game['status'])
    elif changed:
        report = crew_sync.update_game_in_crews(game_id, crew_sync.mirrored_fields(game))

    record_change('game', game_id, game['name'], ChangeType.UPDATE, ctx, previous=previous, new=game)
    return game, report


def update_game_status(game_id: str, status: str, ctx: SessionContext) -> tuple[dict, crew_sync.SyncReport | None]:
    return update_game(game_id, {'status': status}, ctx)


def clone_game_for_season(game_id: str, new_season: str, ctx: SessionContext) -> tuple[dict, crew_sync.SyncReport]:
    """
    Copy a game into another season instead of moving it.

    The season in the name, written as ``(season)``, is replaced. The copy
    starts ``Planificado`` and is mirrored into the active crews of the new
    season, or into every active crew when that season has none.
    """
    if not new_season:
        raise ValidationError({'season': 'required'})
    original = get_game(game_id)
    old_season = original.get('season')
    name = original.get('name', '')
    if old_season and f"({old_season})" in name:
        name = name.replace(f"({old_season})", f"({new_season})")

    record = {key: original[key] for key in GAME_FIELDS if key in original}
    record.update({
        'name': name,
        'season': new_season,
        'status': GameStatus.PLANNED.value,
        'isClonedFrom': game_id,
        'createdAt': SERVER_TIMESTAMP,
        'updatedAt': SERVER_TIMESTAMP,
    })
    ref = get_store().collection(GAMES).add(record)
    game = get_game(ref.id)

    crews = crew_sync.active_crews(new_season) or crew_sync.active_crews()
    report = crew_sync.add_game_to_crews(ref.id, game, crews)
    record_change('game', ref.id, game['name'], ChangeType.CREATE, ctx, new=game)
    return game, report


def delete_game(game_id: str, ctx: SessionContext) -> crew_sync.SyncReport:
    game = get_game(game_id)
    report = crew_sync.remove_game_from_crews(game_id)
    get_store().document(f"{GAMES}/{game_id}").delete()
    record_change('game', game_id, game.get('name', ''), ChangeType.DELETE, ctx, previous=game)
    return report


__all__ = [
    'clone_game_for_season',
    'create_game',
    'delete_game',
    'get_game',
    'list_games',
    'update_game',
    'update_game_status',
]
