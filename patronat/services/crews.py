"""Crews ("penyes"): registration, approval, scoring and ranking."""

from __future__ import annotations

from typing import TYPE_CHECKING

from patronat.models import CREWS, GAMES, ChangeType, CrewStatus, GameStatus, ParticipationStatus
from patronat.services.crew_sync import mirror_for_game
from patronat.services.history import record_change
from patronat.services.search import search_collection
from patronat.services.store import SERVER_TIMESTAMP, NotFoundError, get_store
from patronat.services.validation import ValidationError, generate_slug

if TYPE_CHECKING:
    from patronat.auth import SessionContext

ACTION_LOGS = 'actionLogs'
APPROVAL_GAME_LIMIT = 100
NO_SEASON = 'Sin temporada'

CREW_FIELDS = ('title', 'responsable', 'season', 'membersNames', 'logoURL', 'description')


def _clean(data: dict, partial: bool = False) -> dict:
    cleaned = {key: data[key] for key in CREW_FIELDS if key in data}
    errors = {}
    if not partial or 'title' in cleaned:
        if not str(cleaned.get('title') or '').strip():
            errors['title'] = 'required'
        else:
            cleaned['title'] = cleaned['title'].strip()
            cleaned['slug'] = generate_slug(cleaned['title'])
    for key in ('responsable', 'membersNames'):
        if key in cleaned:
            value = cleaned[key] or []
            if not isinstance(value, list):
                errors[key] = 'mustBeList'
            else:
                cleaned[key] = [str(item).strip() for item in value if str(item).strip()]
    if errors:
        raise ValidationError(errors)
    if 'membersNames' in cleaned:
        cleaned['numberOfMembers'] = len(cleaned['membersNames'])
    return cleaned


def get_crew(crew_id: str) -> dict:
    snap = get_store().document(f"{CREWS}/{crew_id}").get()
    if not snap.exists:
        raise NotFoundError(f"Crew {crew_id} not found")
    return {'id': snap.id, **snap.to_dict()}


def get_crew_by_slug(slug: str) -> dict:
    matches = get_store().collection(CREWS).where('slug', '==', slug).limit(1).get()
    if not matches:
        raise NotFoundError(f"Crew {slug} not found")
    return {'id': matches[0].id, **matches[0].to_dict()}


def list_crews(status: str | None = None, query: str | None = None) -> list[dict]:
    ref = get_store().collection(CREWS)
    if status:
        ref = ref.where('status', '==', status)
    crews = [{'id': snap.id, **snap.to_dict()} for snap in ref.get()]
    return search_collection(CREWS, crews, query)


def crew_games(crew_id: str) -> list[dict]:
    get_crew(crew_id)
    mirrors = get_store().collection(f"{CREWS}/{crew_id}/{GAMES}").get()
    return [{'id': snap.id, **snap.to_dict()} for snap in mirrors]


def register_crew(data: dict, ctx: SessionContext) -> dict:
    """Register a crew awaiting approval; the registering user is a responsable."""
    record = _clean(data)
    record.setdefault('responsable', [])
    if ctx.user_id not in record['responsable']:
        record['responsable'].append(ctx.user_id)
    record.setdefault('membersNames', [])
    record['numberOfMembers'] = len(record['membersNames'])
    record.update({
        'status': CrewStatus.PENDING.value,
        'createdAt': SERVER_TIMESTAMP,
        'updatedAt': SERVER_TIMESTAMP,
    })
    ref = get_store().collection(CREWS).add(record)
    crew = get_crew(ref.id)
    record_change('crew', ref.id, crew['title'], ChangeType.CREATE, ctx, new=crew)
    return crew


def update_crew(crew_id: str, data: dict, ctx: SessionContext) -> dict:
    previous = get_crew(crew_id)
    changes = _clean(data, partial=True)
    changes['updatedAt'] = SERVER_TIMESTAMP
    get_store().document(f"{CREWS}/{crew_id}").update(changes)
    crew = get_crew(crew_id)
    record_change('crew', crew_id, crew['title'], ChangeType.UPDATE, ctx, previous=previous, new=crew)
    return crew


def delete_crew(crew_id: str, ctx: SessionContext) -> None:
    crew = get_crew(crew_id)
    store = get_store()
    store.recursive_delete(store.document(f"{CREWS}/{crew_id}"))
    record_change('crew', crew_id, crew.get('title', ''), ChangeType.DELETE, ctx, previous=crew)


def approve_crew(crew_id: str, ctx: SessionContext) -> tuple[dict, int]:
    """
    Activate a pending crew and give it mirrors of the active games.

    Returns:
        (crew, number of games registered)
    """
    store = get_store()
    crew_ref = store.document(f"{CREWS}/{crew_id}")
    with store.transaction() as tx:
        snap = tx.get(crew_ref)
        if not snap.exists:
            raise NotFoundError(f"Crew {crew_id} not found")
        previous = snap.to_dict()
        if previous.get('status') != CrewStatus.PENDING.value:
            raise ValidationError({'status': 'notPending'})
        tx.update(crew_ref, {
            'status': CrewStatus.ACTIVE.value,
            'updatedAt': SERVER_TIMESTAMP,
            'approvedBy': ctx.user_id,
            'approvedAt': SERVER_TIMESTAMP,
        })
        tx.set(store.collection(ACTION_LOGS).document(), {
            'userId': ctx.user_id,
            'action': 'approve_crew',
            'targetId': crew_id,
            'timestamp': SERVER_TIMESTAMP,
            'details': {'crewName': previous.get('title'), 'previousStatus': previous.get('status')},
        })

    games = store.collection(GAMES).where('status', '==', GameStatus.ACTIVE.value).limit(APPROVAL_GAME_LIMIT).get()
    batch = store.batch()
    for game in games:
        data = game.to_dict()
        if not data.get('name'):
            continue
        batch.set(crew_ref.collection(GAMES).document(game.id), {**mirror_for_game(game.id, data), 'addedBy': ctx.user_id})
    registered = batch.commit()

    crew = get_crew(crew_id)
    record_change('crew', crew_id, crew.get('title', ''), ChangeType.UPDATE, ctx,
                  previous={'id': crew_id, **previous}, new=crew)
    return crew, registered


def set_crew_points(crew_id: str, game_id: str, points: int | float, ctx: SessionContext) -> dict:
    """Score a crew in a game; any positive score marks it as having played."""
    try:
        points = float(points)
    except (TypeError, ValueError):
        raise ValidationError({'points': 'invalidNumber'})
    if points < 0:
        raise ValidationError({'points': 'mustBePositive'})
    points = int(points) if points.is_integer() else points

    ref = get_store().document(f"{CREWS}/{crew_id}/{GAMES}/{game_id}")
    previous = ref.get()
    if not previous.exists:
        raise NotFoundError(f"Crew {crew_id} has no game {game_id}")
    status = ParticipationStatus.PLAYED if points > 0 else ParticipationStatus.PENDING
    ref.update({'points': points, 'participationStatus': status.value, 'updatedAt': SERVER_TIMESTAMP})

    updated = ref.get().to_dict()
    record_change('crewGame', f"{crew_id}/{game_id}", updated.get('gameName') or game_id, ChangeType.UPDATE, ctx,
                  previous=previous.to_dict(), new=updated)
    return {'id': game_id, **updated}


def crew_ranking(season: str | None = None) -> list[dict]:
    """
    Points of every active crew, grouped by game season.

    With ``season`` the list is ordered by that season's points (descending)
    and each entry carries ``points``, ``games`` and ``played`` for it.
    """
    store = get_store()
    ranking = []
    for crew in store.collection(CREWS).where('status', '==', CrewStatus.ACTIVE.value).get():
        data = crew.to_dict()
        season_points: dict[str, float] = {}
        season_games: dict[str, int] = {}
        season_played: dict[str, int] = {}
        for mirror in crew.reference.collection(GAMES).get():
            game = mirror.to_dict()
            key = game.get('gameSeason') or NO_SEASON
            season_points[key] = season_points.get(key, 0) + _as_number(game.get('points'))
            season_games[key] = season_games.get(key, 0) + 1
            if game.get('participationStatus') == ParticipationStatus.PLAYED.value:
                season_played[key] = season_played.get(key, 0) + 1
        entry = {
            'id': crew.id,
            'name': data.get('title'),
            'logoURL': data.get('logoURL'),
            'seasonPoints': season_points,
            'seasonGames': season_games,
            'seasonPlayedGames': season_played,
            'membersCount': len(data.get('membersNames') or []) + len(data.get('responsable') or []),
        }
        if season is not None:
            entry['points'] = season_points.get(season, 0)
            entry['games'] = season_games.get(season, 0)
            entry['played'] = season_played.get(season, 0)
        ranking.append(entry)

    if season is not None:
        ranking.sort(key=lambda entry: (-entry['points'], entry['name'] or ''))
    return ranking


def _as_number(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0


__all__ = [
    'approve_crew',
    'crew_games',
    'crew_ranking',
    'delete_crew',
    'get_crew',
    'get_crew_by_slug',
    'list_crews',
    'register_crew',
    'set_crew_points',
    'update_crew',
]
