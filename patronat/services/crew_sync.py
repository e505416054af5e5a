"""Keep the per-crew game mirrors (``crews/{crewId}/games/{gameId}``) in sync.

Every crew holds a copy of the game fields it needs for its scoreboard. Game
edits are pushed to the crews that already have the mirror, one transaction
per chunk of crews so that the existence check and the write see the same
state. ``reconcile_crew_games`` repairs whatever drifted anyway.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from flask import current_app

from patronat.models import CREWS, GAMES, CrewStatus, ParticipationStatus
from patronat.services.store import SERVER_TIMESTAMP, DocumentSnapshot, get_store

CREW_BATCH_LIMIT = 450

# Mirror field -> canonical game field
MIRRORED_FIELDS = {
    'gameName': 'name',
    'gameSeason': 'season',
    'gameDate': 'date',
    'gameStatus': 'status',
}


@dataclass
class SyncReport:
    """What a sync pass wrote: documents touched and operations per commit."""

    updated: int = 0
    created: int = 0
    removed: int = 0
    commits: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'updated': self.updated,
            'created': self.created,
            'removed': self.removed,
            'commits': list(self.commits),
        }


def batch_limit() -> int:
    return min(current_app.config.get('CREW_BATCH_LIMIT', CREW_BATCH_LIMIT), CREW_BATCH_LIMIT)


def _chunks(items: list, size: int) -> Iterable[list]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def mirror_for_game(game_id: str, game: dict) -> dict:
    """Initial mirror document of ``game`` for a crew."""
    return {
        'gameId': game_id,
        'gameName': game.get('name'),
        'gameSeason': game.get('season'),
        'gameDate': game.get('date'),
        'gameStatus': game.get('status'),
        'participationStatus': ParticipationStatus.PENDING.value,
        'points': 0,
        'createdAt': SERVER_TIMESTAMP,
        'updatedAt': SERVER_TIMESTAMP,
    }


def mirrored_fields(game: dict) -> dict:
    return {mirror: game.get(source) for mirror, source in MIRRORED_FIELDS.items()}


def active_crews(season: str | None = None) -> list[DocumentSnapshot]:
    query = get_store().collection(CREWS).where('status', '==', CrewStatus.ACTIVE.value)
    if season is not None:
        query = query.where('season', '==', season)
    return query.get()


def add_game_to_crews(game_id: str, game: dict, crews: list[DocumentSnapshot]) -> SyncReport:
    """Create the mirror of a new game in each of ``crews``."""
    store = get_store()
    report = SyncReport()
    for chunk in _chunks(crews, batch_limit()):
        batch = store.batch()
        for crew in chunk:
            batch.set(crew.reference.collection(GAMES).document(game_id), mirror_for_game(game_id, game))
        report.commits.append(batch.commit())
        report.created += len(chunk)
    return report


def update_game_in_crews(game_id: str, fields: dict) -> SyncReport:
    """
    Push ``fields`` into every existing mirror of ``game_id``.

    Crews are processed in chunks of at most 450; each chunk reads mirror
    existence and writes inside one transaction, so a mirror deleted
    concurrently is never resurrected by a blind write.
    """
    store = get_store()
    update = {**fields, 'updatedAt': SERVER_TIMESTAMP}
    crews = store.collection(CREWS).get()
    report = SyncReport()

    for chunk in _chunks(crews, batch_limit()):
        with store.transaction() as tx:
            for crew in chunk:
                mirror = crew.reference.collection(GAMES).document(game_id)
                if tx.get(mirror).exists:
                    tx.update(mirror, update)
            operations = len(tx)
        if operations:
            report.commits.append(operations)
            report.updated += operations

    current_app.logger.info(f"Game {game_id}: updated {report.updated} crew mirrors in {len(report.commits)} commits")
    return report


def update_game_status_in_crews(game_id: str, status: str) -> SyncReport:
    return update_game_in_crews(game_id, {'gameStatus': status})


def remove_game_from_crews(game_id: str) -> SyncReport:
    store = get_store()
    crews = store.collection(CREWS).get()
    report = SyncReport()
    for chunk in _chunks(crews, batch_limit()):
        with store.transaction() as tx:
            for crew in chunk:
                mirror = crew.reference.collection(GAMES).document(game_id)
                if tx.get(mirror).exists:
                    tx.delete(mirror)
            operations = len(tx)
        if operations:
            report.commits.append(operations)
            report.removed += operations
    return report


def reconcile_crew_games(season: str | None = None) -> SyncReport:
    """
    Repair crew mirrors from the canonical games. Safe to run repeatedly.

    * every active crew gets a mirror of each game of its season (all games
      when the crew has no season) that it is missing;
    * mirror fields that drifted from the game are rewritten;
    * mirrors whose game no longer exists are removed.

    ``participationStatus`` and ``points`` belong to the crew and are kept.
    """
    store = get_store()
    games = {snap.id: snap.to_dict() for snap in store.collection(GAMES).get()}
    report = SyncReport()
    pending: list[tuple[str, object, dict | None]] = []

    for crew in store.collection(CREWS).get():
        crew_data = crew.to_dict()
        crew_season = crew_data.get('season')
        if season is not None and crew_season != season:
            continue
        mirrors = {snap.id: snap for snap in crew.reference.collection(GAMES).get()}

        for game_id, mirror in mirrors.items():
            game = games.get(game_id)
            if game is None:
                pending.append(('delete', mirror.reference, None))
                continue
            wanted = mirrored_fields(game)
            if any(mirror.get(key) != value for key, value in wanted.items()):
                pending.append(('update', mirror.reference, wanted))

        if crew_data.get('status') != CrewStatus.ACTIVE.value:
            continue
        for game_id, game in games.items():
            if game_id in mirrors:
                continue
            if crew_season and game.get('season') != crew_season:
                continue
            pending.append(('create', crew.reference.collection(GAMES).document(game_id), game))

    for chunk in _chunks(pending, batch_limit()):
        batch = store.batch()
        for action, ref, payload in chunk:
            if action == 'delete':
                batch.delete(ref)
                report.removed += 1
            elif action == 'update':
                batch.update(ref, {**payload, 'updatedAt': SERVER_TIMESTAMP})
                report.updated += 1
            else:
                batch.set(ref, mirror_for_game(ref.id, payload))
                report.created += 1
        report.commits.append(batch.commit())

    current_app.logger.info(
        f"Crew mirror reconciliation: {report.created} created, {report.updated} updated, {report.removed} removed"
    )
    return report


__all__ = [
    'CREW_BATCH_LIMIT',
    'SyncReport',
    'active_crews',
    'add_game_to_crews',
    'mirror_for_game',
    'reconcile_crew_games',
    'remove_game_from_crews',
    'update_game_in_crews',
    'update_game_status_in_crews',
]
