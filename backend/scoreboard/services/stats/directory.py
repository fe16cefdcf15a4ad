"""Lookups into the game and field tables owned by the CRUD side."""

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from scoreboard import db
from scoreboard.models import Field, Game
from .errors import Conflict, NotFound, StoreUnavailable


@dataclass(frozen=True)
class GameRef:
    game_id: int
    field_id: Optional[int]
    owner_id: Optional[int]
    ended: bool


def resolve_game(game_id) -> Optional[GameRef]:
    try:
        game = db.session.get(Game, game_id)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreUnavailable(f'game directory unavailable: {exc}') from exc
    if game is None:
        return None
    return GameRef(
        game_id=game.id,
        field_id=game.field_id,
        owner_id=game.owner_id,
        ended=bool(game.end_game),
    )


def ensure_open(game_id) -> None:
    ref = resolve_game(game_id)
    if ref is not None and ref.ended:
        raise Conflict(f'game {game_id} has ended')


def mark_game_ended(game_id) -> GameRef:
    game = db.session.get(Game, game_id)
    if game is None:
        raise NotFound(f'game {game_id} not found')
    if game.end_game:
        raise Conflict(f'game {game_id} has already ended')
    game.end_game = True
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreUnavailable(f'could not end game {game_id}') from exc
    return GameRef(game_id=game.id, field_id=game.field_id, owner_id=game.owner_id, ended=True)


def synced_game_ids(owner_id) -> List[int]:
    """Games played on fields that follow owner_id's universal clock."""
    rows = (
        db.session.query(Game.id)
        .join(Field, Game.field_id == Field.id)
        .filter(
            Field.owner_id == owner_id,
            Field.clock_synced.is_(True),
            Game.end_game.is_(False),
        )
        .order_by(Game.id)
        .all()
    )
    return [row[0] for row in rows]
