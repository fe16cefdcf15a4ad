"""Action log: append, delete and undo play-by-play entries.

Every operation is one ``StatStore.update`` transform, so the team
counters are recomputed from the same record snapshot the log change is
applied to.
"""

from dataclasses import replace
from typing import Any, Mapping, Optional
import uuid

from flask import current_app

from . import directory
from .aggregator import apply_action, reverse_action
from .errors import InvalidArgument, NotFound
from .records import (
    ActionEvent,
    ActionType,
    Penalty,
    StatRecord,
    TeamStats,
    parse_action_type,
    parse_int,
    parse_stat_field,
    parse_team,
)
from .store import StatStore


def _append(record: StatRecord, event: ActionEvent) -> StatRecord:
    team_stats = apply_action(record.team_stats(event.team), event.type)
    record = record.with_team(event.team, team_stats)
    return replace(record, actions=record.actions + (event,))


def _remove(record: StatRecord, event: ActionEvent) -> StatRecord:
    team_stats = reverse_action(record.team_stats(event.team), event.type)
    record = record.with_team(event.team, team_stats)
    return replace(record, actions=tuple(a for a in record.actions if a.id != event.id))


class ActionLog:

    def __init__(self, store: StatStore):
        self.store = store

    def create(self, game_id) -> StatRecord:
        return self.store.create(game_id)

    def get(self, game_id) -> StatRecord:
        return self.store.get(game_id)

    def add_action(
        self,
        game_id,
        team,
        action_type,
        player_no,
        penalty: Optional[Mapping[str, Any]] = None,
    ) -> StatRecord:
        """Append an action stamped with the current clock and count it."""
        team = parse_team(team)
        action_type = parse_action_type(action_type)
        player_no = parse_int('playerNo', player_no)
        if action_type is ActionType.PENALTY:
            penalty_info = Penalty.parse(penalty or {})
        elif penalty:
            raise InvalidArgument('penalty fields are only allowed on penalty actions')
        else:
            penalty_info = None
        directory.ensure_open(game_id)

        def transform(record: StatRecord) -> StatRecord:
            event = ActionEvent(
                id=uuid.uuid4().hex,
                type=action_type,
                team=team,
                player_no=player_no,
                quarter=record.clock.quarter,
                minute=record.clock.minutes,
                second=record.clock.seconds,
                penalty=penalty_info,
            )
            return _append(record, event)

        record = self.store.update(game_id, transform)
        current_app.logger.info(
            f"[action-add] game={game_id} team={team.value} type={action_type.value} id={record.actions[-1].id}"
        )
        return record

    def add_goal(self, game_id, team, player_no) -> StatRecord:
        return self.add_action(game_id, team, ActionType.GOAL, player_no)

    def add_penalty(self, game_id, team, player_no, penalty: Mapping[str, Any]) -> StatRecord:
        return self.add_action(game_id, team, ActionType.PENALTY, player_no, penalty=penalty)

    def delete_action(self, game_id, action_id, only_type: Optional[ActionType] = None) -> StatRecord:
        """Remove one action and take it back out of its team's counters.

        Not idempotent: a second delete of the same id raises NotFound.
        """
        def transform(record: StatRecord) -> StatRecord:
            event = record.find_action(action_id)
            if event is None or (only_type is not None and event.type is not only_type):
                raise NotFound(f'action {action_id} not found in game {game_id}')
            return _remove(record, event)

        record = self.store.update(game_id, transform)
        current_app.logger.info(f"[action-delete] game={game_id} id={action_id}")
        return record

    def remove_penalty(self, game_id, action_id) -> StatRecord:
        return self.delete_action(game_id, action_id, only_type=ActionType.PENALTY)

    def undo_last_for_team(self, game_id, team) -> StatRecord:
        """Delete the team's most recently appended action; no-op when none."""
        team = parse_team(team)

        def transform(record: StatRecord) -> StatRecord:
            event = record.last_action_for(team)
            if event is None:
                return record
            return _remove(record, event)

        return self.store.update(game_id, transform)

    def set_score(self, game_id, team, value) -> StatRecord:
        team = parse_team(team)
        value = _clamped(value, 'score')

        def transform(record: StatRecord) -> StatRecord:
            current = record.team_stats(team)
            return record.with_team(team, TeamStats(score=value, stats=dict(current.stats)))

        return self.store.update(game_id, transform)

    def set_stat(self, game_id, team, stat_field, value) -> StatRecord:
        team = parse_team(team)
        stat_field = parse_stat_field(stat_field)
        value = _clamped(value, stat_field)

        def transform(record: StatRecord) -> StatRecord:
            current = record.team_stats(team)
            stats = dict(current.stats)
            stats[stat_field] = value
            return record.with_team(team, TeamStats(score=current.score, stats=stats))

        return self.store.update(game_id, transform)


def _clamped(value, name) -> int:
    # Manual overrides clamp negatives to zero rather than rejecting them
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value < 0:
        value = 0
    return parse_int(name, value)
