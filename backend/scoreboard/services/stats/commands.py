"""Inbound scorekeeper commands and the event each one broadcasts.

``dispatch`` runs a command against the engines and, only when it
succeeds, emits exactly one event carrying the full new state to the
game's room (or the owner's room for universal clock commands).
"""

from enum import Enum
from typing import Any, Callable, Dict, Mapping, NamedTuple

from . import get_engines
from .clock import clock_payload
from .errors import InvalidArgument
from .records import parse_int


class Command(str, Enum):
    SET_SCORE = 'setScore'
    SET_STAT = 'setStat'
    ADD_GOAL = 'addGoal'
    ADD_PENALTY = 'addPenalty'
    ADD_ACTION = 'addAction'
    UNDO_ACTION = 'undoAction'
    DELETE_ACTION = 'deleteAction'
    REMOVE_ACTION = 'removeAction'
    START_CLOCK = 'startClock'
    PAUSE_CLOCK = 'pauseClock'
    SET_CLOCK = 'setClock'
    RESET_GAME = 'resetGame'
    GAME_ENDED = 'gameEnded'
    JOIN_USER = 'joinUser'
    START_UNIVERSAL_CLOCK = 'startUniversalClock'
    PAUSE_UNIVERSAL_CLOCK = 'pauseUniversalClock'
    SET_UNIVERSAL_CLOCK = 'setUniversalClock'


class Outcome(NamedTuple):
    event: str
    payload: Any
    game_id: Any = None
    owner_id: Any = None


_HANDLERS: Dict[Command, Callable[[Mapping[str, Any]], Outcome]] = {}


def _handles(command: Command):
    def register(fn):
        _HANDLERS[command] = fn
        return fn
    return register


def _require(data: Mapping[str, Any], key: str):
    value = data.get(key)
    if value is None or value == '':
        raise InvalidArgument(f'{key} is required')
    return value


def _id(data, key) -> int:
    return parse_int(key, _require(data, key), minimum=1)


def _penalty_fields(data):
    return {k: data.get(k) for k in ('penaltyType', 'penaltyMinutes', 'penaltySeconds', 'infraction')}


def _game_outcome(event, record):
    return Outcome(event, record.to_dict(), game_id=record.game_id)


def _clock_outcome(game_id, record):
    return Outcome('clockUpdated', clock_payload(game_id, record.clock), game_id=game_id)


@_handles(Command.SET_SCORE)
def _set_score(data):
    record = get_engines().actions.set_score(_id(data, 'gameId'), _require(data, 'team'), _require(data, 'value'))
    return _game_outcome('scoreUpdated', record)


@_handles(Command.SET_STAT)
def _set_stat(data):
    record = get_engines().actions.set_stat(
        _id(data, 'gameId'), _require(data, 'team'), _require(data, 'field'), _require(data, 'value')
    )
    return _game_outcome('statUpdated', record)


@_handles(Command.ADD_GOAL)
def _add_goal(data):
    record = get_engines().actions.add_goal(_id(data, 'gameId'), _require(data, 'team'), _require(data, 'playerNo'))
    return _game_outcome('goalAdded', record)


@_handles(Command.ADD_PENALTY)
def _add_penalty(data):
    record = get_engines().actions.add_penalty(
        _id(data, 'gameId'), _require(data, 'team'), _require(data, 'playerNo'), _penalty_fields(data)
    )
    return _game_outcome('penaltyAdded', record)


@_handles(Command.ADD_ACTION)
def _add_action(data):
    action_type = _require(data, 'type')
    penalty = _penalty_fields(data) if action_type == 'penalty' else None
    record = get_engines().actions.add_action(
        _id(data, 'gameId'), _require(data, 'team'), action_type, _require(data, 'playerNo'), penalty
    )
    return _game_outcome('actionAdded', record)


@_handles(Command.UNDO_ACTION)
def _undo_action(data):
    record = get_engines().actions.undo_last_for_team(_id(data, 'gameId'), _require(data, 'team'))
    return _game_outcome('statUpdated', record)


@_handles(Command.DELETE_ACTION)
def _delete_action(data):
    record = get_engines().actions.delete_action(_id(data, 'gameId'), _require(data, 'actionId'))
    return _game_outcome('statUpdated', record)


@_handles(Command.REMOVE_ACTION)
def _remove_action(data):
    record = get_engines().actions.remove_penalty(_id(data, 'gameId'), _require(data, 'actionId'))
    return _game_outcome('penaltyRemoved', record)


@_handles(Command.START_CLOCK)
def _start_clock(data):
    game_id = _id(data, 'gameId')
    return _clock_outcome(game_id, get_engines().clocks.start(game_id))


@_handles(Command.PAUSE_CLOCK)
def _pause_clock(data):
    game_id = _id(data, 'gameId')
    return _clock_outcome(game_id, get_engines().clocks.pause(game_id))


@_handles(Command.SET_CLOCK)
def _set_clock(data):
    game_id = _id(data, 'gameId')
    record = get_engines().clocks.set_time(
        game_id, _require(data, 'minutes'), _require(data, 'seconds'), data.get('quarter')
    )
    return _clock_outcome(game_id, record)


@_handles(Command.RESET_GAME)
def _reset_game(data):
    return _game_outcome('gameReset', get_engines().clocks.reset(_id(data, 'gameId')))


@_handles(Command.GAME_ENDED)
def _game_ended(data):
    return _game_outcome('gameEnded', get_engines().clocks.end_game(_id(data, 'gameId')))


@_handles(Command.START_UNIVERSAL_CLOCK)
def _start_universal(data):
    state = get_engines().clocks.start_universal(_id(data, 'ownerId'))
    return Outcome('universalClockUpdated', state.to_dict(), owner_id=state.owner_id)


@_handles(Command.PAUSE_UNIVERSAL_CLOCK)
def _pause_universal(data):
    state = get_engines().clocks.pause_universal(_id(data, 'ownerId'))
    return Outcome('universalClockUpdated', state.to_dict(), owner_id=state.owner_id)


@_handles(Command.SET_UNIVERSAL_CLOCK)
def _set_universal(data):
    state = get_engines().clocks.set_universal(
        _id(data, 'ownerId'), _require(data, 'minutes'), _require(data, 'seconds'), data.get('quarter')
    )
    return Outcome('universalClockUpdated', state.to_dict(), owner_id=state.owner_id)


def parse_command(value) -> Command:
    try:
        command = Command(value)
    except ValueError:
        raise InvalidArgument(f'unknown command {value!r}')
    if command not in _HANDLERS:
        raise InvalidArgument(f'{command.value} is not a state command')
    return command


def dispatch(command, data: Mapping[str, Any]) -> Outcome:
    """Run command and broadcast its result. Errors propagate unbroadcast."""
    command = parse_command(command)
    outcome = _HANDLERS[command](data or {})
    broadcaster = get_engines().broadcaster
    if outcome.owner_id is not None:
        broadcaster.to_owner(outcome.owner_id, outcome.event, outcome.payload)
    else:
        broadcaster.to_game(outcome.game_id, outcome.event, outcome.payload)
    return outcome
