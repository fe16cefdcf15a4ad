from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from scoreboard import socketio
from scoreboard.services.stats import get_engines
from scoreboard.services.stats.broadcast import NAMESPACE, game_room, owner_room
from scoreboard.services.stats.commands import Command, dispatch
from scoreboard.services.stats.errors import InvalidArgument, StatsError
from scoreboard.services.stats.records import parse_int


def _get_sid() -> str:
    return request.sid  # type: ignore


def _emit_error(exc: StatsError, command: str) -> None:
    # Only the originating socket hears about a failed command
    payload = exc.to_dict()
    payload['command'] = command
    emit('error', payload)


def _id(data, key) -> int:
    value = (data or {}).get(key)
    if value is None:
        raise InvalidArgument(f'{key} is required')
    return parse_int(key, value, minimum=1)


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(reason=None):
    # Flask-SocketIO drops the sid from every room on its own
    current_app.logger.info(f"[ws-disconnect] sid={_get_sid()} reason={reason}")


def handle_join_game(data):
    try:
        game_id = _id(data, 'gameId')
        record = get_engines().actions.get(game_id)
    except StatsError as exc:
        _emit_error(exc, 'join_game')
        return
    room = game_room(game_id)
    join_room(room)
    emit('joined', {'room': room})
    # Late joiners start from the current snapshot
    emit('statUpdated', record.to_dict())


def handle_leave_game(data):
    try:
        game_id = _id(data, 'gameId')
    except StatsError as exc:
        _emit_error(exc, 'leave_game')
        return
    room = game_room(game_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_join_user(data):
    try:
        owner_id = _id(data, 'ownerId')
        state = get_engines().clocks.universal_state(owner_id)
    except StatsError as exc:
        _emit_error(exc, Command.JOIN_USER.value)
        return
    room = owner_room(owner_id)
    join_room(room)
    emit('joined', {'room': room})
    emit('universalClockState', state.to_dict())


def handle_leave_user(data):
    try:
        owner_id = _id(data, 'ownerId')
    except StatsError as exc:
        _emit_error(exc, 'leave_user')
        return
    room = owner_room(owner_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def _command_handler(command: Command):
    def handle_command(data=None):
        try:
            outcome = dispatch(command, data or {})
        except StatsError as exc:
            current_app.logger.info(f"[command-rejected] {command.value} sid={_get_sid()} {exc.code}: {exc.message}")
            _emit_error(exc, command.value)
            return {'ok': False, 'code': exc.code}
        return {'ok': True, 'event': outcome.event}
    handle_command.__name__ = f'handle_{command.name.lower()}'
    return handle_command


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('join_game', handle_join_game, namespace=NAMESPACE)
    socketio.on_event('leave_game', handle_leave_game, namespace=NAMESPACE)
    socketio.on_event('join_user', handle_join_user, namespace=NAMESPACE)
    socketio.on_event(Command.JOIN_USER.value, handle_join_user, namespace=NAMESPACE)
    socketio.on_event('leave_user', handle_leave_user, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)

    for command in Command:
        if command is Command.JOIN_USER:
            continue
        socketio.on_event(command.value, _command_handler(command), namespace=NAMESPACE)
