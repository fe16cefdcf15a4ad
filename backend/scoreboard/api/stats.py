from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from scoreboard.services.stats import get_engines
from scoreboard.services.stats.commands import Command, dispatch
from scoreboard.services.stats.errors import InvalidArgument, StatsError


stats = Blueprint('stats', __name__)

_CLOCK_ACTIONS = {
    'start': Command.START_CLOCK,
    'pause': Command.PAUSE_CLOCK,
    'set': Command.SET_CLOCK,
}


@stats.app_errorhandler(StatsError)
def handle_stats_error(exc):
    return jsonify(exc.to_dict()), exc.status


def _run(command, **ids):
    data = dict(request.get_json(silent=True) or {})
    data.update(ids)
    outcome = dispatch(command, data)
    return jsonify(outcome.payload)


@stats.route('/stats/<int:game_id>', methods=['POST'])
def create_stats(game_id):
    record = get_engines().actions.create(game_id)
    return jsonify(record.to_dict()), 201


@stats.route('/stats/<int:game_id>', methods=['GET'])
def get_stats(game_id):
    return jsonify(get_engines().actions.get(game_id).to_dict())


@stats.route('/stats/<int:game_id>/score', methods=['POST'])
def set_score(game_id):
    return _run(Command.SET_SCORE, gameId=game_id)


@stats.route('/stats/<int:game_id>/stat', methods=['POST'])
def set_stat(game_id):
    return _run(Command.SET_STAT, gameId=game_id)


@stats.route('/stats/<int:game_id>/goals', methods=['POST'])
def add_goal(game_id):
    return _run(Command.ADD_GOAL, gameId=game_id)


@stats.route('/stats/<int:game_id>/penalties', methods=['POST'])
def add_penalty(game_id):
    return _run(Command.ADD_PENALTY, gameId=game_id)


@stats.route('/stats/<int:game_id>/penalties/<string:action_id>', methods=['DELETE'])
def remove_penalty(game_id, action_id):
    return _run(Command.REMOVE_ACTION, gameId=game_id, actionId=action_id)


@stats.route('/stats/<int:game_id>/actions', methods=['POST'])
def add_action(game_id):
    return _run(Command.ADD_ACTION, gameId=game_id)


@stats.route('/stats/<int:game_id>/actions/undo', methods=['POST'])
def undo_action(game_id):
    return _run(Command.UNDO_ACTION, gameId=game_id)


@stats.route('/stats/<int:game_id>/actions/<string:action_id>', methods=['DELETE'])
def delete_action(game_id, action_id):
    return _run(Command.DELETE_ACTION, gameId=game_id, actionId=action_id)


@stats.route('/stats/<int:game_id>/clock', methods=['POST'])
def update_clock(game_id):
    data = request.get_json(silent=True) or {}
    command = _CLOCK_ACTIONS.get(data.get('action'))
    if command is None:
        raise InvalidArgument("action must be one of 'start', 'pause', 'set'")
    return _run(command, gameId=game_id)


@stats.route('/stats/<int:game_id>/reset', methods=['POST'])
def reset_game(game_id):
    return _run(Command.RESET_GAME, gameId=game_id)


@stats.route('/stats/<int:game_id>/end', methods=['POST'])
def end_game(game_id):
    return _run(Command.GAME_ENDED, gameId=game_id)


@stats.route('/clock/universal', methods=['GET'])
@login_required
def get_universal_clock():
    return jsonify(get_engines().clocks.universal_state(current_user.id).to_dict())


@stats.route('/clock/universal/start', methods=['POST'])
@login_required
def start_universal_clock():
    return _run(Command.START_UNIVERSAL_CLOCK, ownerId=current_user.id)


@stats.route('/clock/universal/pause', methods=['POST'])
@login_required
def pause_universal_clock():
    return _run(Command.PAUSE_UNIVERSAL_CLOCK, ownerId=current_user.id)


@stats.route('/clock/universal/set', methods=['POST'])
@login_required
def set_universal_clock():
    return _run(Command.SET_UNIVERSAL_CLOCK, ownerId=current_user.id)
