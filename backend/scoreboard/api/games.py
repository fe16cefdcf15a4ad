from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from scoreboard import db
from scoreboard.models import Field, Game
from scoreboard.services.stats import get_engines
from scoreboard.services.stats.store import game_key


games = Blueprint('games', __name__)


@games.route('/fields', methods=['POST'])
@login_required
def create_field():
    data = request.get_json(silent=True) or {}
    name = data.get('name')
    if not name:
        return jsonify({'error': 'Field name is required'}), 400
    field = Field(name=name, owner_id=current_user.id, clock_synced=bool(data.get('clock_synced')))
    db.session.add(field)
    db.session.commit()
    return jsonify(field.to_dict()), 201


@games.route('/games', methods=['POST'])
@login_required
def create_game():
    """Create a game together with its empty statistics record."""
    data = request.get_json(silent=True) or {}
    home = data.get('home_team_name')
    away = data.get('away_team_name')
    if not all([home, away]):
        return jsonify({'error': 'Home and away team names are required'}), 400

    field_id = data.get('field_id')
    if field_id is not None and db.session.get(Field, field_id) is None:
        return jsonify({'error': 'Field not found'}), 404

    game = Game(home_team_name=home, away_team_name=away, field_id=field_id, owner_id=current_user.id)
    db.session.add(game)
    db.session.commit()
    record = get_engines().actions.create(game.id)
    current_app.logger.info(f"[game-create] game={game.id} field={field_id}")
    return jsonify({'game': game.to_dict(), 'gameStatistics': record.to_dict()}), 201


@games.route('/games/<int:game_id>', methods=['GET'])
def get_game(game_id):
    game = db.get_or_404(Game, game_id)
    record = game.statistics.to_record() if game.statistics else None
    return jsonify({'game': game.to_dict(), 'gameStatistics': record.to_dict() if record else None})


@games.route('/games/<int:game_id>', methods=['DELETE'])
@login_required
def delete_game(game_id):
    db.get_or_404(Game, game_id)
    engines = get_engines()
    engines.clocks.scheduler.cancel(game_key(game_id))
    # Statistics go first, under the game's write lock
    engines.store.delete(game_id)
    game = db.get_or_404(Game, game_id)
    db.session.delete(game)
    db.session.commit()
    current_app.logger.info(f"[game-delete] game={game_id}")
    return jsonify({'message': 'Game deleted'})
