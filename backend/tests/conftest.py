import os
import sys
import pytest

# Ensure the backend root (containing the `scoreboard` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from scoreboard import create_app, db, socketio
from scoreboard.models import Field, Game, User
from scoreboard.services.stats.records import ACTION_EFFECTS, ActionType, Team


class ManualScheduler:
    """Tick registry whose loops only advance when a test calls fire()."""

    def __init__(self):
        self.loops = {}

    def is_active(self, clock_id):
        return clock_id in self.loops

    def schedule(self, clock_id, tick_fn):
        if clock_id in self.loops:
            return False
        self.loops[clock_id] = tick_fn
        return True

    def cancel(self, clock_id):
        return self.loops.pop(clock_id, None) is not None

    def cancel_all(self):
        self.loops.clear()

    def fire(self, clock_id):
        tick_fn = self.loops.get(clock_id)
        if tick_fn is None:
            return False
        keep_going = tick_fn()
        if not keep_going:
            self.loops.pop(clock_id, None)
        return keep_going


class RecordingBroadcaster:
    def __init__(self):
        self.sent = []

    def to_game(self, game_id, event, payload):
        self.sent.append(('game', game_id, event, payload))

    def to_owner(self, owner_id, event, payload):
        self.sent.append(('owner', owner_id, event, payload))

    def events(self, event):
        return [s for s in self.sent if s[2] == event]


def assert_counters_match_log(record):
    for team in Team:
        team_stats = record.team_stats(team)
        live = [a for a in record.actions if a.team is team]
        for action_type, effect in ACTION_EFFECTS.items():
            assert team_stats.stats[effect.counter] == sum(1 for a in live if a.type is action_type)
        assert team_stats.score == sum(1 for a in live if a.type is ActionType.GOAL)


@pytest.fixture()
def check_counters():
    return assert_counters_match_log


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def flask_app(tmp_path, scheduler):
    class TestConfig:
        TESTING = True
        SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
        # File-backed so worker threads share the same database
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'test.db'}"
        SQLALCHEMY_TRACK_MODIFICATIONS = False
        CORS_ORIGINS = '*'
        STORE_LOCK_TIMEOUT_SEC = 5
        STORE_RETRY_LIMIT = 3

    application = create_app(TestConfig, scheduler=scheduler)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def engines(flask_app):
    return flask_app.extensions['stats']


@pytest.fixture()
def broadcaster(engines):
    recorder = RecordingBroadcaster()
    engines.clocks.broadcaster = recorder
    return recorder


@pytest.fixture()
def owner(flask_app):
    user = User(username='director')
    user.set_password('password')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture()
def make_field(flask_app, owner):
    def _make(clock_synced=True, owner_id=None):
        field = Field(name='Field', owner_id=owner_id or owner.id, clock_synced=clock_synced)
        db.session.add(field)
        db.session.commit()
        return field.id
    return _make


@pytest.fixture()
def make_game(flask_app, owner, engines):
    def _make(field_id=None, with_stats=True):
        game = Game(home_team_name='Hawks', away_team_name='Owls', field_id=field_id, owner_id=owner.id)
        db.session.add(game)
        db.session.commit()
        if with_stats:
            engines.actions.create(game.id)
        return game.id
    return _make


@pytest.fixture()
def game_id(make_game):
    return make_game()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
