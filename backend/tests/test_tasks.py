import time

import pytest

from scoreboard import create_app, db
from scoreboard.models import Game
from scoreboard.services.stats.store import game_key
from scoreboard.services.stats.tasks import BestEffortDispatcher, TickScheduler

INTERVAL = 0.05


def wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class CountingBroadcaster:
    def __init__(self):
        self.ticks = 0

    def to_game(self, game_id, event, payload):
        if event == 'clockUpdated':
            self.ticks += 1

    def to_owner(self, owner_id, event, payload):
        pass


@pytest.fixture()
def live_app(tmp_path):
    class LiveConfig:
        TESTING = True
        SECRET_KEY = 'test-secret'
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'live.db'}"
        SQLALCHEMY_TRACK_MODIFICATIONS = False
        CORS_ORIGINS = '*'
        CLOCK_TICK_INTERVAL_SEC = INTERVAL

    application = create_app(LiveConfig)
    with application.app_context():
        db.create_all()
        yield application
        application.extensions['stats'].clocks.shutdown()
        # let cancelled loops wake up and exit before the tables go away
        time.sleep(INTERVAL * 3)
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def live(live_app):
    engines = live_app.extensions['stats']
    engines.clocks.broadcaster = CountingBroadcaster()
    return engines


@pytest.fixture()
def live_game(live_app, live):
    game = Game(home_team_name='Hawks', away_team_name='Owls')
    db.session.add(game)
    db.session.commit()
    live.actions.create(game.id)
    return game.id


def _clock(engines, game_id):
    clock = engines.store.get(game_id).clock
    return clock.minutes, clock.seconds, clock.running


def test_live_scheduler_is_used(live):
    assert isinstance(live.clocks.scheduler, TickScheduler)
    assert live.clocks.scheduler.interval == INTERVAL


def test_clock_runs_down_and_deregisters(live, live_game):
    live.clocks.set_time(live_game, 0, 3)
    live.clocks.start(live_game)
    assert live.clocks.scheduler.is_active(game_key(live_game))

    assert wait_for(lambda: not live.clocks.scheduler.is_active(game_key(live_game)))
    assert _clock(live, live_game) == (0, 0, False)
    assert live.clocks.broadcaster.ticks == 3


def test_pause_stops_ticks(live, live_game):
    live.clocks.set_time(live_game, 5, 0)
    live.clocks.start(live_game)
    assert wait_for(lambda: live.clocks.broadcaster.ticks >= 2)

    live.clocks.pause(live_game)
    paused = _clock(live, live_game)
    assert paused[2] is False
    assert not live.clocks.scheduler.is_active(game_key(live_game))

    time.sleep(INTERVAL * 6)
    assert _clock(live, live_game) == paused


def test_restarting_keeps_a_single_loop(live, live_game):
    live.clocks.set_time(live_game, 5, 0)
    for _ in range(5):
        live.clocks.start(live_game)
        live.clocks.pause(live_game)
    live.clocks.start(live_game)
    started = live.clocks.broadcaster.ticks

    time.sleep(INTERVAL * 10)
    live.clocks.pause(live_game)

    ticks = live.clocks.broadcaster.ticks - started
    # one loop gives about ten ticks here, two loops about twenty
    assert 1 <= ticks <= 14
    minutes, seconds, _ = _clock(live, live_game)
    assert wait_for(lambda: 300 - (minutes * 60 + seconds) == live.clocks.broadcaster.ticks)


def test_tick_error_is_logged_and_loop_continues(live_app, caplog):
    scheduler = TickScheduler(live_app, interval=0.01)
    calls = []

    def tick():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError('boom')
        return len(calls) < 3

    assert scheduler.schedule('game:1', tick) is True
    assert wait_for(lambda: not scheduler.is_active('game:1'))
    assert len(calls) == 3
    assert 'tick-error' in caplog.text


def test_schedule_during_final_tick_keeps_loop_alive(live_app):
    scheduler = TickScheduler(live_app, interval=0.01)
    calls = []
    renewals = []

    def tick():
        calls.append(1)
        if len(calls) == 1:
            # a start arriving while this tick is about to stop the loop
            renewals.append(scheduler.schedule('game:1', tick))
        return False

    scheduler.schedule('game:1', tick)
    assert wait_for(lambda: not scheduler.is_active('game:1'))
    assert renewals == [False]
    assert len(calls) == 2


def test_cancel_all_stops_every_loop(live_app):
    scheduler = TickScheduler(live_app, interval=0.01)
    scheduler.schedule('game:1', lambda: True)
    scheduler.schedule('owner:1', lambda: True)
    scheduler.cancel_all()
    assert not scheduler.is_active('game:1')
    assert not scheduler.is_active('owner:1')
    assert scheduler.cancel('game:1') is False


def test_background_job_failure_is_only_logged(live_app, caplog):
    dispatcher = BestEffortDispatcher(live_app, inline=False)
    ran = []

    def job(owner_id):
        ran.append(owner_id)
        raise RuntimeError('field directory down')

    dispatcher.submit('fanout', job, 7)
    assert wait_for(lambda: 'fanout-failed' in caplog.text)
    assert ran == [7]
    assert 'field directory down' in caplog.text
