import pytest

from scoreboard.services.stats import directory
from scoreboard.services.stats.errors import Conflict, InvalidArgument, NotFound
from scoreboard.services.stats.store import game_key, owner_key


def test_start_schedules_a_tick_loop(engines, scheduler, game_id):
    engines.clocks.set_time(game_id, 10, 0)
    record = engines.clocks.start(game_id)
    assert record.clock.running is True
    assert scheduler.is_active(game_key(game_id))
    # Starting again keeps the single loop
    engines.clocks.start(game_id)
    assert len(scheduler.loops) == 1


def test_tick_counts_down_and_broadcasts(engines, scheduler, broadcaster, game_id):
    engines.clocks.set_time(game_id, 1, 0, quarter=1)
    engines.clocks.start(game_id)
    assert scheduler.fire(game_key(game_id)) is True
    clock = engines.actions.get(game_id).clock
    assert (clock.minutes, clock.seconds, clock.running) == (0, 59, True)
    sent = broadcaster.events('clockUpdated')
    assert sent[-1][1] == game_id
    assert sent[-1][3] == {
        'gameId': game_id,
        'clock': {'quarter': 1, 'minutes': 0, 'seconds': 59, 'running': True},
    }


def test_last_second_stops_the_clock(engines, scheduler, broadcaster, game_id):
    engines.clocks.set_time(game_id, 0, 1)
    engines.clocks.start(game_id)

    assert scheduler.fire(game_key(game_id)) is False
    clock = engines.actions.get(game_id).clock
    assert (clock.minutes, clock.seconds, clock.running) == (0, 0, False)
    assert not scheduler.is_active(game_key(game_id))

    # A straggling tick does nothing
    assert engines.clocks.tick(game_id) is False
    assert engines.actions.get(game_id).clock == clock
    assert len(broadcaster.events('clockUpdated')) == 1


def test_tick_at_zero_stops_immediately(engines, scheduler, game_id):
    engines.clocks.start(game_id)
    assert scheduler.fire(game_key(game_id)) is False
    clock = engines.actions.get(game_id).clock
    assert (clock.minutes, clock.seconds, clock.running) == (0, 0, False)


def test_pause_cancels_ticking(engines, scheduler, game_id):
    engines.clocks.set_time(game_id, 5, 0)
    engines.clocks.start(game_id)
    record = engines.clocks.pause(game_id)
    assert record.clock.running is False
    assert not scheduler.is_active(game_key(game_id))
    assert engines.clocks.tick(game_id) is False
    assert engines.actions.get(game_id).clock.total_seconds == 300


def test_set_time_keeps_running_flag(engines, game_id):
    engines.clocks.start(game_id)
    record = engines.clocks.set_time(game_id, 8, 15, quarter=3)
    assert record.clock.running is True
    assert (record.clock.quarter, record.clock.minutes, record.clock.seconds) == (3, 8, 15)
    record = engines.clocks.set_time(game_id, 7, 0)
    assert record.clock.quarter == 3


@pytest.mark.parametrize('minutes, seconds', [(-1, 0), (5, 60), ('x', 0)])
def test_set_time_rejects_out_of_range(engines, game_id, minutes, seconds):
    with pytest.raises(InvalidArgument):
        engines.clocks.set_time(game_id, minutes, seconds)


def test_reset_clears_everything_and_stops_ticks(engines, scheduler, game_id):
    engines.actions.add_goal(game_id, 'home', 3)
    engines.actions.add_action(game_id, 'away', 'save', 1)
    engines.clocks.set_time(game_id, 9, 9, quarter=2)
    engines.clocks.start(game_id)

    record = engines.clocks.reset(game_id)
    assert not scheduler.is_active(game_key(game_id))
    assert record.actions == ()
    assert record.home_team.score == 0
    assert set(record.away_team.stats.values()) == {0}
    assert record.clock.to_dict() == {'quarter': 0, 'minutes': 0, 'seconds': 0, 'running': False}
    assert engines.clocks.tick(game_id) is False


def test_clock_ops_create_missing_record(engines, make_game):
    bare = make_game(with_stats=False)
    record = engines.clocks.set_time(bare, 20, 0)
    assert record.clock.minutes == 20
    assert engines.actions.get(bare).clock.minutes == 20


def test_clock_ops_on_unknown_game(engines):
    with pytest.raises(NotFound):
        engines.clocks.start(4242)


def test_end_game_stops_clock(engines, scheduler, game_id):
    engines.clocks.set_time(game_id, 3, 0)
    engines.clocks.start(game_id)
    record = engines.clocks.end_game(game_id)
    assert record.clock.running is False
    assert not scheduler.is_active(game_key(game_id))
    with pytest.raises(Conflict):
        engines.clocks.start(game_id)
    with pytest.raises(Conflict):
        engines.clocks.end_game(game_id)


def test_universal_clock_created_lazily(engines, owner):
    state = engines.clocks.universal_state(owner.id)
    assert state.to_dict() == {
        'ownerId': owner.id, 'quarter': 0, 'minutes': 0, 'seconds': 0, 'running': False,
    }


def test_universal_clock_for_unknown_owner(engines):
    with pytest.raises(NotFound):
        engines.clocks.universal_state(999)


def test_universal_tick_fans_out_to_synced_games(
    engines, scheduler, broadcaster, owner, make_field, make_game
):
    first = make_game(field_id=make_field())
    second = make_game(field_id=make_field())
    loose = make_game(field_id=make_field(clock_synced=False))

    engines.clocks.set_universal(owner.id, 10, 0, quarter=1)
    engines.clocks.start_universal(owner.id)
    assert scheduler.fire(owner_key(owner.id)) is True

    universal = engines.clocks.universal_state(owner.id)
    assert (universal.clock.minutes, universal.clock.seconds) == (9, 59)
    for gid in (first, second):
        clock = engines.actions.get(gid).clock
        assert (clock.minutes, clock.seconds, clock.running, clock.quarter) == (9, 59, True, 1)
    assert engines.actions.get(loose).clock.total_seconds == 0

    owner_events = [s for s in broadcaster.sent if s[0] == 'owner']
    assert owner_events[-1][2] == 'universalClockUpdated'
    assert owner_events[-1][3]['seconds'] == 59
    touched = {s[1] for s in broadcaster.events('clockUpdated')}
    assert touched == {first, second}


def test_universal_pause_propagates(engines, scheduler, owner, make_field, make_game):
    gid = make_game(field_id=make_field())
    engines.clocks.set_universal(owner.id, 2, 0)
    engines.clocks.start_universal(owner.id)
    engines.clocks.pause_universal(owner.id)
    assert not scheduler.is_active(owner_key(owner.id))
    assert engines.actions.get(gid).clock.running is False
    assert engines.clocks.tick_universal(owner.id) is False


def test_fan_out_failure_is_logged_not_raised(
    engines, monkeypatch, caplog, owner, make_field, make_game
):
    gid = make_game(field_id=make_field())
    monkeypatch.setattr(directory, 'synced_game_ids', lambda owner_id: [gid, 9999])

    state = engines.clocks.set_universal(owner.id, 4, 30)
    assert (state.clock.minutes, state.clock.seconds) == (4, 30)
    assert engines.actions.get(gid).clock.total_seconds == 270
    assert 'fanout-failed' in caplog.text


class DeferredDispatcher:
    def __init__(self):
        self.jobs = []

    def submit(self, label, fn, *args):
        self.jobs.append((fn, args))


def test_late_fan_out_does_not_restart_paused_games(engines, scheduler, owner, make_field, make_game):
    gid = make_game(field_id=make_field())
    deferred = DeferredDispatcher()
    engines.clocks.dispatcher = deferred

    engines.clocks.set_universal(owner.id, 5, 0)
    engines.clocks.start_universal(owner.id)
    engines.clocks.pause_universal(owner.id)
    # The job queued by start lands after the one queued by pause
    for fn, args in reversed(deferred.jobs):
        fn(*args)

    clock = engines.actions.get(gid).clock
    assert (clock.minutes, clock.seconds, clock.running) == (5, 0, False)
