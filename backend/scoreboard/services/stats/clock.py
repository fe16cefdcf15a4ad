"""Game clocks and per-owner universal clocks.

A clock is either stopped or running. While running, the scheduler
calls ``tick`` once per interval; the tick that brings the clock to 0:00
also stops it, and returning False tells the scheduler to drop the loop.
Universal clocks additionally push their state into every game played on
a field synced to the owner. That push is best-effort and never fails
the universal clock update itself.
"""

from dataclasses import replace
from functools import partial
from typing import Optional

from . import directory
from .errors import NotFound, PropagationFailure, StatsError
from .records import Clock, StatRecord, UniversalClockState, parse_int
from .store import StatStore, UniversalClockStore, game_key, owner_key


def clock_payload(game_id, clock: Clock):
    return {'gameId': game_id, 'clock': clock.to_dict()}


def _set_clock(clock: Clock, minutes, seconds, quarter=None) -> Clock:
    minutes = parse_int('minutes', minutes)
    seconds = parse_int('seconds', seconds, maximum=59)
    quarter = clock.quarter if quarter is None else parse_int('quarter', quarter)
    return replace(clock, minutes=minutes, seconds=seconds, quarter=quarter)


def _count_down(clock: Clock) -> Clock:
    if clock.total_seconds <= 0:
        return replace(clock, minutes=0, seconds=0, running=False)
    clock = clock.with_total(clock.total_seconds - 1)
    if clock.total_seconds == 0:
        clock = replace(clock, running=False)
    return clock


class ClockEngine:

    def __init__(
        self,
        app,
        store: StatStore,
        universal_store: UniversalClockStore,
        scheduler,
        dispatcher,
        broadcaster,
    ):
        self.app = app
        self.store = store
        self.universal_store = universal_store
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.broadcaster = broadcaster

    # ---- game clocks ----

    def _update_clock(self, game_id, fn) -> StatRecord:
        return self.store.update(
            game_id,
            lambda record: replace(record, clock=fn(record.clock)),
            create_missing=True,
        )

    def start(self, game_id) -> StatRecord:
        directory.ensure_open(game_id)
        record = self._update_clock(game_id, lambda clock: replace(clock, running=True))
        self.scheduler.schedule(game_key(game_id), partial(self._tick_game, game_id))
        self.app.logger.info(f"[clock-start] game={game_id} at {record.clock.minutes:02d}:{record.clock.seconds:02d}")
        return record

    def pause(self, game_id) -> StatRecord:
        self.scheduler.cancel(game_key(game_id))
        record = self._update_clock(game_id, lambda clock: replace(clock, running=False))
        self.app.logger.info(f"[clock-pause] game={game_id}")
        return record

    def set_time(self, game_id, minutes, seconds, quarter=None) -> StatRecord:
        # Validate before taking the lock
        _set_clock(Clock(), minutes, seconds, quarter)
        return self._update_clock(game_id, lambda clock: _set_clock(clock, minutes, seconds, quarter))

    def tick(self, game_id) -> bool:
        """Count the game clock down one second. Returns False once stopped."""
        changed = False

        def transform(record: StatRecord) -> StatRecord:
            nonlocal changed
            if not record.clock.running:
                return record
            changed = True
            return replace(record, clock=_count_down(record.clock))

        record = self.store.update(game_id, transform)
        if not changed:
            return False
        self.broadcaster.to_game(game_id, 'clockUpdated', clock_payload(game_id, record.clock))
        if not record.clock.running:
            self.app.logger.info(f"[clock-expired] game={game_id}")
            return False
        return True

    def _tick_game(self, game_id) -> bool:
        try:
            return self.tick(game_id)
        except NotFound:
            self.app.logger.info(f"[clock-tick-stop] game={game_id} statistics gone")
            return False

    def reset(self, game_id) -> StatRecord:
        """Zero score, counters, action log and clock in one write."""
        # A pending tick must not bring the clock back after the reset
        self.scheduler.cancel(game_key(game_id))
        record = self.store.update(game_id, lambda record: StatRecord(game_id=record.game_id))
        self.app.logger.info(f"[game-reset] game={game_id}")
        return record

    def end_game(self, game_id) -> StatRecord:
        directory.mark_game_ended(game_id)
        self.scheduler.cancel(game_key(game_id))
        record = self._update_clock(game_id, lambda clock: replace(clock, running=False))
        self.app.logger.info(f"[game-ended] game={game_id}")
        return record

    # ---- universal clocks ----

    def universal_state(self, owner_id) -> UniversalClockState:
        return self.universal_store.get(owner_id)

    def _update_universal(self, owner_id, fn) -> UniversalClockState:
        return self.universal_store.update(owner_id, lambda state: replace(state, clock=fn(state.clock)))

    def start_universal(self, owner_id) -> UniversalClockState:
        state = self._update_universal(owner_id, lambda clock: replace(clock, running=True))
        self.scheduler.schedule(owner_key(owner_id), partial(self._tick_owner, owner_id))
        self.app.logger.info(f"[universal-start] owner={owner_id}")
        self._fan_out(state)
        return state

    def pause_universal(self, owner_id) -> UniversalClockState:
        self.scheduler.cancel(owner_key(owner_id))
        state = self._update_universal(owner_id, lambda clock: replace(clock, running=False))
        self.app.logger.info(f"[universal-pause] owner={owner_id}")
        self._fan_out(state)
        return state

    def set_universal(self, owner_id, minutes, seconds, quarter=None) -> UniversalClockState:
        _set_clock(Clock(), minutes, seconds, quarter)
        state = self._update_universal(owner_id, lambda clock: _set_clock(clock, minutes, seconds, quarter))
        self._fan_out(state)
        return state

    def tick_universal(self, owner_id) -> bool:
        changed = False

        def transform(state: UniversalClockState) -> UniversalClockState:
            nonlocal changed
            if not state.clock.running:
                return state
            changed = True
            return replace(state, clock=_count_down(state.clock))

        state = self.universal_store.update(owner_id, transform)
        if not changed:
            return False
        self.broadcaster.to_owner(owner_id, 'universalClockUpdated', state.to_dict())
        self._fan_out(state)
        return state.clock.running

    def _tick_owner(self, owner_id) -> bool:
        try:
            return self.tick_universal(owner_id)
        except NotFound:
            self.app.logger.info(f"[universal-tick-stop] owner={owner_id} owner gone")
            return False

    def _fan_out(self, state: UniversalClockState) -> None:
        self.dispatcher.submit('fanout', self._propagate, state)

    def _propagate(self, state: UniversalClockState) -> None:
        # A delayed job must not push an older clock over a newer one
        state = self.universal_store.get(state.owner_id)
        failed = []
        for game_id in directory.synced_game_ids(state.owner_id):
            try:
                record = self._update_clock(game_id, lambda clock: state.clock)
            except StatsError as exc:
                self.app.logger.warning(f"[fanout-game-failed] owner={state.owner_id} game={game_id} {exc}")
                failed.append(game_id)
                continue
            self.broadcaster.to_game(game_id, 'clockUpdated', clock_payload(game_id, record.clock))
        if failed:
            raise PropagationFailure(f'owner {state.owner_id} could not update games {failed}')

    def shutdown(self) -> None:
        self.scheduler.cancel_all()
