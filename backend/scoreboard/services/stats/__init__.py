"""Live game statistics: stores, action log, clocks and broadcasting.

This package holds the domain logic used by both the HTTP routes and the
Socket.IO handlers, keeping transport concerns out of the engines.
"""

from typing import NamedTuple

from flask import current_app


class StatsEngines(NamedTuple):
    store: object
    clock_store: object
    actions: object
    clocks: object
    broadcaster: object


def init_stats(app, scheduler=None, broadcaster=None) -> StatsEngines:
    from .actions import ActionLog
    from .broadcast import Broadcaster
    from .clock import ClockEngine
    from .store import KeyedLocks, StatStore, UniversalClockStore
    from .tasks import BestEffortDispatcher, TickScheduler

    locks = KeyedLocks()
    timeout = float(app.config.get('STORE_LOCK_TIMEOUT_SEC', 5))
    retries = int(app.config.get('STORE_RETRY_LIMIT', 3))
    store = StatStore(locks, lock_timeout=timeout, retry_limit=retries)
    clock_store = UniversalClockStore(locks, lock_timeout=timeout, retry_limit=retries)
    if scheduler is None:
        scheduler = TickScheduler(app, interval=float(app.config.get('CLOCK_TICK_INTERVAL_SEC', 1.0)))
    broadcaster = broadcaster or Broadcaster()
    # Fan-out runs inline under test so its effects can be asserted on
    dispatcher = BestEffortDispatcher(app, inline=bool(app.config.get('TESTING')))
    engines = StatsEngines(
        store=store,
        clock_store=clock_store,
        actions=ActionLog(store),
        clocks=ClockEngine(app, store, clock_store, scheduler, dispatcher, broadcaster),
        broadcaster=broadcaster,
    )
    app.extensions['stats'] = engines
    return engines


def get_engines() -> StatsEngines:
    return current_app.extensions['stats']
