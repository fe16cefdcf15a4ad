"""Keyed storage for stat records and universal clocks.

All writes go through ``update(key, fn)``: the per-key lock serializes
writers inside this process, and the row ``version`` column catches
writers from other processes (the transform is re-run on a stale write).
"""

from contextlib import contextmanager
import threading
from typing import Callable
import weakref

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from scoreboard import db
from scoreboard.models import Game, GameStatistics, UniversalClock, User
from .errors import Conflict, NotFound, StatsError, StoreTimeout, StoreUnavailable
from .records import StatRecord, UniversalClockState


def game_key(game_id) -> str:
    return f"game:{game_id}"


def owner_key(owner_id) -> str:
    return f"owner:{owner_id}"


class KeyedLocks:
    """One mutex per key, created on first use.

    Entries are weakly held, so a key drops out of the map once nobody
    holds or waits on its lock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()

    def __contains__(self, key) -> bool:
        return key in self._locks

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: str, timeout: float):
        lock = self._lock_for(key)
        if not lock.acquire(timeout=timeout):
            raise StoreTimeout(f'timed out waiting for {key}')
        try:
            yield
        finally:
            lock.release()


# PostgreSQL SQLSTATE raised when lock_timeout expires
LOCK_NOT_AVAILABLE = '55P03'


def _is_lock_timeout(exc: SQLAlchemyError) -> bool:
    return getattr(getattr(exc, 'orig', None), 'pgcode', None) == LOCK_NOT_AVAILABLE


class _KeyedStore:
    def __init__(self, locks: KeyedLocks, lock_timeout: float = 5.0, retry_limit: int = 3):
        self.locks = locks
        self.lock_timeout = lock_timeout
        self.retry_limit = retry_limit

    def _transact(self, key: str, body):
        """Run body() under the key lock and commit, retrying stale writes."""
        with self.locks.hold(key, self.lock_timeout):
            for attempt in range(self.retry_limit + 1):
                try:
                    result = body()
                    db.session.commit()
                    return result
                except StaleDataError:
                    db.session.rollback()
                    current_app.logger.info(f"[store-retry] key={key} attempt={attempt + 1}")
                except StatsError:
                    db.session.rollback()
                    raise
                except SQLAlchemyError as exc:
                    db.session.rollback()
                    if _is_lock_timeout(exc):
                        current_app.logger.warning(f"[store-lock-timeout] key={key}")
                        raise StoreTimeout(f'timed out waiting for the {key} row lock') from exc
                    current_app.logger.error(f"[store-error] key={key} {exc}")
                    raise StoreUnavailable(f'store unavailable for {key}') from exc
        raise Conflict(f'{key} was modified concurrently, retry limit reached')


class StatStore(_KeyedStore):

    def _load(self, game_id):
        return (
            GameStatistics.query.filter_by(game_id=game_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def _new_row(self, game_id) -> GameStatistics:
        if db.session.get(Game, game_id) is None:
            raise NotFound(f'game {game_id} not found')
        row = GameStatistics(game_id=game_id)
        row.apply_record(StatRecord(game_id=game_id))
        db.session.add(row)
        return row

    def create(self, game_id) -> StatRecord:
        def body():
            if self._load(game_id) is not None:
                raise Conflict(f'statistics already exist for game {game_id}')
            return self._new_row(game_id).to_record()

        try:
            return self._transact(game_key(game_id), body)
        except StoreUnavailable as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise Conflict(f'statistics already exist for game {game_id}') from exc
            raise

    def get(self, game_id) -> StatRecord:
        try:
            row = GameStatistics.query.filter_by(game_id=game_id).populate_existing().first()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailable(f'store unavailable for {game_key(game_id)}') from exc
        if row is None:
            raise NotFound(f'statistics for game {game_id} not found')
        return row.to_record()

    def update(
        self,
        game_id,
        fn: Callable[[StatRecord], StatRecord],
        create_missing: bool = False,
    ) -> StatRecord:
        """Atomically replace the record for game_id with fn(record).

        With create_missing, a game that has no record yet gets a default
        one (the game itself must exist).
        """
        def body():
            row = self._load(game_id)
            if row is None:
                if not create_missing:
                    raise NotFound(f'statistics for game {game_id} not found')
                row = self._new_row(game_id)
            new_record = fn(row.to_record())
            row.apply_record(new_record)
            return new_record

        return self._transact(game_key(game_id), body)

    def delete(self, game_id) -> bool:
        def body():
            row = self._load(game_id)
            if row is None:
                return False
            db.session.delete(row)
            return True

        return self._transact(game_key(game_id), body)


class UniversalClockStore(_KeyedStore):

    def _load_or_create(self, owner_id) -> UniversalClock:
        row = (
            UniversalClock.query.filter_by(owner_id=owner_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if row is None:
            if db.session.get(User, owner_id) is None:
                raise NotFound(f'owner {owner_id} not found')
            row = UniversalClock(owner_id=owner_id)
            row.apply_state(UniversalClockState(owner_id=owner_id))
            db.session.add(row)
        return row

    def get(self, owner_id) -> UniversalClockState:
        return self.update(owner_id, lambda state: state)

    def update(self, owner_id, fn: Callable[[UniversalClockState], UniversalClockState]) -> UniversalClockState:
        def body():
            row = self._load_or_create(owner_id)
            new_state = fn(row.to_state())
            row.apply_state(new_state)
            return new_state

        return self._transact(owner_key(owner_id), body)
