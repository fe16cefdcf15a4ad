from datetime import datetime, timezone
import json

from flask import current_app
from flask_login import UserMixin

from scoreboard import db, bcrypt
from scoreboard.services.stats.records import (
    ActionEvent,
    Clock,
    StatRecord,
    TeamStats,
    UniversalClockState,
    empty_stats,
)


def _utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Field(db.Model):
    __tablename__ = 'field'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)
    # Games on this field follow the owner's universal clock
    clock_synced = db.Column(db.Boolean, default=False, nullable=False)
    games = db.relationship('Game', back_populates='field')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'owner_id': self.owner_id,
            'clock_synced': self.clock_synced,
        }


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    home_team_name = db.Column(db.String(128), nullable=False)
    away_team_name = db.Column(db.String(128), nullable=False)
    field_id = db.Column(db.Integer, db.ForeignKey('field.id'), nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    end_game = db.Column(db.Boolean, default=False, nullable=False)
    field = db.relationship('Field', back_populates='games')
    statistics = db.relationship(
        'GameStatistics',
        back_populates='game',
        uselist=False,
        cascade='all, delete-orphan',
    )

    def to_dict(self):
        return {
            'id': self.id,
            'home_team_name': self.home_team_name,
            'away_team_name': self.away_team_name,
            'field_id': self.field_id,
            'owner_id': self.owner_id,
            'end_game': self.end_game,
        }


class GameStatistics(db.Model):
    """Persisted StatRecord: one row per game."""
    __tablename__ = 'game_statistics'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(
        db.Integer,
        db.ForeignKey('game.id', ondelete='CASCADE'),
        unique=True,
        nullable=False,
        index=True,
    )
    home_score = db.Column(db.Integer, default=0, nullable=False)
    away_score = db.Column(db.Integer, default=0, nullable=False)
    home_stats = db.Column(db.Text, nullable=True)  # JSON-encoded counters
    away_stats = db.Column(db.Text, nullable=True)  # JSON-encoded counters
    quarter = db.Column(db.Integer, default=0, nullable=False)
    minutes = db.Column(db.Integer, default=0, nullable=False)
    seconds = db.Column(db.Integer, default=0, nullable=False)
    running = db.Column(db.Boolean, default=False, nullable=False)
    actions = db.Column(db.Text, nullable=True)  # JSON-encoded list, append order
    version = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    game = db.relationship('Game', back_populates='statistics')

    __mapper_args__ = {'version_id_col': version}

    def to_record(self) -> StatRecord:
        return StatRecord(
            game_id=self.game_id,
            home_team=TeamStats(score=self.home_score or 0, stats=_load_stats(self.home_stats, self.game_id)),
            away_team=TeamStats(score=self.away_score or 0, stats=_load_stats(self.away_stats, self.game_id)),
            clock=Clock(
                quarter=self.quarter or 0,
                minutes=self.minutes or 0,
                seconds=self.seconds or 0,
                running=bool(self.running),
            ),
            actions=tuple(ActionEvent.from_dict(a) for a in json.loads(self.actions or '[]')),
        )

    def apply_record(self, record: StatRecord) -> None:
        self.home_score = record.home_team.score
        self.away_score = record.away_team.score
        self.home_stats = json.dumps(dict(record.home_team.stats))
        self.away_stats = json.dumps(dict(record.away_team.stats))
        self.quarter = record.clock.quarter
        self.minutes = record.clock.minutes
        self.seconds = record.clock.seconds
        self.running = record.clock.running
        self.actions = json.dumps([a.to_dict() for a in record.actions])


class UniversalClock(db.Model):
    __tablename__ = 'universal_clock'
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, nullable=False, index=True)
    quarter = db.Column(db.Integer, default=0, nullable=False)
    minutes = db.Column(db.Integer, default=0, nullable=False)
    seconds = db.Column(db.Integer, default=0, nullable=False)
    running = db.Column(db.Boolean, default=False, nullable=False)
    last_updated = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    def to_state(self) -> UniversalClockState:
        return UniversalClockState(
            owner_id=self.owner_id,
            clock=Clock(
                quarter=self.quarter or 0,
                minutes=self.minutes or 0,
                seconds=self.seconds or 0,
                running=bool(self.running),
            ),
        )

    def apply_state(self, state: UniversalClockState) -> None:
        self.quarter = state.clock.quarter
        self.minutes = state.clock.minutes
        self.seconds = state.clock.seconds
        self.running = state.clock.running


def _load_stats(raw, game_id=None):
    stats = empty_stats()
    try:
        stats.update(json.loads(raw) if raw else {})
    except ValueError as exc:
        current_app.logger.warning(f"[stats-corrupt] game={game_id} counters reset to zero: {exc}")
    return stats
