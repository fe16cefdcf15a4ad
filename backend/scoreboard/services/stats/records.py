"""Value types for a game's statistics record.

Everything here is immutable and free of Flask/SQLAlchemy so the engines
can compute a new record from an old one without touching the session.
Wire dictionaries use the camelCase keys the scoreboard clients expect.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Mapping, NamedTuple, Optional, Tuple

from .errors import InvalidArgument


class Team(str, Enum):
    HOME = 'home'
    AWAY = 'away'


class ActionType(str, Enum):
    SHOT_ON = 'shot_on'
    SHOT_OFF = 'shot_off'
    SAVE = 'save'
    GROUND_BALL = 'ground_ball'
    DRAW_W = 'draw_w'
    DRAW_L = 'draw_l'
    TO_F = 'to_f'
    TO_U = 'to_u'
    GOAL = 'goal'
    PENALTY = 'penalty'


class PenaltyType(str, Enum):
    RELEASABLE = 'releasable'
    NON_RELEASABLE = 'non-releasable'


class ActionEffect(NamedTuple):
    counter: str
    scores: bool


# Which team counter an action moves, and whether it also moves the score
ACTION_EFFECTS: Dict[ActionType, ActionEffect] = {
    ActionType.SHOT_ON: ActionEffect('shotOn', False),
    ActionType.SHOT_OFF: ActionEffect('shotOff', False),
    ActionType.SAVE: ActionEffect('save', False),
    ActionType.GROUND_BALL: ActionEffect('groundBall', False),
    ActionType.DRAW_W: ActionEffect('drawW', False),
    ActionType.DRAW_L: ActionEffect('drawL', False),
    ActionType.TO_F: ActionEffect('turnoverForced', False),
    ActionType.TO_U: ActionEffect('turnoverUnforced', False),
    ActionType.GOAL: ActionEffect('goal', True),
    ActionType.PENALTY: ActionEffect('penalty', False),
}

STAT_FIELDS: Tuple[str, ...] = tuple(effect.counter for effect in ACTION_EFFECTS.values())


def empty_stats() -> Dict[str, int]:
    return {name: 0 for name in STAT_FIELDS}


# ---- argument parsing ----

def parse_team(value) -> Team:
    try:
        return Team(str(value).lower())
    except ValueError:
        raise InvalidArgument(f"team must be 'home' or 'away', got {value!r}")


def parse_action_type(value) -> ActionType:
    try:
        return ActionType(value)
    except ValueError:
        raise InvalidArgument(f'unknown action type {value!r}')


def parse_stat_field(value) -> str:
    if value not in STAT_FIELDS:
        raise InvalidArgument(f'unknown stat field {value!r}')
    return value


def parse_int(name: str, value, minimum: int = 0, maximum: Optional[int] = None) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise InvalidArgument(f'{name} must be an integer')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f'{name} must be an integer')
    if number < minimum or (maximum is not None and number > maximum):
        bounds = f'>= {minimum}' if maximum is None else f'between {minimum} and {maximum}'
        raise InvalidArgument(f'{name} must be {bounds}')
    return number


# ---- value types ----

@dataclass(frozen=True)
class TeamStats:
    score: int = 0
    stats: Mapping[str, int] = field(default_factory=empty_stats)

    def to_dict(self) -> Dict[str, Any]:
        return {'score': self.score, 'stats': dict(self.stats)}


@dataclass(frozen=True)
class Clock:
    quarter: int = 0
    minutes: int = 0
    seconds: int = 0
    running: bool = False

    @property
    def total_seconds(self) -> int:
        return self.minutes * 60 + self.seconds

    def with_total(self, total: int) -> 'Clock':
        total = max(0, total)
        return replace(self, minutes=total // 60, seconds=total % 60)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'quarter': self.quarter,
            'minutes': self.minutes,
            'seconds': self.seconds,
            'running': self.running,
        }


@dataclass(frozen=True)
class Penalty:
    penalty_type: PenaltyType
    minutes: int = 0
    seconds: int = 0
    infraction: str = ''

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> 'Penalty':
        try:
            penalty_type = PenaltyType(data.get('penaltyType'))
        except ValueError:
            raise InvalidArgument("penaltyType must be 'releasable' or 'non-releasable'")
        infraction = data.get('infraction') or ''
        if not isinstance(infraction, str):
            raise InvalidArgument('infraction must be text')
        return cls(
            penalty_type=penalty_type,
            minutes=parse_int('penaltyMinutes', data.get('penaltyMinutes') or 0),
            seconds=parse_int('penaltySeconds', data.get('penaltySeconds') or 0, maximum=59),
            infraction=infraction,
        )


@dataclass(frozen=True)
class ActionEvent:
    id: str
    type: ActionType
    team: Team
    player_no: int
    quarter: int
    minute: int
    second: int
    penalty: Optional[Penalty] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'type': self.type.value,
            'team': self.team.value,
            'playerNo': self.player_no,
            'quarter': self.quarter,
            'minute': self.minute,
            'second': self.second,
        }
        if self.penalty is not None:
            data.update({
                'penaltyType': self.penalty.penalty_type.value,
                'penaltyMinutes': self.penalty.minutes,
                'penaltySeconds': self.penalty.seconds,
                'infraction': self.penalty.infraction,
            })
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ActionEvent':
        action_type = ActionType(data['type'])
        penalty = None
        if action_type is ActionType.PENALTY:
            penalty = Penalty(
                penalty_type=PenaltyType(data.get('penaltyType', PenaltyType.RELEASABLE.value)),
                minutes=int(data.get('penaltyMinutes', 0)),
                seconds=int(data.get('penaltySeconds', 0)),
                infraction=data.get('infraction', ''),
            )
        return cls(
            id=data['id'],
            type=action_type,
            team=Team(data['team']),
            player_no=int(data['playerNo']),
            quarter=int(data.get('quarter', 0)),
            minute=int(data.get('minute', 0)),
            second=int(data.get('second', 0)),
            penalty=penalty,
        )


@dataclass(frozen=True)
class StatRecord:
    game_id: int
    home_team: TeamStats = field(default_factory=TeamStats)
    away_team: TeamStats = field(default_factory=TeamStats)
    clock: Clock = field(default_factory=Clock)
    actions: Tuple[ActionEvent, ...] = ()

    def team_stats(self, team: Team) -> TeamStats:
        return self.home_team if team is Team.HOME else self.away_team

    def with_team(self, team: Team, stats: TeamStats) -> 'StatRecord':
        if team is Team.HOME:
            return replace(self, home_team=stats)
        return replace(self, away_team=stats)

    def find_action(self, action_id) -> Optional[ActionEvent]:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None

    def last_action_for(self, team: Team) -> Optional[ActionEvent]:
        for action in reversed(self.actions):
            if action.team is team:
                return action
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'gameId': self.game_id,
            'homeTeam': self.home_team.to_dict(),
            'awayTeam': self.away_team.to_dict(),
            'clock': self.clock.to_dict(),
            'actions': [a.to_dict() for a in self.actions],
        }


@dataclass(frozen=True)
class UniversalClockState:
    owner_id: int
    clock: Clock = field(default_factory=Clock)

    def to_dict(self) -> Dict[str, Any]:
        data = {'ownerId': self.owner_id}
        data.update(self.clock.to_dict())
        return data
