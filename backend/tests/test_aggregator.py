import pytest

from scoreboard.services.stats.aggregator import apply_action, reverse_action
from scoreboard.services.stats.errors import InvalidArgument
from scoreboard.services.stats.records import ACTION_EFFECTS, STAT_FIELDS, ActionType, TeamStats


def test_goal_moves_counter_and_score():
    after = apply_action(TeamStats(), 'goal')
    assert after.score == 1
    assert after.stats['goal'] == 1


def test_non_scoring_action_leaves_score_alone():
    after = apply_action(TeamStats(score=3), ActionType.TO_F)
    assert after.score == 3
    assert after.stats['turnoverForced'] == 1
    assert sum(after.stats.values()) == 1


def test_reverse_undoes_apply():
    before = apply_action(TeamStats(), 'shot_on')
    assert reverse_action(apply_action(before, 'goal'), 'goal') == before


def test_reverse_clamps_at_zero():
    after = reverse_action(TeamStats(), 'goal')
    assert after.score == 0
    assert after.stats['goal'] == 0


def test_input_is_not_mutated():
    original = TeamStats()
    apply_action(original, 'save')
    assert original.stats['save'] == 0


def test_unknown_type_rejected():
    with pytest.raises(InvalidArgument):
        apply_action(TeamStats(), 'dunk')


def test_every_action_type_has_its_own_counter():
    assert set(ACTION_EFFECTS) == set(ActionType)
    assert len(set(STAT_FIELDS)) == len(ActionType)
    assert [t for t, e in ACTION_EFFECTS.items() if e.scores] == [ActionType.GOAL]
