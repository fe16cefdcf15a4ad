from .records import ACTION_EFFECTS, TeamStats, parse_action_type


def apply_action(team_stats: TeamStats, action_type) -> TeamStats:
    """Return team_stats with one more action of action_type counted."""
    effect = ACTION_EFFECTS[parse_action_type(action_type)]
    stats = dict(team_stats.stats)
    stats[effect.counter] = stats.get(effect.counter, 0) + 1
    score = team_stats.score + 1 if effect.scores else team_stats.score
    return TeamStats(score=score, stats=stats)


def reverse_action(team_stats: TeamStats, action_type) -> TeamStats:
    """Inverse of apply_action. Counters and score never drop below zero."""
    effect = ACTION_EFFECTS[parse_action_type(action_type)]
    stats = dict(team_stats.stats)
    stats[effect.counter] = max(0, stats.get(effect.counter, 0) - 1)
    score = max(0, team_stats.score - 1) if effect.scores else team_stats.score
    return TeamStats(score=score, stats=stats)
