"""
Group standings computed from round-robin results.

Standings are a view: they are recomputed from the match list every time and
never stored. Ranking is points -> goal difference -> goals for ->
declaration order, with optional head-to-head and fair-play tie-breaks.
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from tourney.models import AuxiliaryCounter, Group, Match, MatchStatus, Participant, StatCategory, parse_score

logger = logging.getLogger(__name__)

POINTS_WIN = 3
POINTS_DRAW = 1
POINTS_LOSS = 0
RED_CARD_WEIGHT = 3

__all__ = [
    'StandingsRow',
    'parse_score',
    'match_outcome',
    'calculate_standings',
    'calculate_group_standings',
    'all_groups_view',
]


class StandingsRow:
    def __init__(self, participant: Participant, group_number: Optional[int] = None):
        self.participant = participant
        self.group_number = group_number
        self.wins = 0
        self.losses = 0
        self.draws = 0
        self.points = 0
        self.goals_for = 0
        self.goals_against = 0
        self.matches_played = 0
        self.yellow_cards = 0
        self.red_cards = 0
        self.other_events = 0

    def __repr__(self):
        return (f"StandingsRow({self.participant.name}, pts={self.points}, "
                f"W{self.wins} D{self.draws} L{self.losses}, gd={self.goal_difference})")

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def fair_play_points(self) -> int:
        return -(self.yellow_cards + RED_CARD_WEIGHT * self.red_cards)

    def to_dict(self) -> Dict:
        return {
            'participant': self.participant.id,
            'name': self.participant.name,
            'group_number': self.group_number,
            'matches_played': self.matches_played,
            'wins': self.wins,
            'draws': self.draws,
            'losses': self.losses,
            'points': self.points,
            'goals_for': self.goals_for,
            'goals_against': self.goals_against,
            'goal_difference': self.goal_difference,
            'yellow_cards': self.yellow_cards,
            'red_cards': self.red_cards,
            'fair_play_points': self.fair_play_points,
        }


def match_outcome(match: Match) -> Optional[Tuple[Optional[Participant], Tuple[int, int]]]:
    """
    Resolve a match into (winner or None for a draw, (player1 goals, player2 goals)).

    Returns None when the match does not count: not completed, or completed
    with neither a winner nor a parseable score. Without an explicit winner
    the higher score wins.
    """
    if match.status != MatchStatus.COMPLETED or match.player1 is None or match.player2 is None:
        return None
    score = match.score
    if match.winner is not None:
        return match.winner, score or (0, 0)
    if score is None:
        return None
    if score[0] == score[1]:
        return None, score
    return (match.player1 if score[0] > score[1] else match.player2), score


def _tally(rows: Dict[str, StandingsRow], matches: Iterable[Match]):
    for match in matches:
        outcome = match_outcome(match)
        if outcome is None:
            continue
        first, second = rows.get(match.player1.id), rows.get(match.player2.id)
        if first is None or second is None:
            continue
        winner, (goals1, goals2) = outcome

        first.goals_for += goals1
        first.goals_against += goals2
        second.goals_for += goals2
        second.goals_against += goals1
        first.matches_played += 1
        second.matches_played += 1

        if winner is None:
            first.draws += 1
            second.draws += 1
            first.points += POINTS_DRAW
            second.points += POINTS_DRAW
        elif winner.id == match.player1.id:
            first.wins += 1
            second.losses += 1
            first.points += POINTS_WIN
            second.points += POINTS_LOSS
        else:
            second.wins += 1
            first.losses += 1
            second.points += POINTS_WIN
            first.points += POINTS_LOSS


def _apply_counters(rows: Dict[str, StandingsRow], counters: Iterable[AuxiliaryCounter]):
    for counter in counters:
        row = rows.get(counter.participant_id)
        if row is None:
            continue
        category = StatCategory(counter.category)
        if category == StatCategory.YELLOW_CARD:
            row.yellow_cards += counter.value
        elif category == StatCategory.RED_CARD:
            row.red_cards += counter.value
        else:
            row.other_events += counter.value


def _break_ties(ordered: List[StandingsRow], matches: Sequence[Match], order: Dict[str, int]) -> List[StandingsRow]:
    """Re-rank clusters tied on points, goal difference and goals for by their mini-table."""
    result = []
    index = 0
    while index < len(ordered):
        row = ordered[index]
        key = (row.points, row.goal_difference, row.goals_for)
        cluster = [row]
        index += 1
        while index < len(ordered):
            candidate = ordered[index]
            if (candidate.points, candidate.goal_difference, candidate.goals_for) != key:
                break
            cluster.append(candidate)
            index += 1

        if len(cluster) > 1:
            mini = {r.participant.id: StandingsRow(r.participant) for r in cluster}
            _tally(mini, matches)
            logger.debug(f"Head-to-head among {[r.participant.name for r in cluster]}")
            cluster.sort(key=lambda r: (
                -mini[r.participant.id].points,
                -mini[r.participant.id].goal_difference,
                -mini[r.participant.id].goals_for,
                -r.fair_play_points,
                order[r.participant.id],
            ))
        result.extend(cluster)
    return result


def calculate_standings(members: Sequence[Participant], matches: Iterable[Match],
                        counters: Optional[Iterable[AuxiliaryCounter]] = None,
                        extended_tiebreaks: bool = False,
                        group_number: Optional[int] = None) -> List[StandingsRow]:
    """
    Rank members from the round-robin matches played among them.

    Args:
        members: participants in declaration order (the final tie-break)
        matches: any match list; only completed round-0 matches between members count
        counters: card counts feeding the fair-play tie-break
        extended_tiebreaks: add head-to-head and fair-play after goals for
    """
    order = {p.id: i for i, p in enumerate(members)}
    rows = {p.id: StandingsRow(p, group_number) for p in members}
    season_matches = [m for m in matches if m.round == 0]

    _tally(rows, season_matches)
    _apply_counters(rows, counters or [])

    ordered = sorted(
        rows.values(),
        key=lambda r: (-r.points, -r.goal_difference, -r.goals_for, order[r.participant.id])
    )
    if extended_tiebreaks:
        ordered = _break_ties(ordered, season_matches, order)
    return ordered


def calculate_group_standings(groups: Sequence[Group], matches: Iterable[Match],
                              counters: Optional[Iterable[AuxiliaryCounter]] = None,
                              extended_tiebreaks: bool = False) -> Dict[int, List[StandingsRow]]:
    """Per-group tables keyed by group number."""
    matches = list(matches)
    counters = list(counters or [])
    standings = {}
    for group in groups:
        group_matches = [m for m in matches if m.group_number in (None, group.number)]
        standings[group.number] = calculate_standings(
            group.members, group_matches, counters, extended_tiebreaks, group_number=group.number
        )
    return standings


def all_groups_view(tables: Dict[int, List[StandingsRow]]) -> List[StandingsRow]:
    """Union of the per-group tables, in group order then rank order."""
    rows = []
    for group_number in sorted(tables):
        rows.extend(tables[group_number])
    return rows
