"""
Tests for standings calculation and tie-breaks.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.models import AuxiliaryCounter, Group, Match, MatchStatus, Participant, StatCategory
from tourney.standings import (
    calculate_standings,
    calculate_group_standings,
    all_groups_view,
    match_outcome,
)

A = Participant('a', 'A')
B = Participant('b', 'B')
C = Participant('c', 'C')
D = Participant('d', 'D')


def played(match_number, player1, player2, score=None, winner=None, group_number=None):
    return Match(0, match_number, player1, player2, winner=winner, score=score,
                 status=MatchStatus.COMPLETED, group_number=group_number)


def row_for(rows, participant):
    return next(r for r in rows if r.participant == participant)


class TestScoring:
    """Tests for points and goals."""

    def test_draw(self):
        """Equal score without a winner: one point each."""
        rows = calculate_standings([A, B], [played(1, A, B, '2-2')])
        for row in rows:
            assert row.points == 1
            assert row.wins == 0
            assert row.losses == 0
            assert row.draws == 1
            assert row.goal_difference == 0

    def test_explicit_winner(self):
        rows = calculate_standings([A, B], [played(1, A, B, '3-1', winner=A)])
        a, b = row_for(rows, A), row_for(rows, B)
        assert (a.points, a.wins, a.goal_difference) == (3, 1, 2)
        assert (b.points, b.losses, b.goal_difference) == (0, 1, -2)

    def test_winner_without_score(self):
        rows = calculate_standings([A, B], [played(1, A, B, winner=B)])
        assert row_for(rows, B).points == 3
        assert row_for(rows, B).goals_for == 0

    def test_higher_score_wins_without_winner(self):
        rows = calculate_standings([A, B], [played(1, A, B, '0-2')])
        assert row_for(rows, B).wins == 1
        assert row_for(rows, A).losses == 1

    def test_no_winner_no_score_ignored(self):
        rows = calculate_standings([A, B], [played(1, A, B)])
        assert all(r.matches_played == 0 for r in rows)

    def test_unfinished_matches_ignored(self):
        match = Match(0, 1, A, B, score='5-0')
        assert match_outcome(match) is None
        rows = calculate_standings([A, B], [match])
        assert all(r.points == 0 for r in rows)

    def test_elimination_matches_ignored(self):
        match = Match(1, 1, A, B, winner=A, score='1-0', status=MatchStatus.COMPLETED)
        rows = calculate_standings([A, B], [match])
        assert all(r.matches_played == 0 for r in rows)


class TestRanking:
    """Tests for ranking and tie-breaks."""

    def test_points_then_goal_difference_then_goals_for(self):
        matches = [
            played(1, A, D, '1-0', winner=A),
            played(2, B, D, '3-0', winner=B),
            played(3, C, D, '4-1', winner=C),
        ]
        rows = calculate_standings([A, B, C, D], matches)
        assert [r.participant for r in rows] == [C, B, A, D]

    def test_declaration_order_breaks_full_ties(self):
        rows = calculate_standings([C, A, B], [])
        assert [r.participant for r in rows] == [C, A, B]

    def test_head_to_head_off_by_default(self):
        matches = [
            played(1, A, B, '0-1', winner=B),
            played(2, A, C, '3-0', winner=A),
            played(3, B, C, '0-2', winner=C),
        ]
        rows = calculate_standings([A, B, C], matches)
        # all on 3 pts; A gd +2, then C and B on gd -1 split by goals for
        assert [r.participant for r in rows] == [A, C, B]

    def test_head_to_head_when_enabled(self):
        matches = [
            played(1, A, B, '1-0', winner=A),
            played(2, A, C, '0-2', winner=C),
            played(3, A, D, '3-0', winner=A),
            played(4, B, C, '2-0', winner=B),
            played(5, B, D, '2-1', winner=B),
        ]
        # A and B both on 6 pts, gd +2, gf 4; A won their meeting
        default = calculate_standings([B, A, C, D], matches)
        assert [r.participant for r in default] == [B, A, C, D]
        extended = calculate_standings([B, A, C, D], matches, extended_tiebreaks=True)
        assert [r.participant for r in extended] == [A, B, C, D]

    def test_fair_play_when_enabled(self):
        counters = [
            AuxiliaryCounter('a', StatCategory.RED_CARD),
            AuxiliaryCounter('b', StatCategory.YELLOW_CARD, 2),
        ]
        rows = calculate_standings([A, B], [played(1, A, B, '1-1')], counters, extended_tiebreaks=True)
        assert [r.participant for r in rows] == [B, A]
        assert row_for(rows, A).fair_play_points == -3
        assert row_for(rows, B).fair_play_points == -2

    def test_counters_tallied_by_category(self):
        counters = [
            AuxiliaryCounter('a', StatCategory.YELLOW_CARD),
            AuxiliaryCounter('a', StatCategory.YELLOW_CARD),
            AuxiliaryCounter('a', StatCategory.OTHER, 5),
            AuxiliaryCounter('zz', StatCategory.RED_CARD),
        ]
        row = row_for(calculate_standings([A], [], counters), A)
        assert row.yellow_cards == 2
        assert row.red_cards == 0
        assert row.other_events == 5


class TestGroupStandings:
    """Tests for per-group tables."""

    def test_tables_per_group(self):
        groups = [Group(1, [A, B]), Group(2, [C, D])]
        matches = [
            played(1, A, B, '1-0', winner=A, group_number=1),
            played(2, C, D, '0-3', winner=D, group_number=2),
        ]
        tables = calculate_group_standings(groups, matches)
        assert [r.participant for r in tables[1]] == [A, B]
        assert [r.participant for r in tables[2]] == [D, C]
        assert tables[2][0].group_number == 2

    def test_all_groups_view_is_union(self):
        groups = [Group(1, [A, B]), Group(2, [C, D])]
        tables = calculate_group_standings(groups, [played(1, C, D, '2-0', winner=C, group_number=2)])
        view = all_groups_view(tables)
        assert [r.participant for r in view] == [A, B, C, D]

    def test_to_dict(self):
        rows = calculate_standings([A, B], [played(1, A, B, '3-1', winner=A)])
        data = rows[0].to_dict()
        assert data['participant'] == 'a'
        assert data['points'] == 3
        assert data['goal_difference'] == 2
