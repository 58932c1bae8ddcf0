"""
Tests for group partitioning and round robin scheduling.
"""
import pytest
import sys
import os
from itertools import combinations

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import make_participants, identity_shuffle
from tourney.errors import InsufficientParticipants, InvalidGroupConfiguration
from tourney.models import Participant
from tourney.season import (
    partition_groups,
    groups_from_affiliation,
    generate_round_robin,
    schedule_season,
)
from tourney.shuffle import make_shuffle


class TestPartitionGroups:
    """Tests for splitting participants into groups."""

    def test_nine_into_two(self):
        groups = partition_groups(make_participants(9), 2, identity_shuffle)
        assert [len(g) for g in groups] == [5, 4]
        assert [g.number for g in groups] == [1, 2]

    def test_extra_members_go_to_first_groups(self):
        groups = partition_groups(make_participants(11), 4, identity_shuffle)
        assert [len(g) for g in groups] == [3, 3, 3, 2]

    def test_contiguous_split_of_shuffled_order(self):
        groups = partition_groups(make_participants(4), 2, lambda xs: list(reversed(xs)))
        assert [p.id for p in groups[0].members] == ['P4', 'P3']
        assert [p.id for p in groups[1].members] == ['P2', 'P1']

    def test_every_participant_in_exactly_one_group(self):
        roster = make_participants(13)
        groups = partition_groups(roster, 3, make_shuffle(7))
        placed = [p.id for g in groups for p in g.members]
        assert sorted(placed) == sorted(p.id for p in roster)

    @pytest.mark.parametrize("group_count", [0, -1, 6])
    def test_invalid_group_count(self, group_count):
        with pytest.raises(InvalidGroupConfiguration):
            partition_groups(make_participants(5), group_count, identity_shuffle)

    def test_one_group_per_participant_allowed(self):
        groups = partition_groups(make_participants(3), 3, identity_shuffle)
        assert [len(g) for g in groups] == [1, 1, 1]

    def test_needs_two_participants(self):
        with pytest.raises(InsufficientParticipants):
            partition_groups(make_participants(1), 1, identity_shuffle)


class TestRoundRobin:
    """Tests for round robin generation."""

    def test_nine_into_two_gives_sixteen_matches(self):
        groups = partition_groups(make_participants(9), 2, identity_shuffle)
        matches = generate_round_robin(groups)
        assert len(matches) == 16
        assert sum(1 for m in matches if m.group_number == 1) == 10
        assert sum(1 for m in matches if m.group_number == 2) == 6

    def test_match_numbers_run_across_groups(self):
        groups = partition_groups(make_participants(6), 2, identity_shuffle)
        matches = generate_round_robin(groups)
        assert [m.match_number for m in matches] == list(range(1, 7))
        assert all(m.round == 0 for m in matches)

    def test_every_pair_plays_once(self):
        groups = partition_groups(make_participants(5), 1, identity_shuffle)
        matches = generate_round_robin(groups)
        pairs = {frozenset((m.player1.id, m.player2.id)) for m in matches}
        expected = {frozenset(pair) for pair in combinations([f'P{i}' for i in range(1, 6)], 2)}
        assert pairs == expected

    def test_no_cross_group_matches(self):
        groups = partition_groups(make_participants(8), 2, make_shuffle(3))
        members = {g.number: {p.id for p in g.members} for g in groups}
        for match in generate_round_robin(groups):
            assert match.player1.id in members[match.group_number]
            assert match.player2.id in members[match.group_number]


class TestAffiliation:
    """Tests for pre-assigned groups."""

    def test_groups_from_affiliation(self):
        roster = [
            Participant('a', 'A', group='Pool A'),
            Participant('b', 'B', group='Pool B'),
            Participant('c', 'C', group='Pool A'),
        ]
        groups = groups_from_affiliation(roster)
        assert [[p.id for p in g.members] for g in groups] == [['a', 'c'], ['b']]

    def test_missing_affiliation(self):
        with pytest.raises(InvalidGroupConfiguration):
            groups_from_affiliation([Participant('a', 'A', group='X'), Participant('b', 'B')])

    def test_schedule_uses_affiliation_when_complete(self):
        roster = [Participant(f'p{i}', f'P{i}', group='North' if i < 3 else 'South') for i in range(6)]
        groups, matches = schedule_season(roster, group_count=1)
        assert len(groups) == 2
        assert len(matches) == 6

    def test_schedule_shuffles_without_affiliation(self):
        groups, matches = schedule_season(make_participants(9), 2, identity_shuffle)
        assert [len(g) for g in groups] == [5, 4]
        assert len(matches) == 16
