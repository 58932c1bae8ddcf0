"""
Season play: group partitioning and round-robin schedules.
"""
import logging
from itertools import combinations
from typing import List, Optional

from tourney.errors import InsufficientParticipants, InvalidGroupConfiguration
from tourney.models import Group, Match, ParticipantSet
from tourney.shuffle import Shuffle, default_shuffle

logger = logging.getLogger(__name__)


def partition_groups(participants, group_count: int, shuffle: Optional[Shuffle] = None) -> List[Group]:
    """
    Shuffle participants and split them into contiguous groups.

    Every group gets N // G members and the first N % G groups one more, so
    sizes never differ by more than one.
    """
    if not isinstance(participants, ParticipantSet):
        participants = ParticipantSet(participants)
    shuffle = shuffle or default_shuffle

    count = len(participants)
    if count < 2:
        raise InsufficientParticipants(count)
    if group_count < 1 or group_count > count:
        raise InvalidGroupConfiguration(
            f"Group count must be between 1 and {count}, got {group_count}"
        )

    shuffled = shuffle(list(participants))
    base_size, extra = divmod(count, group_count)

    groups = []
    start = 0
    for index in range(group_count):
        size = base_size + (1 if index < extra else 0)
        groups.append(Group(index + 1, shuffled[start:start + size]))
        start += size

    logger.info(f"Partitioned {count} participants into {group_count} groups: {[len(g) for g in groups]}")
    return groups


def groups_from_affiliation(participants) -> List[Group]:
    """Build groups from each participant's pre-assigned group, numbered in first-seen order."""
    if not isinstance(participants, ParticipantSet):
        participants = ParticipantSet(participants)
    unassigned = [p.name for p in participants if p.group is None]
    if unassigned:
        raise InvalidGroupConfiguration(f"Participants without a group: {', '.join(unassigned)}")
    return [Group(number, members) for number, members in enumerate(participants.by_group().values(), start=1)]


def generate_round_robin(groups: List[Group], start_match_number: int = 1) -> List[Match]:
    """
    Generate all round robin matches for the groups.

    Each pair i < j inside a group plays once in round 0. Match numbers run
    across all groups so every pairing of the event has its own number.
    """
    matches = []
    match_number = start_match_number
    for group in groups:
        for player1, player2 in combinations(group.members, 2):
            matches.append(Match(0, match_number, player1, player2, group_number=group.number))
            match_number += 1
    logger.debug(f"Generated {len(matches)} round robin matches for {len(groups)} groups")
    return matches


def schedule_season(participants, group_count: int = 1, shuffle: Optional[Shuffle] = None):
    """
    Build the groups and round-robin matches of a season.

    When every participant carries a group affiliation those groups are used
    as-is; otherwise participants are shuffled into ``group_count`` groups.

    Returns:
        Tuple of (groups, matches)
    """
    if not isinstance(participants, ParticipantSet):
        participants = ParticipantSet(participants)
    if len(participants) >= 2 and all(p.group is not None for p in participants):
        groups = groups_from_affiliation(participants)
    else:
        groups = partition_groups(participants, group_count, shuffle)
    return groups, generate_round_robin(groups)
