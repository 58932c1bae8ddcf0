"""
Playoff seeding from group standings.
"""
import logging
from typing import Dict, List, Optional

from tourney.elimination import PLACEMENT_SEQUENTIAL, Bracket, build_ranked_bracket
from tourney.errors import InvalidGroupConfiguration, StandingsGroupUnderfilled
from tourney.standings import StandingsRow

logger = logging.getLogger(__name__)


def select_qualifiers(tables: Dict[int, List[StandingsRow]], qualifiers_per_group: int,
                      total_participants: Optional[int] = None) -> List[StandingsRow]:
    """
    Take the top K rows of every group and rank them for the playoffs.

    Qualifiers are concatenated in group order and stable-sorted by wins, so
    equal win counts keep their group and table order.

    Raises:
        InvalidGroupConfiguration: K < 1 or K >= total participants
        StandingsGroupUnderfilled: a group has fewer than K rows
    """
    if total_participants is None:
        total_participants = sum(len(rows) for rows in tables.values())
    if qualifiers_per_group < 1 or qualifiers_per_group >= total_participants:
        raise InvalidGroupConfiguration(
            f"Qualifiers per group must be between 1 and {total_participants - 1}, "
            f"got {qualifiers_per_group}"
        )

    qualifiers = []
    for group_number in sorted(tables):
        rows = tables[group_number]
        if len(rows) < qualifiers_per_group:
            raise StandingsGroupUnderfilled(group_number, qualifiers_per_group, len(rows))
        qualifiers.extend(rows[:qualifiers_per_group])

    ranked = sorted(qualifiers, key=lambda r: -r.wins)
    logger.info(f"{len(ranked)} qualifiers from {len(tables)} groups: "
                f"{[r.participant.name for r in ranked]}")
    return ranked


def seed_playoffs(tables: Dict[int, List[StandingsRow]], qualifiers_per_group: int,
                  has_bronze_match: bool = True, placement: str = PLACEMENT_SEQUENTIAL,
                  total_participants: Optional[int] = None) -> Bracket:
    """Build the playoff bracket from group standings, byes going to the best ranks."""
    ranked = select_qualifiers(tables, qualifiers_per_group, total_participants)
    return build_ranked_bracket([r.participant for r in ranked], has_bronze_match, placement)
