"""
Single elimination bracket generation.

Construction runs as a pipeline of pure phases over a tuple of first-round
positions, where ``None`` marks an empty (bye-eligible) slot:

    place_seeds -> grant_seed_advantages -> fill_empty_pairs -> fill_remaining
        -> validate_positions -> materialize_matches

Each phase returns a new tuple; nothing is emitted until validation passes.
"""
import logging
import math
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from tourney.errors import ByeAllocationInfeasible, InsufficientParticipants, InvariantViolation
from tourney.models import Match, MatchStatus, Participant, ParticipantSet, SlotRef
from tourney.shuffle import Shuffle, default_shuffle

logger = logging.getLogger(__name__)

Positions = Tuple[Optional[Participant], ...]

PLACEMENT_SEQUENTIAL = 'sequential'
PLACEMENT_STANDARD = 'standard'


def get_round_name(round_number: int, total_rounds: int) -> str:
    """Get the name of a round from its number and the bracket's round count."""
    if round_number == 0:
        return "Regular Season"
    if round_number == total_rounds:
        return "Final"
    elif round_number == total_rounds - 1:
        return "Semifinals"
    elif round_number == total_rounds - 2:
        return "Quarterfinals"
    return f"Round of {2 ** (total_rounds - round_number + 1)}"


def calculate_bracket_size(num_participants: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_participants <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_participants))


def calculate_byes(num_participants: int) -> int:
    """Calculate number of byes needed."""
    return calculate_bracket_size(num_participants) - num_participants


def calculate_total_rounds(bracket_size: int) -> int:
    if bracket_size <= 1:
        return 0
    return int(math.log2(bracket_size))


def seed_slots(bracket_size: int) -> Dict[str, List[int]]:
    """
    Designated first-round positions per seed tier.

    Seeds 1-2 sit at the two ends, seeds 3-4 at the half boundary and seeds
    5-8 at the quarter boundaries, so the top seeds can only meet late.
    """
    half = bracket_size // 2
    quarter = bracket_size // 4
    return {
        'top': [0, bracket_size - 1],
        'second': [half, half - 1],
        'third': [quarter, bracket_size - 1 - quarter, half + quarter, quarter - 1],
    }


def _replace(positions: Positions, updates: Dict[int, Participant]) -> Positions:
    new_positions = list(positions)
    for index, participant in updates.items():
        new_positions[index] = participant
    return tuple(new_positions)


def _pairs(bracket_size: int) -> List[Tuple[int, int]]:
    return [(i, i + 1) for i in range(0, bracket_size, 2)]


def _seed_positions(positions: Positions) -> List[int]:
    """Positions holding seeded participants, best seed first."""
    indexed = [(p.seed, i) for i, p in enumerate(positions) if p is not None and p.is_seeded]
    return [i for _, i in sorted(indexed)]


def _fully_empty_pairs(positions: Positions) -> List[Tuple[int, int]]:
    return [(a, b) for a, b in _pairs(len(positions)) if positions[a] is None and positions[b] is None]


def _open_pair_slot(positions: List[Optional[Participant]]) -> Optional[int]:
    for index, participant in enumerate(positions):
        if participant is None and positions[index ^ 1] is None:
            return index
    return None


def _fallback_slot(positions: List[Optional[Participant]]) -> int:
    free = [i for i, p in enumerate(positions) if p is None]
    if not free:
        raise InvariantViolation("No free position left for a seeded participant")
    open_slot = _open_pair_slot(positions)
    return open_slot if open_slot is not None else free[0]


def place_seeds(bracket_size: int, seeded: Sequence[Participant], shuffle: Shuffle,
                num_byes: int = 0) -> Positions:
    """
    Phase 1: put seeded participants on their tier positions.

    Seeds 1 and 2 are fixed; seeds 3-4 and 5-8 are shuffled within their tier.
    In brackets too small for a tier, or when a designated slot is taken, the
    seed falls back to the first free slot, preferring one in an empty pair.
    When the draw has byes, a seed whose designated slot would pair it with
    another seed also moves to an empty pair if one is left.
    """
    slots = seed_slots(bracket_size)
    positions = [None] * bracket_size

    def place(participant, preferred):
        usable = 0 <= preferred < bracket_size and positions[preferred] is None
        if usable and num_byes and positions[preferred ^ 1] is not None:
            usable = _open_pair_slot(positions) is None
        if usable:
            index = preferred
        else:
            index = _fallback_slot(positions)
            logger.debug(f"Seed {participant.seed} moved from slot {preferred} to {index}")
        positions[index] = participant

    by_seed = {p.seed: p for p in seeded}
    if 1 in by_seed:
        place(by_seed[1], slots['top'][0])
    if 2 in by_seed:
        place(by_seed[2], slots['top'][1])

    second_tier = shuffle([p for p in seeded if p.seed in (3, 4)])
    for participant, preferred in zip(second_tier, slots['second']):
        place(participant, preferred)

    third_tier = shuffle([p for p in seeded if 5 <= p.seed <= 8])
    for participant, preferred in zip(third_tier, slots['third']):
        place(participant, preferred)

    return tuple(positions)


def grant_seed_advantages(positions: Positions,
                          unseeded: Sequence[Participant]) -> Tuple[Positions, List[Participant]]:
    """
    Phase 2: give the best seeds an opponent who has to win a real match first.

    For each granted seed, both slots of the sibling first-round pair (whose
    winner meets the seed in round two) are filled with unseeded participants.
    Grants never consume participants that are needed to keep every other
    empty pair occupied.
    """
    seed_positions = _seed_positions(positions)
    seeded_count = len(seed_positions)
    remaining = list(unseeded)

    open_slots = max(len(positions) - 2 * seeded_count, 0)
    possible = min(open_slots, len(remaining)) // 2
    spare = len(remaining) - len(_fully_empty_pairs(positions))
    grants = max(0, min(seeded_count, possible, spare))
    logger.debug(f"Seed advantages: {grants} of {seeded_count} seeds "
                 f"(open slots {open_slots}, unseeded {len(remaining)})")

    updates = {}
    granted = 0
    for seed_position in seed_positions:
        if granted >= grants or len(remaining) < 2:
            break
        sibling_pair = (seed_position // 2) ^ 1
        first, second = sibling_pair * 2, sibling_pair * 2 + 1
        if positions[first] is None and positions[second] is None and first not in updates:
            updates[first] = remaining.pop(0)
            updates[second] = remaining.pop(0)
            granted += 1
            logger.debug(f"Seed {positions[seed_position].seed} (pos {seed_position}) "
                         f"faces winner of positions {first}-{second}")

    return _replace(positions, updates), remaining


def fill_empty_pairs(positions: Positions, unseeded: Sequence[Participant],
                     shuffle: Shuffle) -> Tuple[Positions, List[Participant]]:
    """
    Phase 3: put one unseeded participant into every fully empty pair.

    Raises ByeAllocationInfeasible when there are fewer participants than
    empty pairs, since a BYE vs BYE pair would be unavoidable.
    """
    remaining = list(unseeded)
    empty_pairs = _fully_empty_pairs(positions)
    if len(remaining) < len(empty_pairs):
        raise ByeAllocationInfeasible(required=len(empty_pairs), available=len(remaining))

    updates = {}
    for pair in empty_pairs:
        side = shuffle(list(pair))[0]
        updates[side] = remaining.pop(0)
    logger.debug(f"Filled {len(empty_pairs)} empty pairs, {len(remaining)} unseeded left")
    return _replace(positions, updates), remaining


def fill_remaining(positions: Positions, unseeded: Sequence[Participant], num_byes: int) -> Positions:
    """
    Phase 4: place the rest of the unseeded pool.

    With no byes every slot is filled. Otherwise the opponent slots of the best
    ``min(seeded, num_byes)`` seeds stay empty (their byes) and any remaining
    byes fall to unseeded participants.
    """
    remaining = list(unseeded)
    reserved = set()
    if num_byes > 0:
        seed_positions = _seed_positions(positions)
        seed_byes = min(len(seed_positions), num_byes)
        for seed_position in seed_positions:
            if len(reserved) >= seed_byes:
                break
            partner = seed_position ^ 1
            if positions[partner] is None:
                reserved.add(partner)

    updates = {}
    for index, participant in enumerate(positions):
        if not remaining:
            break
        if participant is None and index not in reserved:
            updates[index] = remaining.pop(0)

    if remaining:
        raise InvariantViolation(f"{len(remaining)} unseeded participants could not be placed")
    return _replace(positions, updates)


class PositionCounts(NamedTuple):
    seed_vs_bye: int
    unseeded_vs_bye: int
    seed_vs_unseeded: int
    unseeded_vs_unseeded: int
    seed_vs_seed: int
    bye_vs_bye: int

    @property
    def total_byes(self) -> int:
        return self.seed_vs_bye + self.unseeded_vs_bye


def count_pairings(positions: Positions,
                   is_seeded: Callable[[Participant], bool] = lambda p: p.is_seeded) -> PositionCounts:
    counts = dict.fromkeys(PositionCounts._fields, 0)
    for a, b in _pairs(len(positions)):
        first, second = positions[a], positions[b]
        if first is None and second is None:
            counts['bye_vs_bye'] += 1
        elif first is None or second is None:
            present = first or second
            counts['seed_vs_bye' if is_seeded(present) else 'unseeded_vs_bye'] += 1
        else:
            seeded = is_seeded(first) + is_seeded(second)
            key = ('unseeded_vs_unseeded', 'seed_vs_unseeded', 'seed_vs_seed')[seeded]
            counts[key] += 1
    return PositionCounts(**counts)


def validate_positions(positions: Positions, participants: Sequence[Participant], num_byes: int,
                       is_seeded: Callable[[Participant], bool] = lambda p: p.is_seeded) -> PositionCounts:
    """
    Check the final placement before any match is created.

    Raises InvariantViolation on a BYE vs BYE pair, a wrong bye total, more
    seed byes than seeds, or a participant placed zero or several times.
    """
    counts = count_pairings(positions, is_seeded)
    seeded_count = sum(1 for p in participants if is_seeded(p))
    logger.info(f"Bracket check: seed vs BYE {counts.seed_vs_bye}, seed vs unseeded {counts.seed_vs_unseeded}, "
                f"unseeded vs BYE {counts.unseeded_vs_bye}, unseeded vs unseeded {counts.unseeded_vs_unseeded}, "
                f"BYE vs BYE {counts.bye_vs_bye}")

    if counts.bye_vs_bye:
        raise InvariantViolation(f"{counts.bye_vs_bye} BYE vs BYE pairs in the first round")
    if counts.total_byes != num_byes:
        raise InvariantViolation(f"Expected {num_byes} byes, found {counts.total_byes}")
    if counts.seed_vs_bye > seeded_count:
        raise InvariantViolation(f"{counts.seed_vs_bye} seed byes for only {seeded_count} seeds")

    placed = [p.id for p in positions if p is not None]
    expected = sorted(p.id for p in participants)
    if sorted(placed) != expected:
        raise InvariantViolation(f"Placed {len(placed)} participants, expected {len(expected)} distinct")
    return counts


def destination_of(round_number: int, match_number: int) -> SlotRef:
    """Slot in the next round that the winner of (round, match) moves into."""
    return SlotRef(round_number + 1, math.ceil(match_number / 2), 1 if match_number % 2 == 1 else 2)


def materialize_matches(positions: Positions, total_rounds: int, has_bronze_match: bool) -> List[Match]:
    """
    Turn validated positions into match records for every round.

    Single-sided first-round pairs become completed byes and their participant
    is pre-filled into round two; later rounds start empty.
    """
    matches = []
    advances: Dict[SlotRef, Participant] = {}

    for index, (a, b) in enumerate(_pairs(len(positions))):
        player1, player2 = positions[a], positions[b]
        match_number = index + 1
        if player1 is None and player2 is None:
            raise InvariantViolation(f"BYE vs BYE at round 1, match {match_number}")
        if player1 is None or player2 is None:
            winner = player1 or player2
            advances[destination_of(1, match_number)] = winner
            matches.append(Match(1, match_number, player1, player2, winner=winner, status=MatchStatus.BYE))
        else:
            matches.append(Match(1, match_number, player1, player2))

    matches_in_round = len(positions) // 4
    for round_number in range(2, total_rounds + 1):
        for match_number in range(1, matches_in_round + 1):
            player1 = advances.get(SlotRef(round_number, match_number, 1))
            player2 = advances.get(SlotRef(round_number, match_number, 2))
            matches.append(Match(round_number, match_number, player1, player2))
        matches_in_round //= 2

    if has_bronze_match and total_rounds >= 2:
        matches.append(Match(total_rounds, 2))

    logger.debug(f"Materialized {len(matches)} matches, {len(advances)} auto-advanced into round 2")
    return matches


class Bracket:
    """Result of a bracket construction: the matches plus a summary of the draw."""

    def __init__(self, matches: List[Match], positions: Positions, total_rounds: int,
                 num_byes: int, has_bronze_match: bool, counts: PositionCounts):
        self.matches = matches
        self.positions = positions
        self.bracket_size = len(positions)
        self.total_rounds = total_rounds
        self.num_byes = num_byes
        self.has_bronze_match = has_bronze_match
        self.counts = counts

    def __repr__(self):
        return (f"Bracket(size={self.bracket_size}, rounds={self.total_rounds}, "
                f"byes={self.num_byes}, matches={len(self.matches)})")

    def match(self, round_number: int, match_number: int) -> Optional[Match]:
        for match in self.matches:
            if match.round == round_number and match.match_number == match_number:
                return match
        return None

    def matches_in_round(self, round_number: int) -> List[Match]:
        return [m for m in self.matches if m.round == round_number]

    def playable_matches(self) -> List[Match]:
        return [m for m in self.matches if not m.is_bye]

    def matches_per_round(self) -> Dict[str, int]:
        """Non-bye match count per round name."""
        counts = {}
        for round_number in range(1, self.total_rounds + 1):
            name = get_round_name(round_number, self.total_rounds)
            counts[name] = sum(1 for m in self.matches_in_round(round_number) if not m.is_bye)
        return counts

    def to_dict(self) -> Dict:
        return {
            'bracket_size': self.bracket_size,
            'total_rounds': self.total_rounds,
            'byes': self.num_byes,
            'has_bronze_match': self.has_bronze_match,
            'matches_per_round': self.matches_per_round(),
            'counts': self.counts._asdict(),
            'matches': [m.to_dict() for m in self.matches],
        }


def build_bracket(participants, has_bronze_match: bool = True, shuffle: Optional[Shuffle] = None) -> Bracket:
    """
    Build a complete single elimination bracket from a roster.

    Args:
        participants: ParticipantSet or iterable of Participant
        has_bronze_match: add an empty third place match at (final round, 2)
        shuffle: random source; defaults to Fisher-Yates over the global generator

    Raises:
        InsufficientParticipants: fewer than two participants
        ByeAllocationInfeasible: too few unseeded participants to avoid BYE vs BYE
    """
    if not isinstance(participants, ParticipantSet):
        participants = ParticipantSet(participants)
    shuffle = shuffle or default_shuffle

    count = len(participants)
    if count < 2:
        raise InsufficientParticipants(count)

    bracket_size = calculate_bracket_size(count)
    total_rounds = calculate_total_rounds(bracket_size)
    num_byes = bracket_size - count
    seeded = participants.seeded
    pool = shuffle(participants.unseeded)
    logger.info(f"Building bracket: {count} participants ({len(seeded)} seeded), "
                f"size {bracket_size}, {total_rounds} rounds, {num_byes} byes")

    positions = place_seeds(bracket_size, seeded, shuffle, num_byes)
    positions, pool = grant_seed_advantages(positions, pool)
    positions, pool = fill_empty_pairs(positions, pool, shuffle)
    positions = fill_remaining(positions, pool, num_byes)
    counts = validate_positions(positions, list(participants), num_byes)

    matches = materialize_matches(positions, total_rounds, has_bronze_match)
    return Bracket(matches, positions, total_rounds, num_byes, has_bronze_match, counts)


def _generate_bracket_order(bracket_size: int) -> List[int]:
    """
    Generate the standard tournament bracket order.
    This ensures that if all higher seeds win, they meet in the proper rounds.

    For 8 participants: [1, 8, 4, 5, 2, 7, 3, 6]
    This gives matchups: 1v8, 4v5, 2v7, 3v6
    """
    if bracket_size == 2:
        return [1, 2]

    half_size = bracket_size // 2
    upper_half = _generate_bracket_order(half_size)
    lower_half = [bracket_size + 1 - seed for seed in upper_half]

    result = []
    for u, l in zip(upper_half, lower_half):
        result.extend([u, l])
    return result


def place_by_rank(ranked: Sequence[Participant], bracket_size: int,
                  placement: str = PLACEMENT_SEQUENTIAL) -> Positions:
    """
    Lay out participants whose list order is their seeding.

    ``sequential`` fills positions in rank order, giving the first
    ``num_byes`` ranks a pair of their own; ``standard`` uses the classic
    1 vs N bracket order, where byes also land on the best ranks.
    """
    num_byes = bracket_size - len(ranked)
    if placement == PLACEMENT_STANDARD:
        order = _generate_bracket_order(bracket_size)
        return tuple(ranked[seed - 1] if seed <= len(ranked) else None for seed in order)
    if placement != PLACEMENT_SEQUENTIAL:
        raise ValueError(f"Unknown placement: {placement}")

    queue = list(ranked)
    positions = []
    for pair_index in range(bracket_size // 2):
        if pair_index < num_byes:
            positions.extend([queue.pop(0), None])
        else:
            positions.extend([queue.pop(0), queue.pop(0)])
    return tuple(positions)


def build_ranked_bracket(ranked: Sequence[Participant], has_bronze_match: bool = True,
                         placement: str = PLACEMENT_SEQUENTIAL) -> Bracket:
    """
    Build a bracket where list order is the seeding (used for playoffs).

    No tier randomization applies; byes go to the highest ranks first and the
    same validation pass as build_bracket runs before matches are created.
    """
    ranked = list(ParticipantSet(ranked))
    count = len(ranked)
    if count < 2:
        raise InsufficientParticipants(count)

    bracket_size = calculate_bracket_size(count)
    total_rounds = calculate_total_rounds(bracket_size)
    num_byes = bracket_size - count
    logger.info(f"Building ranked bracket: {count} participants, size {bracket_size}, {num_byes} byes")

    positions = place_by_rank(ranked, bracket_size, placement)
    # Every ranked participant counts as seeded: rank order is the seeding.
    counts = validate_positions(positions, ranked, num_byes, is_seeded=lambda p: True)
    matches = materialize_matches(positions, total_rounds, has_bronze_match)
    return Bracket(matches, positions, total_rounds, num_byes, has_bronze_match, counts)
