"""
Core data types: participants, matches, groups and auxiliary counters.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple, Union

from tourney.errors import InvalidParticipantSet

# Seeds outside 1..MAX_SEED carry no placement meaning and are treated as unseeded.
MAX_SEED = 8

_SCORE_RE = re.compile(r'(\d+)\s*[-:–—]\s*(\d+)')


@dataclass(frozen=True)
class Participant:
    id: str
    name: str
    seed: Optional[int] = None
    group: Optional[str] = None

    @property
    def is_seeded(self) -> bool:
        return isinstance(self.seed, int) and 1 <= self.seed <= MAX_SEED

    def to_dict(self) -> Dict:
        data = {'id': self.id, 'name': self.name}
        if self.seed is not None:
            data['seed'] = self.seed
        if self.group is not None:
            data['group'] = self.group
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'Participant':
        participant_id = str(data.get('id') or data['name'])
        seed = data.get('seed')
        group = data.get('group')
        return cls(
            id=participant_id,
            name=data.get('name', participant_id),
            seed=int(seed) if seed not in (None, '') else None,
            group=str(group) if group not in (None, '') else None,
        )


class ParticipantSet:
    """
    Validated, ordered collection of participants.

    Ids must be unique, and no two participants may share a meaningful seed.
    Declaration order is preserved; it is the final tie-break in standings.
    """

    def __init__(self, participants):
        self._participants = list(participants)
        self._validate()

    def _validate(self):
        seen_ids = set()
        seen_seeds = {}
        for participant in self._participants:
            if participant.id in seen_ids:
                raise InvalidParticipantSet(f"Duplicate participant id: {participant.id}")
            seen_ids.add(participant.id)
            if participant.is_seeded:
                if participant.seed in seen_seeds:
                    raise InvalidParticipantSet(
                        f"Seed {participant.seed} assigned to both "
                        f"{seen_seeds[participant.seed]} and {participant.name}"
                    )
                seen_seeds[participant.seed] = participant.name

    def __len__(self) -> int:
        return len(self._participants)

    def __iter__(self) -> Iterator[Participant]:
        return iter(self._participants)

    def __getitem__(self, index):
        return self._participants[index]

    def __repr__(self):
        return f"ParticipantSet({len(self._participants)} participants)"

    @property
    def seeded(self) -> List[Participant]:
        """Seeded participants, best seed first."""
        return sorted((p for p in self._participants if p.is_seeded), key=lambda p: p.seed)

    @property
    def unseeded(self) -> List[Participant]:
        return [p for p in self._participants if not p.is_seeded]

    def get(self, participant_id: str) -> Optional[Participant]:
        for participant in self._participants:
            if participant.id == participant_id:
                return participant
        return None

    def by_id(self) -> Dict[str, Participant]:
        return {p.id: p for p in self._participants}

    def by_group(self) -> Dict[str, List[Participant]]:
        """Participants keyed by their pre-assigned group, in first-seen group order."""
        groups = {}
        for participant in self._participants:
            if participant.group is None:
                continue
            groups.setdefault(participant.group, []).append(participant)
        return groups


class MatchStatus(str, Enum):
    UPCOMING = 'upcoming'
    LIVE = 'live'
    DELAYED = 'delayed'
    COMPLETED = 'completed'
    BYE = 'bye'


class StatCategory(str, Enum):
    YELLOW_CARD = 'yellow_card'
    RED_CARD = 'red_card'
    OTHER = 'other'


class SlotRef(NamedTuple):
    """A participant slot of a match: slot 1 is player1, slot 2 is player2."""
    round: int
    match_number: int
    slot: int


def parse_score(score) -> Optional[Tuple[int, int]]:
    """Parse "3-1", "3:1" or a (3, 1) pair into a tuple of ints. Returns None if unparseable."""
    if score is None:
        return None
    if isinstance(score, (list, tuple)):
        if len(score) != 2:
            return None
        try:
            return int(score[0]), int(score[1])
        except (TypeError, ValueError):
            return None
    match = _SCORE_RE.search(str(score))
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


class Match:
    def __init__(self, round: int, match_number: int, player1: Optional[Participant] = None,
                 player2: Optional[Participant] = None, winner: Optional[Participant] = None,
                 score: Union[str, Tuple[int, int], None] = None,
                 status: MatchStatus = MatchStatus.UPCOMING, group_number: Optional[int] = None):
        self.round = round
        self.match_number = match_number
        self.group_number = group_number
        self.player1 = player1
        self.player2 = player2
        self.winner = winner
        self.score = parse_score(score)
        self.status = MatchStatus(status)

    def __repr__(self):
        p1 = self.player1.name if self.player1 else None
        p2 = self.player2.name if self.player2 else None
        return (f"Match(round={self.round}, match_number={self.match_number}, "
                f"players=({p1}, {p2}), status={self.status.value})")

    @property
    def key(self) -> Tuple[int, int]:
        return self.round, self.match_number

    @property
    def participants(self) -> List[Participant]:
        return [p for p in (self.player1, self.player2) if p is not None]

    @property
    def is_bye(self) -> bool:
        return self.status == MatchStatus.BYE

    def has_participant(self, participant_id: str) -> bool:
        return any(p.id == participant_id for p in self.participants)

    def opponent_of(self, participant_id: str) -> Optional[Participant]:
        if self.player1 is not None and self.player1.id == participant_id:
            return self.player2
        if self.player2 is not None and self.player2.id == participant_id:
            return self.player1
        return None

    def get_slot(self, slot: int) -> Optional[Participant]:
        return self.player1 if slot == 1 else self.player2

    def set_slot(self, slot: int, participant: Optional[Participant]):
        if slot == 1:
            self.player1 = participant
        else:
            self.player2 = participant

    def to_dict(self) -> Dict:
        """Serializable form that references participants by id."""
        return {
            'round': self.round,
            'match_number': self.match_number,
            'group_number': self.group_number,
            'player1': self.player1.id if self.player1 else None,
            'player2': self.player2.id if self.player2 else None,
            'winner': self.winner.id if self.winner else None,
            'score': list(self.score) if self.score else None,
            'status': self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict, participants: Dict[str, Participant]) -> 'Match':
        def lookup(key):
            participant_id = data.get(key)
            return participants.get(participant_id) if participant_id else None

        return cls(
            round=int(data['round']),
            match_number=int(data['match_number']),
            group_number=data.get('group_number'),
            player1=lookup('player1'),
            player2=lookup('player2'),
            winner=lookup('winner'),
            score=data.get('score'),
            status=data.get('status', MatchStatus.UPCOMING.value),
        )


class Group:
    def __init__(self, number: int, members):
        self.number = number
        self.members = tuple(members)

    def __repr__(self):
        return f"Group(number={self.number}, members={[m.name for m in self.members]})"

    def __len__(self):
        return len(self.members)


@dataclass(frozen=True)
class AuxiliaryCounter:
    """Per-participant event count (e.g. cards) tagged with an explicit category."""
    participant_id: str
    category: StatCategory
    value: int = 1
