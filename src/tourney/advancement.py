"""
Result recording and winner advancement for elimination brackets.

The engine owns a bracket's match list for the duration of a call: every
change is planned and validated first, then applied, so a rejected result
leaves the matches exactly as they were.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from tourney.elimination import destination_of
from tourney.errors import (
    InvalidSettings,
    InvalidStatusTransition,
    InvalidWinnerAssignment,
    InvariantViolation,
    MatchNotFound,
)
from tourney.models import Match, MatchStatus, Participant, SlotRef, parse_score

logger = logging.getLogger(__name__)

POLICY_OVERWRITE = 'overwrite'
POLICY_FORBID = 'forbid'
WINNER_CHANGE_POLICIES = (POLICY_OVERWRITE, POLICY_FORBID)

# Allowed status changes; completed -> completed is a re-declaration.
STATUS_TRANSITIONS = {
    MatchStatus.UPCOMING: {MatchStatus.LIVE, MatchStatus.DELAYED, MatchStatus.COMPLETED},
    MatchStatus.DELAYED: {MatchStatus.UPCOMING, MatchStatus.LIVE, MatchStatus.COMPLETED},
    MatchStatus.LIVE: {MatchStatus.COMPLETED, MatchStatus.DELAYED},
    MatchStatus.COMPLETED: {MatchStatus.COMPLETED},
    MatchStatus.BYE: set(),
}

__all__ = ['AdvancementEngine', 'destination_of', 'STATUS_TRANSITIONS', 'WINNER_CHANGE_POLICIES']


class AdvancementEngine:
    """
    Applies results to a bracket and moves winners forward.

    Args:
        matches: the event's match list (mutated in place)
        total_rounds: number of elimination rounds; inferred from the matches if omitted
        winner_change_policy: 'overwrite' replaces an already propagated winner,
            'forbid' refuses once the destination match has started
    """

    def __init__(self, matches: Iterable[Match], total_rounds: Optional[int] = None,
                 winner_change_policy: str = POLICY_OVERWRITE):
        if winner_change_policy not in WINNER_CHANGE_POLICIES:
            raise InvalidSettings(f"Unknown winner change policy: {winner_change_policy}")
        self.matches = list(matches)
        self.winner_change_policy = winner_change_policy
        self._index: Dict[Tuple[int, int], Match] = {m.key: m for m in self.matches}
        if total_rounds is None:
            total_rounds = max((m.round for m in self.matches), default=0)
        self.total_rounds = total_rounds

    @property
    def bronze_match(self) -> Optional[Match]:
        if self.total_rounds < 2:
            return None
        return self._index.get((self.total_rounds, 2))

    def get_match(self, round_number: int, match_number: int) -> Match:
        match = self._index.get((round_number, match_number))
        if match is None:
            raise MatchNotFound(round_number, match_number)
        return match

    def set_status(self, round_number: int, match_number: int, status) -> Match:
        """
        Move a match to a new status, enforcing the status machine.

        An elimination match can only be completed here once it has a winner;
        results go through record_result so the winner advances.
        """
        match = self.get_match(round_number, match_number)
        status = MatchStatus(status)
        self._check_transition(match, status)
        if status == MatchStatus.COMPLETED and match.round >= 1 and match.winner is None:
            raise InvalidStatusTransition(
                f"Match {match.key} needs a winner to complete; record a result instead"
            )
        match.status = status
        logger.debug(f"Match {match.key} status -> {status.value}")
        return match

    def _check_transition(self, match: Match, status: MatchStatus):
        if status == MatchStatus.BYE:
            raise InvalidStatusTransition("A bye can only be assigned when the bracket is built")
        if status not in STATUS_TRANSITIONS[match.status]:
            raise InvalidStatusTransition(
                f"Match {match.key} cannot go from {match.status.value} to {status.value}"
            )

    def record_result(self, round_number: int, match_number: int, winner_id: Optional[str],
                      score=None) -> Match:
        """
        Complete a match and advance its winner.

        Round-robin matches (round 0) may be recorded without a winner for a
        draw. Elimination matches need a winner who is one of the two players.
        Raises InvalidWinnerAssignment or InvalidStatusTransition without
        touching any match.
        """
        match = self.get_match(round_number, match_number)
        self._check_transition(match, MatchStatus.COMPLETED)

        winner = None
        if winner_id is not None:
            winner = self._find_participant(match, winner_id)
        elif match.round >= 1:
            raise InvalidWinnerAssignment(f"Match {match.key} needs a winner")

        if match.round >= 1 and len(match.participants) < 2:
            raise InvalidWinnerAssignment(f"Match {match.key} does not have two participants yet")

        plan = self._plan_advance(match, winner) if winner is not None else []

        match.winner = winner
        if score is not None:
            match.score = parse_score(score)
        match.status = MatchStatus.COMPLETED
        self._apply(plan)
        self._settle_unopposed_bronze()
        logger.info(f"Recorded result for match {match.key}: winner {winner.name if winner else 'draw'}")
        return match

    def advance(self, round_number: int, match_number: int) -> List[SlotRef]:
        """Propagate the current winner of a match (and semifinal loser) again."""
        match = self.get_match(round_number, match_number)
        if match.winner is None:
            raise InvalidWinnerAssignment(f"Match {match.key} has no winner to advance")
        plan = self._plan_advance(match, match.winner)
        self._apply(plan)
        self._settle_unopposed_bronze()
        return [slot for slot, _ in plan]

    def _find_participant(self, match: Match, participant_id: str) -> Participant:
        for participant in match.participants:
            if participant.id == participant_id:
                return participant
        raise InvalidWinnerAssignment(f"{participant_id} is not playing in match {match.key}")

    def _plan_advance(self, match: Match, winner: Participant) -> List[Tuple[SlotRef, Participant]]:
        plan = []
        if match.round < 1 or match.round >= self.total_rounds:
            return plan

        destination = destination_of(match.round, match.match_number)
        target = self._index.get((destination.round, destination.match_number))
        if target is None:
            raise InvariantViolation(f"Missing destination match for {match.key}: {destination}")

        current = target.get_slot(destination.slot)
        if current is not None and current.id != winner.id:
            self._handle_winner_change(match, target, current, winner)
        plan.append((destination, winner))

        if match.round == self.total_rounds - 1 and self.bronze_match is not None:
            loser = match.opponent_of(winner.id)
            if loser is not None:
                bronze_slot = self._bronze_slot_for(loser, winner)
                if bronze_slot is not None:
                    plan.append((bronze_slot, loser))
        return plan

    def _handle_winner_change(self, match: Match, target: Match, previous: Participant, winner: Participant):
        progressed = [m for m in self._downstream(target) if m.status != MatchStatus.UPCOMING]
        if self.winner_change_policy == POLICY_FORBID and target.status != MatchStatus.UPCOMING:
            raise InvalidWinnerAssignment(
                f"Winner of match {match.key} already advanced as {previous.name} "
                f"and match {target.key} is {target.status.value}"
            )
        logger.warning(f"Winner of match {match.key} changed from {previous.name} to {winner.name}")
        if progressed:
            logger.warning(f"Downstream matches already progressed and are not unwound: "
                           f"{[m.key for m in progressed]}")

    def _downstream(self, match: Match) -> List[Match]:
        chain = []
        current = match
        while current is not None:
            chain.append(current)
            if current.round >= self.total_rounds:
                break
            nxt = destination_of(current.round, current.match_number)
            current = self._index.get((nxt.round, nxt.match_number))
        return chain

    def _bronze_slot_for(self, loser: Participant, winner: Participant) -> Optional[SlotRef]:
        """Bronze slot for a semifinal loser, or None if the loser is already there."""
        bronze = self.bronze_match
        for slot in (1, 2):
            occupant = bronze.get_slot(slot)
            if occupant is not None and occupant.id == loser.id:
                return None
        # A changed semifinal winner leaves the new winner sitting in the bronze match.
        for slot in (1, 2):
            occupant = bronze.get_slot(slot)
            if occupant is not None and occupant.id == winner.id:
                logger.warning(f"Replacing {winner.name} with {loser.name} in the bronze match")
                return SlotRef(bronze.round, bronze.match_number, slot)
        for slot in (1, 2):
            if bronze.get_slot(slot) is None:
                return SlotRef(bronze.round, bronze.match_number, slot)
        raise InvariantViolation(f"No free bronze slot for {loser.name}")

    def _settle_unopposed_bronze(self):
        """
        Award the bronze match as a bye when a semifinal was itself a bye.

        A bye semifinal has no loser, so its bronze slot can never fill.
        """
        bronze = self.bronze_match
        if bronze is None or bronze.status not in (MatchStatus.UPCOMING, MatchStatus.BYE):
            return
        semifinals = [m for m in self.matches if m.round == self.total_rounds - 1]
        if len(bronze.participants) != 1 or not any(m.is_bye for m in semifinals):
            return
        bronze.winner = bronze.participants[0]
        if bronze.status != MatchStatus.BYE:
            bronze.status = MatchStatus.BYE
            logger.info(f"{bronze.winner.name} takes third place unopposed")

    def _apply(self, plan: List[Tuple[SlotRef, Participant]]):
        for slot, participant in plan:
            self._index[(slot.round, slot.match_number)].set_slot(slot.slot, participant)
            logger.debug(f"{participant.name} -> round {slot.round}, match {slot.match_number}, slot {slot.slot}")

    def is_round_complete(self, round_number: int) -> bool:
        """
        True when every match of the round is a bye or completed.

        Elimination matches also need a winner; round-robin matches may be draws.
        A round with no matches is never complete.
        """
        matches = [m for m in self.matches if m.round == round_number]
        if not matches:
            return False
        for match in matches:
            if match.is_bye:
                continue
            if match.status != MatchStatus.COMPLETED:
                return False
            if round_number >= 1 and match.winner is None:
                return False
        return True

    def champion(self) -> Optional[Participant]:
        if self.total_rounds < 1:
            return None
        final = self._index.get((self.total_rounds, 1))
        return final.winner if final else None

    def third_place(self) -> Optional[Participant]:
        bronze = self.bronze_match
        return bronze.winner if bronze else None
