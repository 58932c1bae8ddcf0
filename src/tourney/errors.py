"""
Error types raised by draw construction, advancement and standings.

Every error is raised before any match is emitted or mutated, so callers can
surface the message directly without cleaning up partial state.
"""
from typing import Optional


class TournamentError(Exception):
    """Base class for all tournament errors."""


class InsufficientParticipants(TournamentError):
    def __init__(self, count: int, minimum: int = 2):
        self.count = count
        self.minimum = minimum
        super().__init__(f"At least {minimum} participants are required, got {count}")


class InvalidParticipantSet(TournamentError):
    pass


class InvalidGroupConfiguration(TournamentError):
    pass


class ByeAllocationInfeasible(TournamentError):
    """Too few unseeded participants to keep every first-round pair occupied."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Not enough unseeded participants to avoid a BYE vs BYE pair: "
            f"at least {required} required, {available} available"
        )


class StandingsGroupUnderfilled(TournamentError):
    def __init__(self, group_number: Optional[int], required: int, available: int):
        self.group_number = group_number
        self.required = required
        self.available = available
        super().__init__(
            f"Group {group_number} has {available} eligible participants, "
            f"{required} qualifiers requested"
        )


class InvariantViolation(TournamentError):
    """Internal consistency check failed; indicates a defect, not bad input."""


class InvalidWinnerAssignment(TournamentError):
    pass


class InvalidStatusTransition(TournamentError):
    pass


class MatchNotFound(TournamentError):
    def __init__(self, round_number: int, match_number: int):
        self.round = round_number
        self.match_number = match_number
        super().__init__(f"No match at round {round_number}, match {match_number}")


class InvalidSettings(TournamentError):
    pass
