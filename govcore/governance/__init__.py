"""
govcore Governance

Provides:
  - GrantPhase / ProposalPhase / PhaseSchedule / current_phase   (phases.py)
  - BallotType / ChoiceTally / toggle / power_by_option          (choices.py)
  - VoteRecord / VotingEngine                                    (voting.py)
"""

from .phases import (
    DurationUnit,
    GrantPhase,
    PhaseDuration,
    PhaseSchedule,
    PhaseWindow,
    ProposalPhase,
    current_phase,
    format_duration,
    phase_windows,
    split_duration,
    time_until_phase,
)
from .choices import (
    Ballot,
    BallotType,
    ChoiceTally,
    aggregate,
    contains,
    decode_choice,
    encode_choice,
    is_empty,
    power_by_option,
    tally_ballots,
    toggle,
)
from .voting import (
    AlreadyVotedError,
    InsufficientVotingPowerError,
    NotEligibleError,
    VoteRecord,
    VotingClosedError,
    VotingEngine,
    VotingError,
)

__all__ = [
    # Phases
    "DurationUnit",
    "GrantPhase",
    "PhaseDuration",
    "PhaseSchedule",
    "PhaseWindow",
    "ProposalPhase",
    "current_phase",
    "format_duration",
    "phase_windows",
    "split_duration",
    "time_until_phase",
    # Choices
    "Ballot",
    "BallotType",
    "ChoiceTally",
    "aggregate",
    "contains",
    "decode_choice",
    "encode_choice",
    "is_empty",
    "power_by_option",
    "tally_ballots",
    "toggle",
    # Voting
    "AlreadyVotedError",
    "InsufficientVotingPowerError",
    "NotEligibleError",
    "VoteRecord",
    "VotingClosedError",
    "VotingEngine",
    "VotingError",
]
