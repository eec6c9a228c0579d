"""
Power-Weighted Voting

Implements:
  - Voting power resolution through the decimal evaluator
  - Batch power lookup for all DIDs of a wallet (bounded fan-out)
  - Proposing permission: eligibility rule + phase gate
  - Vote validation: voting phase, non-empty choice, positive power, one vote per DID
  - Tally rebuilt from vote records on every query

The engine holds no per-proposal state; previously cast votes are passed in.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from ..concurrency import gather_bounded
from ..exceptions import GovernanceError, MalformedBallotError
from ..functions.evaluator import ExpressionEvaluator
from ..functions.expressions import BooleanExpression, DecimalExpression
from ..logger import get_logger
from ..snapshots import SnapshotSet
from .choices import Ballot, BallotType, ChoiceTally, is_empty, tally_ballots
from .phases import GrantPhase

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class VotingError(GovernanceError):
    """Base voting error."""


class InsufficientVotingPowerError(VotingError):
    """Voter has no power under the voting rule."""


class AlreadyVotedError(VotingError):
    """Voter already cast a vote on this proposal."""


class VotingClosedError(VotingError):
    """Process is not in its voting phase."""


class NotEligibleError(GovernanceError):
    """Identity does not satisfy the proposing rule."""


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VoteRecord:
    """An individual vote cast by a voter."""
    proposal: str
    voter: str
    ballot_type: BallotType
    choice: str
    power: Decimal
    timestamp: float = field(default_factory=time.time)

    @property
    def ballot(self) -> Ballot:
        return Ballot(self.ballot_type, self.choice, self.power)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposal": self.proposal,
            "voter": self.voter,
            "ballotType": self.ballot_type.value,
            "choice": self.choice,
            "power": str(self.power),
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  VOTING ENGINE
# ══════════════════════════════════════════════════════════════════════

class VotingEngine:
    """
    Gatekeeper for proposing and voting.

    Responsibilities:
        - Resolve voting power via the evaluator
        - Decide whether an identity may propose
        - Validate and record votes
        - Rebuild tallies from vote records
    """

    def __init__(self, evaluator: ExpressionEvaluator, clock: Callable[[], float] = time.time):
        self.evaluator = evaluator
        self._clock = clock

    # ── Power ─────────────────────────────────────────────────────────

    async def voting_power(
        self, rule: DecimalExpression, did: str, snapshots: SnapshotSet,
    ) -> Decimal:
        return await self.evaluator.calculate_decimal(rule, did, snapshots)

    async def powers_of(
        self, rule: DecimalExpression, dids: Sequence[str], snapshots: SnapshotSet,
    ) -> Dict[str, Decimal]:
        """Voting power of every DID, e.g. all identities held by one wallet."""
        dids = list(dict.fromkeys(dids))
        powers = await gather_bounded(
            dids,
            lambda did: self.evaluator.calculate_decimal(rule, did, snapshots),
            self.evaluator.max_concurrency,
        )
        return dict(zip(dids, powers))

    # ── Proposing ─────────────────────────────────────────────────────

    async def can_propose(
        self,
        rule: BooleanExpression,
        did: str,
        snapshots: SnapshotSet,
        phase: Optional[str] = None,
    ) -> bool:
        """
        Whether *did* may submit a proposal.

        For grants pass the current *phase*: proposing is only open in the
        proposing phase. Workgroup proposals have no such gate.
        """
        if phase is not None and phase != GrantPhase.PROPOSING.value:
            return False
        return await self.evaluator.check_boolean(rule, did, snapshots)

    async def ensure_can_propose(
        self,
        rule: BooleanExpression,
        did: str,
        snapshots: SnapshotSet,
        phase: Optional[str] = None,
    ) -> None:
        if not await self.can_propose(rule, did, snapshots, phase):
            raise NotEligibleError(f"{did} is not allowed to propose (phase={phase})")

    # ── Cast vote ─────────────────────────────────────────────────────

    async def cast_vote(
        self,
        proposal: str,
        rule: DecimalExpression,
        voter: str,
        snapshots: SnapshotSet,
        ballot_type: BallotType,
        choice: str,
        phase: str,
        previous_votes: Iterable[VoteRecord] = (),
    ) -> VoteRecord:
        """
        Validate a vote and return its record.

        Args:
            proposal:       Proposal identifier (permalink)
            rule:           Voting-power expression of the workgroup or grant
            voter:          Voter's DID
            snapshots:      Snapshots pinned by the proposal
            ballot_type:    Single or multiple choice
            choice:         Encoded choice
            phase:          Current phase of the proposal
            previous_votes: Votes already recorded for the proposal
        """
        if phase != GrantPhase.VOTING.value:
            raise VotingClosedError(
                f"Proposal {proposal} is not open for voting (phase={phase})"
            )

        if is_empty(ballot_type, choice):
            raise MalformedBallotError("Choice cannot be empty")

        if any(v.voter == voter and v.proposal == proposal for v in previous_votes):
            raise AlreadyVotedError(f"{voter} has already voted on proposal {proposal}")

        power = await self.voting_power(rule, voter, snapshots)
        if power <= 0:
            raise InsufficientVotingPowerError(f"{voter} has no voting power")

        record = VoteRecord(
            proposal=proposal,
            voter=voter,
            ballot_type=BallotType(ballot_type),
            choice=choice,
            power=power,
            timestamp=self._clock(),
        )
        logger.info(f"Vote: {voter} → {choice} on {proposal} (power={power})")
        return record

    # ── Tally ─────────────────────────────────────────────────────────

    @staticmethod
    def tally(votes: Iterable[VoteRecord]) -> ChoiceTally:
        """
        Tally rebuilt from records: one ballot per voter, the latest one wins.
        """
        latest: Dict[str, VoteRecord] = {}
        for vote in votes:
            current = latest.get(vote.voter)
            if current is None or vote.timestamp >= current.timestamp:
                latest[vote.voter] = vote
        return tally_ballots(v.ballot for v in latest.values())

    @staticmethod
    def voters(votes: Iterable[VoteRecord]) -> List[str]:
        return sorted({v.voter for v in votes})

    def __repr__(self) -> str:
        return f"<VotingEngine concurrency={self.evaluator.max_concurrency}>"
