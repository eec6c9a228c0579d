"""
Lifecycle Phases

Derives the discrete stage of a time-boxed governance process purely from
elapsed time since confirmation and an ordered list of phase durations.

    grant:    confirming → announcing → proposing → voting → ended
    proposal: confirming → pending → voting → ended

Every phase covers the half-open interval [start, end); a zero-length phase
is therefore never current.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from ..constants import (
    GRANT_PHASE_NAMES,
    PHASE_CONFIRMING,
    PHASE_ENDED,
    PROPOSAL_PHASE_NAMES,
    RESERVED_PHASE_NAMES,
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
    SECONDS_PER_MONTH,
    SECONDS_PER_WEEK,
    SECONDS_PER_YEAR,
)
from ..exceptions import PhaseConfigError

Timestamp = Union[int, float, datetime]


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class GrantPhase(str, Enum):
    """Phases of a grant round."""
    CONFIRMING = PHASE_CONFIRMING
    ANNOUNCING = "announcing"
    PROPOSING = "proposing"
    VOTING = "voting"
    ENDED = PHASE_ENDED


class ProposalPhase(str, Enum):
    """Phases of a workgroup proposal."""
    CONFIRMING = PHASE_CONFIRMING
    PENDING = "pending"
    VOTING = "voting"
    ENDED = PHASE_ENDED


class DurationUnit(IntEnum):
    """Units offered when entering a duration (year is 364 days)."""
    MINUTE = SECONDS_PER_MINUTE
    HOUR = SECONDS_PER_HOUR
    DAY = SECONDS_PER_DAY
    WEEK = SECONDS_PER_WEEK
    MONTH = SECONDS_PER_MONTH
    YEAR = SECONDS_PER_YEAR


# ══════════════════════════════════════════════════════════════════════
#  SCHEDULE
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PhaseDuration:
    name: str
    seconds: int

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise PhaseConfigError(f"Phase name must be a non-empty string, got {self.name!r}")
        if self.name in RESERVED_PHASE_NAMES:
            raise PhaseConfigError(f"Phase name {self.name!r} is reserved")
        if isinstance(self.seconds, bool) or not isinstance(self.seconds, int):
            raise PhaseConfigError(f"Duration of {self.name!r} must be an integer number of seconds")
        if self.seconds < 0:
            raise PhaseConfigError(f"Duration of {self.name!r} cannot be negative")


@dataclass(frozen=True)
class PhaseWindow:
    """Absolute [start, end) interval of one phase, in POSIX seconds."""
    name: str
    start: float
    end: float

    @property
    def length(self) -> float:
        return self.end - self.start

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "start": self.start, "end": self.end}


@dataclass(frozen=True)
class PhaseSchedule:
    """Ordered, immutable sequence of phase durations for one process kind."""
    phases: Tuple[PhaseDuration, ...]

    def __post_init__(self):
        phases = tuple(self.phases)
        if not phases:
            raise PhaseConfigError("A schedule needs at least one phase")
        names = [p.name for p in phases]
        if len(set(names)) != len(names):
            raise PhaseConfigError(f"Duplicate phase names: {names}")
        object.__setattr__(self, "phases", phases)

    @classmethod
    def from_pairs(cls, pairs: Sequence[Tuple[str, int]]) -> "PhaseSchedule":
        return cls(tuple(PhaseDuration(name, seconds) for name, seconds in pairs))

    @classmethod
    def from_mapping(cls, durations: Mapping[str, int], order: Sequence[str]) -> "PhaseSchedule":
        """Schedule from a persisted `{name: seconds}` mapping, in the given order."""
        missing = [name for name in order if name not in durations]
        if missing:
            raise PhaseConfigError(f"Missing durations for phases: {missing}")
        extra = sorted(set(durations) - set(order))
        if extra:
            raise PhaseConfigError(f"Unexpected phases: {extra}")
        return cls.from_pairs([(name, durations[name]) for name in order])

    @classmethod
    def for_grant(cls, durations: Mapping[str, int]) -> "PhaseSchedule":
        return cls.from_mapping(durations, GRANT_PHASE_NAMES)

    @classmethod
    def for_proposal(cls, durations: Mapping[str, int]) -> "PhaseSchedule":
        return cls.from_mapping(durations, PROPOSAL_PHASE_NAMES)

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.phases]

    @property
    def total_seconds(self) -> int:
        return sum(p.seconds for p in self.phases)

    def boundaries(self) -> List[int]:
        """Cumulative offsets c[0]=0, c[i]=c[i-1]+seconds[i-1]."""
        offsets = [0]
        for phase in self.phases:
            offsets.append(offsets[-1] + phase.seconds)
        return offsets

    def offset_of(self, name: str) -> int:
        """Seconds after confirmation at which phase *name* starts."""
        offsets = self.boundaries()
        for i, phase in enumerate(self.phases):
            if phase.name == name:
                return offsets[i]
        raise PhaseConfigError(f"Unknown phase {name!r}; schedule has {self.names}")

    def __iter__(self) -> Iterator[PhaseDuration]:
        return iter(self.phases)

    def to_dict(self) -> Dict[str, int]:
        return {p.name: p.seconds for p in self.phases}


# ══════════════════════════════════════════════════════════════════════
#  PHASE MACHINE
# ══════════════════════════════════════════════════════════════════════

def to_seconds(value: Timestamp) -> float:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Expected a timestamp, got {type(value).__name__}")
    return value


def current_phase(
    now: Timestamp,
    confirmed_at: Optional[Timestamp],
    schedule: PhaseSchedule,
) -> str:
    """
    Phase name at *now* for a process confirmed at *confirmed_at*.

    Returns "confirming" while unconfirmed and "ended" once every phase has
    elapsed. A clock behind the confirmation time counts as zero elapsed.
    """
    if confirmed_at is None:
        return PHASE_CONFIRMING
    elapsed = max(0.0, to_seconds(now) - to_seconds(confirmed_at))
    offsets = schedule.boundaries()
    for i, phase in enumerate(schedule.phases):
        if elapsed < offsets[i + 1]:
            return phase.name
    return PHASE_ENDED


def phase_windows(confirmed_at: Timestamp, schedule: PhaseSchedule) -> List[PhaseWindow]:
    """Absolute start/end of every phase, for progress displays."""
    base = to_seconds(confirmed_at)
    offsets = schedule.boundaries()
    return [
        PhaseWindow(phase.name, base + offsets[i], base + offsets[i + 1])
        for i, phase in enumerate(schedule.phases)
    ]


def time_until_phase(
    name: str,
    now: Timestamp,
    confirmed_at: Optional[Timestamp],
    schedule: PhaseSchedule,
) -> Optional[float]:
    """
    Seconds until phase *name* starts; 0 once it has started.

    None while the process is unconfirmed, since the start is not yet known.
    """
    start_offset = schedule.offset_of(name)
    if confirmed_at is None:
        return None
    start = to_seconds(confirmed_at) + start_offset
    return max(0.0, start - to_seconds(now))


# ══════════════════════════════════════════════════════════════════════
#  DURATIONS
# ══════════════════════════════════════════════════════════════════════

_UNITS_LARGEST_FIRST = sorted(DurationUnit, reverse=True)


def split_duration(seconds: int) -> Tuple[int, DurationUnit]:
    """
    Express *seconds* as (amount, unit) in the largest unit dividing it evenly.

    Zero maps to (0, HOUR); values not divisible by a minute fall back to
    whole minutes, rounded down.
    """
    if seconds < 0:
        raise PhaseConfigError("Duration cannot be negative")
    if seconds == 0:
        return 0, DurationUnit.HOUR
    for unit in _UNITS_LARGEST_FIRST:
        if seconds % unit == 0:
            return seconds // unit, unit
    return seconds // DurationUnit.MINUTE, DurationUnit.MINUTE


def join_duration(amount: int, unit: DurationUnit) -> int:
    return int(amount) * int(unit)


def format_duration(seconds: float) -> str:
    """Compact human form, e.g. 90061 → '1d 1h 1m 1s'."""
    remaining = int(max(0, seconds))
    if remaining == 0:
        return "0s"
    parts = []
    for label, size in (("d", SECONDS_PER_DAY), ("h", SECONDS_PER_HOUR), ("m", SECONDS_PER_MINUTE), ("s", 1)):
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{label}")
    return " ".join(parts)
