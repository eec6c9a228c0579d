"""
Ballot Choices

Encoding, toggling and tallying of a voter's selection.

  - single:   the choice is the option label itself; "" means no selection
  - multiple: the choice is a JSON array of unique labels, sorted;
              "" or "[]" mean no selection. A bare comma separated list
              ("A,B") is accepted on decode.

Multiple-choice ballots are approval style: the voter's full power goes to
every selected option, while the tally total counts the voter once.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..amounts import ZERO, share_of, sum_powers
from ..exceptions import MalformedBallotError


class BallotType(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


def _ballot_type(ballot_type: Any) -> BallotType:
    try:
        return BallotType(ballot_type)
    except ValueError:
        raise MalformedBallotError(f"Unknown ballot type: {ballot_type!r}") from None


# ══════════════════════════════════════════════════════════════════════
#  CODEC
# ══════════════════════════════════════════════════════════════════════

def decode_choice(ballot_type: BallotType, value: Optional[str]) -> Tuple[str, ...]:
    """Selected options of *value*, in encoded order."""
    ballot_type = _ballot_type(ballot_type)
    if value is None:
        return ()
    if not isinstance(value, str):
        raise MalformedBallotError(f"Choice must be a string, got {type(value).__name__}")

    if ballot_type == BallotType.SINGLE:
        return (value,) if value else ()

    text = value.strip()
    if not text:
        return ()
    if text.startswith("["):
        try:
            options = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedBallotError(f"Choice is not valid JSON: {exc}") from exc
        if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
            raise MalformedBallotError("Multiple choice must be a JSON array of strings")
    else:
        options = [o.strip() for o in text.split(",")]

    if any(not o for o in options):
        raise MalformedBallotError(f"Choice contains an empty option: {value!r}")
    if len(set(options)) != len(options):
        raise MalformedBallotError(f"Choice contains duplicate options: {value!r}")
    return tuple(options)


def encode_choice(ballot_type: BallotType, options: Iterable[str]) -> str:
    """Canonical encoding; multiple-choice options are deduplicated and sorted."""
    ballot_type = _ballot_type(ballot_type)
    options = list(options)
    if ballot_type == BallotType.SINGLE:
        if len(options) > 1:
            raise MalformedBallotError("Single choice holds at most one option")
        return options[0] if options else ""
    unique = sorted(set(options))
    if not unique:
        return ""
    return json.dumps(unique, ensure_ascii=False, separators=(",", ":"))


def is_empty(ballot_type: BallotType, value: Optional[str]) -> bool:
    return not decode_choice(ballot_type, value)


def contains(ballot_type: BallotType, value: Optional[str], option: str) -> bool:
    return option in decode_choice(ballot_type, value)


def toggle(ballot_type: BallotType, value: Optional[str], option: str) -> str:
    """
    Select or deselect *option*.

    Single choice always selects *option*, even if it is already selected.
    Multiple choice adds it when absent and removes it when present.
    """
    ballot_type = _ballot_type(ballot_type)
    if not isinstance(option, str) or not option:
        raise MalformedBallotError(f"Invalid option: {option!r}")
    if ballot_type == BallotType.SINGLE:
        decode_choice(ballot_type, value)
        return option
    selected = set(decode_choice(ballot_type, value))
    selected ^= {option}
    return encode_choice(ballot_type, selected)


def power_by_option(
    ballot_type: BallotType, value: Optional[str], total_power: Decimal,
) -> Dict[str, Decimal]:
    """Power each selected option receives; every selection gets the full power."""
    return {option: total_power for option in decode_choice(ballot_type, value)}


# ══════════════════════════════════════════════════════════════════════
#  TALLY
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Ballot:
    """One voter's encoded choice together with the voter's total power."""
    ballot_type: BallotType
    choice: str
    total_power: Decimal

    @property
    def is_empty(self) -> bool:
        return is_empty(self.ballot_type, self.choice)

    def powers(self) -> Dict[str, Decimal]:
        return power_by_option(self.ballot_type, self.choice, self.total_power)


@dataclass(frozen=True)
class ChoiceTally:
    """
    Accumulated power per option plus the total power of all cast ballots.

    Immutable: `aggregate` returns a new tally.
    """
    powers: Mapping[str, Decimal] = field(default_factory=dict)
    total: Decimal = Decimal("0")

    def __post_init__(self):
        object.__setattr__(self, "powers", MappingProxyType(dict(self.powers)))

    def __getitem__(self, option: str) -> Decimal:
        return self.powers.get(option, Decimal("0"))

    def percentage(self, option: str, pending: Optional[Ballot] = None) -> Decimal:
        """
        Share of *option* in percent, optionally previewing a not yet cast ballot.

        Returns 0 when nothing has been cast.
        """
        tally = aggregate(self, pending) if pending is not None else self
        return share_of(tally[option], tally.total)

    def ranking(self) -> List[Tuple[str, Decimal]]:
        """Options by descending power, ties broken by label."""
        return sorted(self.powers.items(), key=lambda item: (-item[1], item[0]))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "powers": {option: str(power) for option, power in sorted(self.powers.items())},
            "total": str(self.total),
        }


def aggregate(tally: ChoiceTally, ballot: Ballot) -> ChoiceTally:
    """Tally with *ballot* added; an empty ballot changes nothing."""
    contributions = ballot.powers()
    if not contributions:
        return tally
    powers = dict(tally.powers)
    for option, power in contributions.items():
        powers[option] = sum_powers((powers.get(option, ZERO), power))
    return ChoiceTally(powers=powers, total=sum_powers((tally.total, ballot.total_power)))


def tally_ballots(ballots: Iterable[Ballot]) -> ChoiceTally:
    """Fresh tally over *ballots*."""
    tally = ChoiceTally()
    for ballot in ballots:
        tally = aggregate(tally, ballot)
    return tally
