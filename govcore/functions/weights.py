"""
Decimal Capabilities

Weight functions usable at the leaves of voting-power expressions. They
mirror the predicates but yield a magnitude instead of a boolean:
  - did_weight:      fixed weight for listed identities
  - sub_did_weight:  fixed weight for direct sub-identities of listed parents
  - erc721_weight:   fixed weight for NFT holders
  - erc20_balance:   token balance at the pinned snapshot
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, ClassVar, FrozenSet, List, Optional, Sequence, Tuple

from ..amounts import ZERO
from ..snapshots import ChainDataSource, SnapshotSet
from .arguments import (
    decode_coin_type,
    decode_contract,
    decode_dids,
    decode_token_ids,
    decode_weight,
    expect_arity,
)
from .boolean import parent_did, require_source
from .registry import Capability, CapabilityKind, ValueType


@dataclass(frozen=True)
class DidWeight(Capability):
    kind: ClassVar[CapabilityKind] = CapabilityKind.DID_WEIGHT
    value_type: ClassVar[ValueType] = ValueType.DECIMAL

    dids: Tuple[str, ...]
    weight: Decimal

    @classmethod
    def from_arguments(cls, arguments: Sequence[Any]) -> "DidWeight":
        name = cls.kind.value
        expect_arity(name, arguments, 2, 2)
        return cls(
            dids=decode_dids(name, arguments[0]),
            weight=decode_weight(name, arguments[1]),
        )

    def to_arguments(self) -> List[Any]:
        return [list(self.dids), str(self.weight)]

    async def execute(self, did, snapshots, source) -> Decimal:
        return self.weight if did in self.dids else ZERO


@dataclass(frozen=True)
class SubDidWeight(Capability):
    kind: ClassVar[CapabilityKind] = CapabilityKind.SUB_DID_WEIGHT
    value_type: ClassVar[ValueType] = ValueType.DECIMAL

    parents: Tuple[str, ...]
    weight: Decimal

    @classmethod
    def from_arguments(cls, arguments: Sequence[Any]) -> "SubDidWeight":
        name = cls.kind.value
        expect_arity(name, arguments, 2, 2)
        return cls(
            parents=decode_dids(name, arguments[0]),
            weight=decode_weight(name, arguments[1]),
        )

    def to_arguments(self) -> List[Any]:
        return [list(self.parents), str(self.weight)]

    async def execute(self, did, snapshots, source) -> Decimal:
        return self.weight if parent_did(did) in self.parents else ZERO


@dataclass(frozen=True)
class Erc721Weight(Capability):
    """Arguments: [coin_type, contract, token_ids, weight]; empty token_ids means any token."""
    kind: ClassVar[CapabilityKind] = CapabilityKind.ERC721_WEIGHT
    value_type: ClassVar[ValueType] = ValueType.DECIMAL

    coin_type: int
    contract: str
    token_ids: Tuple[int, ...]
    weight: Decimal

    @property
    def required_coin_types(self) -> FrozenSet[int]:
        return frozenset({self.coin_type})

    @classmethod
    def from_arguments(cls, arguments: Sequence[Any]) -> "Erc721Weight":
        name = cls.kind.value
        expect_arity(name, arguments, 4, 4)
        return cls(
            coin_type=decode_coin_type(name, arguments[0]),
            contract=decode_contract(name, arguments[1]),
            token_ids=decode_token_ids(name, arguments[2]),
            weight=decode_weight(name, arguments[3]),
        )

    def to_arguments(self) -> List[Any]:
        return [self.coin_type, self.contract, [str(t) for t in self.token_ids], str(self.weight)]

    async def execute(self, did: str, snapshots: SnapshotSet, source: Optional[ChainDataSource]) -> Decimal:
        source = require_source(source, self.kind, did)
        snapshot = snapshots.handle_for(self.coin_type, function=self.kind.value)
        owns = await source.fetch_ownership(
            did, self.coin_type, snapshot, self.contract, self.token_ids,
        )
        return self.weight if owns else ZERO


@dataclass(frozen=True)
class Erc20Balance(Capability):
    kind: ClassVar[CapabilityKind] = CapabilityKind.ERC20_BALANCE
    value_type: ClassVar[ValueType] = ValueType.DECIMAL

    coin_type: int
    contract: str

    @property
    def required_coin_types(self) -> FrozenSet[int]:
        return frozenset({self.coin_type})

    @classmethod
    def from_arguments(cls, arguments: Sequence[Any]) -> "Erc20Balance":
        name = cls.kind.value
        expect_arity(name, arguments, 2, 2)
        return cls(
            coin_type=decode_coin_type(name, arguments[0]),
            contract=decode_contract(name, arguments[1]),
        )

    def to_arguments(self) -> List[Any]:
        return [self.coin_type, self.contract]

    async def execute(self, did: str, snapshots: SnapshotSet, source: Optional[ChainDataSource]) -> Decimal:
        source = require_source(source, self.kind, did)
        snapshot = snapshots.handle_for(self.coin_type, function=self.kind.value)
        return await source.fetch_balance(did, self.coin_type, snapshot, self.contract)


DECIMAL_CAPABILITIES = [DidWeight, SubDidWeight, Erc721Weight, Erc20Balance]
