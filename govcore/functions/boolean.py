"""
Boolean Capabilities

Predicates usable at the leaves of eligibility expressions:
  - is_did:         the identity is one of a fixed list
  - is_sub_did_of:  the identity is a direct sub-identity of a listed parent
  - owns_erc721:    the identity holds an NFT at the pinned snapshot
"""

from dataclasses import dataclass
from typing import Any, ClassVar, FrozenSet, List, Optional, Sequence, Tuple

from ..exceptions import ResolutionError
from ..snapshots import ChainDataSource, SnapshotSet
from .arguments import (
    decode_coin_type,
    decode_contract,
    decode_dids,
    decode_token_ids,
    expect_arity,
)
from .registry import Capability, CapabilityKind, ValueType


def parent_did(did: str) -> Optional[str]:
    """Parent of a sub-identity: `alice.dao.bit` → `dao.bit`. None for top-level DIDs."""
    label, sep, rest = did.partition(".")
    if not sep or not label or "." not in rest:
        return None
    return rest


def is_sub_did(did: str, parent: str) -> bool:
    return parent_did(did) == parent


def require_source(source: Optional[ChainDataSource], kind: CapabilityKind, did: str) -> ChainDataSource:
    if source is None:
        raise ResolutionError("No chain data source configured", function=kind.value, did=did)
    return source


@dataclass(frozen=True)
class IsDid(Capability):
    """True iff the identity is one of `dids`."""
    kind: ClassVar[CapabilityKind] = CapabilityKind.IS_DID
    value_type: ClassVar[ValueType] = ValueType.BOOLEAN

    dids: Tuple[str, ...]

    @classmethod
    def from_arguments(cls, arguments: Sequence[Any]) -> "IsDid":
        expect_arity(cls.kind.value, arguments, 1, 1)
        return cls(dids=decode_dids(cls.kind.value, arguments[0]))

    def to_arguments(self) -> List[Any]:
        return [list(self.dids)]

    async def execute(self, did, snapshots, source) -> bool:
        return did in self.dids


@dataclass(frozen=True)
class IsSubDidOf(Capability):
    """True iff the identity is a direct sub-identity of one of `parents`."""
    kind: ClassVar[CapabilityKind] = CapabilityKind.IS_SUB_DID_OF
    value_type: ClassVar[ValueType] = ValueType.BOOLEAN

    parents: Tuple[str, ...]

    @classmethod
    def from_arguments(cls, arguments: Sequence[Any]) -> "IsSubDidOf":
        expect_arity(cls.kind.value, arguments, 1, 1)
        return cls(parents=decode_dids(cls.kind.value, arguments[0]))

    def to_arguments(self) -> List[Any]:
        return [list(self.parents)]

    async def execute(self, did, snapshots, source) -> bool:
        return parent_did(did) in self.parents


@dataclass(frozen=True)
class OwnsErc721(Capability):
    """
    True iff the identity owns a token of `contract` on `coin_type`.

    With `token_ids` set, only those tokens count; empty means any token.
    """
    kind: ClassVar[CapabilityKind] = CapabilityKind.OWNS_ERC721
    value_type: ClassVar[ValueType] = ValueType.BOOLEAN

    coin_type: int
    contract: str
    token_ids: Tuple[int, ...] = ()

    @property
    def required_coin_types(self) -> FrozenSet[int]:
        return frozenset({self.coin_type})

    @classmethod
    def from_arguments(cls, arguments: Sequence[Any]) -> "OwnsErc721":
        name = cls.kind.value
        expect_arity(name, arguments, 2, 3)
        return cls(
            coin_type=decode_coin_type(name, arguments[0]),
            contract=decode_contract(name, arguments[1]),
            token_ids=decode_token_ids(name, arguments[2] if len(arguments) > 2 else None),
        )

    def to_arguments(self) -> List[Any]:
        args: List[Any] = [self.coin_type, self.contract]
        if self.token_ids:
            args.append([str(t) for t in self.token_ids])
        return args

    async def execute(self, did: str, snapshots: SnapshotSet, source: Optional[ChainDataSource]) -> bool:
        source = require_source(source, self.kind, did)
        snapshot = snapshots.handle_for(self.coin_type, function=self.kind.value)
        return await source.fetch_ownership(
            did, self.coin_type, snapshot, self.contract, self.token_ids,
        )


BOOLEAN_CAPABILITIES = [IsDid, IsSubDidOf, OwnsErc721]
