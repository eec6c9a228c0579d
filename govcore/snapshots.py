"""
Snapshots & External Collaborators

A SnapshotSet pins every evaluation to one point in time per coin type.
The engine never fetches anything itself: snapshot handles come from a
SnapshotResolver and chain state comes from a ChainDataSource, both
supplied by the surrounding application.
"""

from collections.abc import Mapping
from decimal import Decimal
from types import MappingProxyType
from typing import Iterable, Iterator, Optional, Protocol, Tuple, Union, runtime_checkable

from .concurrency import gather_bounded
from .constants import DEFAULT_MAX_CONCURRENCY
from .exceptions import ResolutionError
from .logger import get_logger

logger = get_logger(__name__)

SnapshotHandle = Union[str, int]


# ══════════════════════════════════════════════════════════════════════
#  SNAPSHOT SET
# ══════════════════════════════════════════════════════════════════════

class SnapshotSet(Mapping):
    """
    Immutable mapping of coin type → snapshot handle (e.g. block height).

    Safe to share by reference between concurrent operand evaluations.
    """

    __slots__ = ("_handles",)

    def __init__(self, handles: Optional[Mapping] = None):
        normalized = {}
        for coin_type, handle in dict(handles or {}).items():
            if isinstance(coin_type, bool):
                raise TypeError(f"Coin type must be an integer, got {coin_type!r}")
            normalized[int(coin_type)] = handle
        self._handles = MappingProxyType(normalized)

    def __getitem__(self, coin_type: int) -> SnapshotHandle:
        return self._handles[coin_type]

    def __iter__(self) -> Iterator[int]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def __hash__(self) -> int:
        return hash(frozenset(self._handles.items()))

    def __repr__(self) -> str:
        return f"<SnapshotSet {dict(self._handles)!r}>"

    def handle_for(self, coin_type: int, function: Optional[str] = None) -> SnapshotHandle:
        """Snapshot handle for *coin_type*; ResolutionError when it was never resolved."""
        try:
            return self._handles[coin_type]
        except KeyError:
            raise ResolutionError(
                "No snapshot resolved for coin type",
                function=function,
                coin_type=coin_type,
            ) from None

    def covers(self, coin_types: Iterable[int]) -> bool:
        return all(c in self._handles for c in coin_types)

    def to_dict(self) -> dict:
        return {str(k): v for k, v in self._handles.items()}


# ══════════════════════════════════════════════════════════════════════
#  COLLABORATOR PROTOCOLS
# ══════════════════════════════════════════════════════════════════════

@runtime_checkable
class SnapshotResolver(Protocol):
    """Resolves the current snapshot handle of one coin type."""

    async def resolve_snapshot(self, coin_type: int) -> SnapshotHandle:
        ...


@runtime_checkable
class ChainDataSource(Protocol):
    """Point-in-time chain queries used by capability leaves."""

    async def fetch_ownership(
        self,
        did: str,
        coin_type: int,
        snapshot: SnapshotHandle,
        contract: str,
        token_ids: Tuple[int, ...],
    ) -> bool:
        ...

    async def fetch_balance(
        self,
        did: str,
        coin_type: int,
        snapshot: SnapshotHandle,
        contract: str,
    ) -> Decimal:
        ...


# ══════════════════════════════════════════════════════════════════════
#  BATCHED RESOLUTION
# ══════════════════════════════════════════════════════════════════════

async def resolve_snapshots(
    coin_types: Iterable[int],
    resolver: SnapshotResolver,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> SnapshotSet:
    """
    Resolve one snapshot per distinct coin type and freeze them into a SnapshotSet.

    Typically fed with `required_coin_types(rule)` so a whole rule tree needs a
    single resolution step.
    """
    ordered = sorted(set(coin_types))

    async def resolve(coin_type: int) -> SnapshotHandle:
        try:
            return await resolver.resolve_snapshot(coin_type)
        except ResolutionError:
            raise
        except Exception as exc:
            raise ResolutionError(
                f"Snapshot resolution failed: {exc}", coin_type=coin_type,
            ) from exc

    handles = await gather_bounded(ordered, resolve, max_concurrency)
    snapshots = SnapshotSet(dict(zip(ordered, handles)))
    logger.debug(f"Resolved snapshots for coin types {ordered}")
    return snapshots
