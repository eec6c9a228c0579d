"""
Capability Registry

A capability is a named predicate (boolean) or weight (decimal) function
that can sit at the leaf of an expression tree. Each one is a frozen
dataclass holding its decoded arguments; binding happens once, when the
expression is constructed, never at evaluation time.

The registry maps the closed set of CapabilityKind names to descriptors.
It is built once at startup, frozen, and then shared read-only.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Sequence, Tuple, Type, Union

from ..exceptions import (
    InvalidExpressionError,
    RegistryFrozenError,
    UnknownFunctionError,
)
from ..logger import get_logger
from ..snapshots import ChainDataSource, SnapshotSet

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ValueType(str, Enum):
    """What a capability (and the tree it sits in) evaluates to."""
    BOOLEAN = "boolean"
    DECIMAL = "decimal"


class CapabilityKind(str, Enum):
    """Closed set of capability names accepted in expressions."""
    # Predicates
    IS_DID = "is_did"
    IS_SUB_DID_OF = "is_sub_did_of"
    OWNS_ERC721 = "owns_erc721"
    # Weights
    DID_WEIGHT = "did_weight"
    SUB_DID_WEIGHT = "sub_did_weight"
    ERC721_WEIGHT = "erc721_weight"
    ERC20_BALANCE = "erc20_balance"


# ══════════════════════════════════════════════════════════════════════
#  CAPABILITY BASE
# ══════════════════════════════════════════════════════════════════════

class Capability(ABC):
    """
    A capability bound to validated arguments.

    Subclasses are frozen dataclasses and declare `kind` and `value_type`.
    """
    kind: ClassVar[CapabilityKind]
    value_type: ClassVar[ValueType]

    @property
    def required_coin_types(self) -> FrozenSet[int]:
        """Coin types whose snapshots `execute` reads. Fixed by the arguments."""
        return frozenset()

    @classmethod
    @abstractmethod
    def from_arguments(cls, arguments: Sequence[Any]) -> "Capability":
        """Decode and validate a raw argument list."""

    @abstractmethod
    def to_arguments(self) -> List[Any]:
        """Raw argument list this capability was bound from (JSON friendly)."""

    @abstractmethod
    async def execute(
        self,
        did: str,
        snapshots: SnapshotSet,
        source: Optional[ChainDataSource],
    ) -> Union[bool, Decimal]:
        """Evaluate for *did* at *snapshots*. May suspend on *source*."""


@dataclass(frozen=True)
class CapabilityDescriptor:
    """Registry entry: how to bind a named capability."""
    name: str
    kind: CapabilityKind
    value_type: ValueType
    factory: Type[Capability]

    def bind(self, arguments: Sequence[Any]) -> Capability:
        if not isinstance(arguments, (list, tuple)):
            raise InvalidExpressionError(
                f"{self.name}: arguments must be a list, got {type(arguments).__name__}"
            )
        return self.factory.from_arguments(arguments)


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════

class CapabilityRegistry:
    """
    Lookup table of capability descriptors keyed by (value type, kind).

    Responsibilities:
        - Register capability classes during startup
        - Reject registration once frozen
        - Resolve names to descriptors, raising UnknownFunctionError on a miss
    """

    def __init__(self):
        self._descriptors: Dict[Tuple[ValueType, CapabilityKind], CapabilityDescriptor] = {}
        self._frozen = False

    def register(self, factory: Type[Capability]) -> CapabilityDescriptor:
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register {factory.kind.value!r}: registry is frozen"
            )
        key = (factory.value_type, factory.kind)
        if key in self._descriptors:
            raise ValueError(f"Capability {factory.kind.value!r} already registered")
        descriptor = CapabilityDescriptor(
            name=factory.kind.value,
            kind=factory.kind,
            value_type=factory.value_type,
            factory=factory,
        )
        self._descriptors[key] = descriptor
        return descriptor

    def freeze(self) -> "CapabilityRegistry":
        self._frozen = True
        return self

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: str, value_type: ValueType) -> CapabilityDescriptor:
        """Descriptor for *name* among capabilities of *value_type*."""
        try:
            kind = CapabilityKind(name)
        except ValueError:
            raise UnknownFunctionError(str(name), value_type.value) from None
        descriptor = self._descriptors.get((value_type, kind))
        if descriptor is None:
            raise UnknownFunctionError(kind.value, value_type.value)
        return descriptor

    def names(self, value_type: ValueType) -> List[str]:
        return sorted(
            d.name for (vt, _), d in self._descriptors.items() if vt == value_type
        )

    def __len__(self) -> int:
        return len(self._descriptors)

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"<CapabilityRegistry capabilities={len(self)} {state}>"


def default_registry() -> CapabilityRegistry:
    """Build and freeze the registry holding every built-in capability."""
    # Lazy imports: capability modules import the base classes from here
    from .boolean import BOOLEAN_CAPABILITIES
    from .weights import DECIMAL_CAPABILITIES

    registry = CapabilityRegistry()
    for factory in BOOLEAN_CAPABILITIES + DECIMAL_CAPABILITIES:
        registry.register(factory)
    registry.freeze()
    logger.debug(
        f"Capability registry built: boolean={registry.names(ValueType.BOOLEAN)} "
        f"decimal={registry.names(ValueType.DECIMAL)}"
    )
    return registry
