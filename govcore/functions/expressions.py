"""
Expression Trees

Eligibility (boolean) and voting-power (decimal) rules share one shape:

    Combinator(operator, operands)   inner node
    Predicate(function, capability)  leaf, arguments already decoded

Trees are immutable and built once from persisted data, e.g.

    {"operator": "or", "operands": [
        {"function": "is_did", "arguments": [["alice.bit"]]},
        {"function": "owns_erc721", "arguments": [60, "0x...", []]},
    ]}
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Tuple, Union

from ..exceptions import (
    ExpressionError,
    InvalidExpressionError,
    UnsupportedOperatorError,
)
from ..logger import get_logger
from .registry import Capability, CapabilityRegistry, ValueType

logger = get_logger(__name__)


class Operator(str, Enum):
    AND = "and"
    OR = "or"
    NOT = "not"
    SUM = "sum"


BOOLEAN_OPERATORS: FrozenSet[Operator] = frozenset({Operator.AND, Operator.OR, Operator.NOT})
DECIMAL_OPERATORS: FrozenSet[Operator] = frozenset({Operator.SUM})

_OPERATORS_BY_TYPE = {
    ValueType.BOOLEAN: BOOLEAN_OPERATORS,
    ValueType.DECIMAL: DECIMAL_OPERATORS,
}


# ══════════════════════════════════════════════════════════════════════
#  NODES
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Predicate:
    """Leaf: a registered capability bound to its arguments."""
    function: str
    capability: Capability

    @property
    def value_type(self) -> ValueType:
        return self.capability.value_type

    def to_dict(self) -> Dict[str, Any]:
        return {"function": self.function, "arguments": self.capability.to_arguments()}


@dataclass(frozen=True)
class Combinator:
    """Inner node. `NOT` reads only its first operand."""
    operator: Operator
    operands: Tuple["Expression", ...]

    def __post_init__(self):
        if not isinstance(self.operands, tuple):
            object.__setattr__(self, "operands", tuple(self.operands))
        if self.operator == Operator.NOT and not self.operands:
            raise InvalidExpressionError("NOT requires an operand")

    def to_dict(self) -> Dict[str, Any]:
        operator = self.operator.value if isinstance(self.operator, Operator) else self.operator
        return {
            "operator": operator,
            "operands": [operand.to_dict() for operand in self.operands],
        }


Expression = Union[Combinator, Predicate]
BooleanExpression = Expression
DecimalExpression = Expression


def leaf(capability: Capability) -> Predicate:
    return Predicate(function=capability.kind.value, capability=capability)


def and_(*operands: Expression) -> Combinator:
    return Combinator(Operator.AND, operands)


def or_(*operands: Expression) -> Combinator:
    return Combinator(Operator.OR, operands)


def not_(operand: Expression) -> Combinator:
    return Combinator(Operator.NOT, (operand,))


def sum_(*operands: Expression) -> Combinator:
    return Combinator(Operator.SUM, operands)


# ══════════════════════════════════════════════════════════════════════
#  PARSING
# ══════════════════════════════════════════════════════════════════════

def parse_boolean_expression(
    data: Mapping[str, Any],
    registry: CapabilityRegistry,
    strict_not: bool = True,
) -> BooleanExpression:
    """
    Build a validated eligibility tree from JSON-like data.

    With *strict_not*, a NOT carrying more than one operand is rejected;
    otherwise it is accepted and the extra operands are ignored.
    """
    return _parse(data, registry, ValueType.BOOLEAN, strict_not, "$")


def parse_decimal_expression(
    data: Mapping[str, Any],
    registry: CapabilityRegistry,
) -> DecimalExpression:
    """Build a validated voting-power tree from JSON-like data."""
    return _parse(data, registry, ValueType.DECIMAL, True, "$")


def _parse(
    data: Any,
    registry: CapabilityRegistry,
    value_type: ValueType,
    strict_not: bool,
    path: str,
) -> Expression:
    if not isinstance(data, Mapping):
        raise InvalidExpressionError(f"{path}: expected an object, got {type(data).__name__}")

    if "operator" in data:
        operator = _parse_operator(data["operator"], value_type)
        raw_operands = data.get("operands")
        if not isinstance(raw_operands, (list, tuple)):
            raise InvalidExpressionError(f"{path}: operands must be a list")
        if operator == Operator.NOT and len(raw_operands) != 1:
            if not raw_operands or strict_not:
                raise InvalidExpressionError(
                    f"{path}: NOT takes exactly one operand, got {len(raw_operands)}"
                )
            logger.warning(
                f"{path}: NOT with {len(raw_operands)} operands; "
                f"only the first decides the result"
            )
        operands = tuple(
            _parse(operand, registry, value_type, strict_not, f"{path}.operands[{i}]")
            for i, operand in enumerate(raw_operands)
        )
        return Combinator(operator, operands)

    if "function" in data:
        name = data["function"]
        if not isinstance(name, str):
            raise InvalidExpressionError(f"{path}: function name must be a string")
        descriptor = registry.lookup(name, value_type)
        try:
            capability = descriptor.bind(data.get("arguments", []))
        except ExpressionError as exc:
            raise InvalidExpressionError(f"{path}: {exc}") from exc
        return Predicate(function=descriptor.name, capability=capability)

    raise InvalidExpressionError(f"{path}: expected 'operator' or 'function'")


def _parse_operator(raw: Any, value_type: ValueType) -> Operator:
    if not isinstance(raw, str):
        raise UnsupportedOperatorError(raw)
    try:
        operator = Operator(raw.lower())
    except ValueError:
        raise UnsupportedOperatorError(raw) from None
    if operator not in _OPERATORS_BY_TYPE[value_type]:
        raise UnsupportedOperatorError(raw)
    return operator
