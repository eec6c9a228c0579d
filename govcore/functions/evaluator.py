"""
Expression Evaluator

Evaluates eligibility trees to a bool and voting-power trees to a Decimal
for one identity at one SnapshotSet.

Every operand of a combinator is evaluated, concurrently and bounded by
`max_concurrency`; nothing short-circuits. A combinator's value depends only
on its operand results in authored order, never on completion order.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, FrozenSet, Mapping, Optional

from ..amounts import sum_powers
from ..concurrency import gather_bounded
from ..constants import DEFAULT_MAX_CONCURRENCY, GOVCORE_STRICT_NOT
from ..exceptions import (
    GovernanceError,
    InvalidExpressionError,
    ResolutionError,
    UnsupportedOperatorError,
)
from ..logger import get_logger
from ..snapshots import ChainDataSource, SnapshotSet
from .expressions import (
    BooleanExpression,
    Combinator,
    DecimalExpression,
    Expression,
    Operator,
    Predicate,
    parse_boolean_expression,
    parse_decimal_expression,
)
from .registry import CapabilityRegistry, ValueType, default_registry
from .requirements import required_coin_types

logger = get_logger(__name__)


class ExpressionEvaluator:
    """
    Permission and voting-power evaluator.

    Args:
        registry:        Frozen capability registry (defaults to the built-ins)
        source:          Chain data collaborator used by on-chain capabilities
        max_concurrency: Operand fan-out ceiling per combinator
        strict_not:      Reject multi-operand NOT when parsing and evaluating
    """

    def __init__(
        self,
        registry: Optional[CapabilityRegistry] = None,
        source: Optional[ChainDataSource] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        strict_not: Optional[bool] = None,
    ):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.registry = registry if registry is not None else default_registry()
        self.source = source
        self.max_concurrency = max_concurrency
        self.strict_not = bool(GOVCORE_STRICT_NOT) if strict_not is None else strict_not

    # ── Construction helpers ──────────────────────────────────────────

    def parse_boolean(self, data: Mapping[str, Any]) -> BooleanExpression:
        return parse_boolean_expression(data, self.registry, strict_not=self.strict_not)

    def parse_decimal(self, data: Mapping[str, Any]) -> DecimalExpression:
        return parse_decimal_expression(data, self.registry)

    # ── Static analysis ───────────────────────────────────────────────

    def required_coin_types(self, expr: Expression) -> FrozenSet[int]:
        return required_coin_types(expr)

    # ── Boolean ───────────────────────────────────────────────────────

    async def check_boolean(
        self, expr: BooleanExpression, did: str, snapshots: SnapshotSet,
    ) -> bool:
        """Evaluate an eligibility tree for *did*."""
        if isinstance(expr, Predicate):
            result = await self._execute(expr, ValueType.BOOLEAN, did, snapshots)
            if not isinstance(result, bool):
                raise ResolutionError(
                    f"Predicate returned {type(result).__name__}, expected bool",
                    function=expr.function, did=did,
                )
            return result

        if isinstance(expr, Combinator):
            if expr.operator == Operator.NOT and len(expr.operands) > 1 and self.strict_not:
                raise InvalidExpressionError(
                    f"NOT takes exactly one operand, got {len(expr.operands)}"
                )
            results = await gather_bounded(
                expr.operands,
                lambda operand: self.check_boolean(operand, did, snapshots),
                self.max_concurrency,
            )
            if expr.operator == Operator.AND:
                return all(results)
            if expr.operator == Operator.OR:
                return any(results)
            if expr.operator == Operator.NOT:
                if not results:
                    raise InvalidExpressionError("NOT requires an operand")
                return not results[0]
            raise UnsupportedOperatorError(expr.operator)

        raise InvalidExpressionError(f"Not an expression node: {expr!r}")

    # ── Decimal ───────────────────────────────────────────────────────

    async def calculate_decimal(
        self, expr: DecimalExpression, did: str, snapshots: SnapshotSet,
    ) -> Decimal:
        """Evaluate a voting-power tree for *did*."""
        if isinstance(expr, Predicate):
            result = await self._execute(expr, ValueType.DECIMAL, did, snapshots)
            return _to_amount(result, expr.function, did)

        if isinstance(expr, Combinator):
            if expr.operator != Operator.SUM:
                raise UnsupportedOperatorError(expr.operator)
            amounts = await gather_bounded(
                expr.operands,
                lambda operand: self.calculate_decimal(operand, did, snapshots),
                self.max_concurrency,
            )
            return sum_powers(amounts)

        raise InvalidExpressionError(f"Not an expression node: {expr!r}")

    async def has_power(
        self, expr: DecimalExpression, did: str, snapshots: SnapshotSet,
    ) -> bool:
        return await self.calculate_decimal(expr, did, snapshots) > 0

    # ── Leaves ────────────────────────────────────────────────────────

    async def _execute(
        self, leaf: Predicate, value_type: ValueType, did: str, snapshots: SnapshotSet,
    ):
        # Rejects names this evaluator's registry does not know
        self.registry.lookup(leaf.function, value_type)
        try:
            result = await leaf.capability.execute(did, snapshots, self.source)
        except GovernanceError:
            raise
        except Exception as exc:
            raise ResolutionError(
                f"Capability resolution failed: {exc}",
                function=leaf.function,
                did=did,
            ) from exc
        logger.debug(f"[{leaf.function}] {did} → {result}")
        return result


def _to_amount(value: Any, function: str, did: str) -> Decimal:
    """Exact non-negative Decimal from a capability result."""
    if isinstance(value, bool) or not isinstance(value, (Decimal, int, str)):
        raise ResolutionError(
            f"Weight returned {type(value).__name__}, expected a decimal amount",
            function=function, did=did,
        )
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except InvalidOperation:
        raise ResolutionError(
            f"Weight returned an invalid amount {value!r}", function=function, did=did,
        ) from None
    if not amount.is_finite() or amount < 0:
        raise ResolutionError(
            f"Weight returned an invalid amount {value!r}", function=function, did=did,
        )
    return amount
