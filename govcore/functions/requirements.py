"""
Coin-Type Requirement Inference

Walks an expression tree without evaluating it and collects the coin types
whose snapshots any evaluation could read. The answer depends only on the
tree, so the caller can resolve every snapshot in one batch up front.
"""

from typing import FrozenSet

from ..exceptions import InvalidExpressionError
from .expressions import Combinator, Expression, Predicate


def required_coin_types(expr: Expression) -> FrozenSet[int]:
    if isinstance(expr, Predicate):
        return expr.capability.required_coin_types
    if isinstance(expr, Combinator):
        return frozenset().union(*(required_coin_types(o) for o in expr.operands))
    raise InvalidExpressionError(f"Not an expression node: {expr!r}")
