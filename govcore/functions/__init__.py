"""
govcore Expression Functions

Provides:
  - ValueType / CapabilityKind / CapabilityRegistry   (registry.py)
  - Built-in predicates and weights                   (boolean.py, weights.py)
  - Operator / Combinator / Predicate / parsing       (expressions.py)
  - ExpressionEvaluator                               (evaluator.py)
  - required_coin_types                               (requirements.py)
"""

from .registry import (
    Capability,
    CapabilityDescriptor,
    CapabilityKind,
    CapabilityRegistry,
    ValueType,
    default_registry,
)
from .boolean import IsDid, IsSubDidOf, OwnsErc721
from .weights import DidWeight, Erc20Balance, Erc721Weight, SubDidWeight
from .expressions import (
    BooleanExpression,
    Combinator,
    DecimalExpression,
    Expression,
    Operator,
    Predicate,
    and_,
    leaf,
    not_,
    or_,
    parse_boolean_expression,
    parse_decimal_expression,
    sum_,
)
from .requirements import required_coin_types
from .evaluator import ExpressionEvaluator

__all__ = [
    # Registry
    "Capability",
    "CapabilityDescriptor",
    "CapabilityKind",
    "CapabilityRegistry",
    "ValueType",
    "default_registry",
    # Capabilities
    "IsDid",
    "IsSubDidOf",
    "OwnsErc721",
    "DidWeight",
    "Erc20Balance",
    "Erc721Weight",
    "SubDidWeight",
    # Expressions
    "BooleanExpression",
    "Combinator",
    "DecimalExpression",
    "Expression",
    "Operator",
    "Predicate",
    "and_",
    "leaf",
    "not_",
    "or_",
    "parse_boolean_expression",
    "parse_decimal_expression",
    "sum_",
    # Evaluation
    "required_coin_types",
    "ExpressionEvaluator",
]
