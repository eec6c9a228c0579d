"""Decoders for capability argument lists. All failures raise InvalidExpressionError."""

from decimal import Decimal, InvalidOperation
from typing import Any, Sequence, Tuple

from eth_utils import is_address, to_checksum_address

from ..exceptions import InvalidExpressionError


def expect_arity(name: str, arguments: Sequence[Any], minimum: int, maximum: int) -> None:
    if not minimum <= len(arguments) <= maximum:
        if minimum == maximum:
            expected = str(minimum)
        else:
            expected = f"{minimum}-{maximum}"
        raise InvalidExpressionError(
            f"{name}: expected {expected} arguments, got {len(arguments)}"
        )


def decode_dids(name: str, value: Any) -> Tuple[str, ...]:
    """Non-empty list of non-empty DID strings, deduplicated in authored order."""
    if not isinstance(value, (list, tuple)) or not value:
        raise InvalidExpressionError(f"{name}: expected a non-empty list of DIDs")
    dids = []
    for did in value:
        if not isinstance(did, str) or not did.strip():
            raise InvalidExpressionError(f"{name}: invalid DID {did!r}")
        if did not in dids:
            dids.append(did)
    return tuple(dids)


def decode_coin_type(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidExpressionError(f"{name}: coin type must be a non-negative integer, got {value!r}")
    return value


def decode_contract(name: str, value: Any) -> str:
    """Contract address, returned checksummed."""
    if not isinstance(value, str) or not is_address(value):
        raise InvalidExpressionError(f"{name}: invalid contract address {value!r}")
    return to_checksum_address(value)


def decode_token_ids(name: str, value: Any) -> Tuple[int, ...]:
    """Optional list of token ids (ints or decimal strings). Empty means any token."""
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise InvalidExpressionError(f"{name}: token ids must be a list")
    token_ids = []
    for token_id in value:
        if isinstance(token_id, str) and token_id.strip().isdigit():
            token_id = int(token_id.strip())
        if isinstance(token_id, bool) or not isinstance(token_id, int) or token_id < 0:
            raise InvalidExpressionError(f"{name}: invalid token id {token_id!r}")
        if token_id not in token_ids:
            token_ids.append(token_id)
    return tuple(token_ids)


def decode_weight(name: str, value: Any) -> Decimal:
    """Non-negative finite decimal weight. Floats go through str() to stay exact."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise InvalidExpressionError(f"{name}: invalid weight {value!r}")
    try:
        weight = Decimal(str(value))
    except InvalidOperation:
        raise InvalidExpressionError(f"{name}: invalid weight {value!r}") from None
    if not weight.is_finite() or weight < 0:
        raise InvalidExpressionError(f"{name}: weight must be a non-negative number, got {value!r}")
    return weight
