"""
Expression Evaluation Test Suite

Coverage:
  - Boolean truth laws for AND / OR / NOT over identity predicates
  - On-chain predicates and weights through a fake chain data source
  - Exact decimal summation
  - No short-circuit: every operand runs even when the result is decided
  - Bounded fan-out per combinator, no deadlock when nested
  - Failure propagation: first failing operand in authored order wins
  - Resolution errors carry the failing function and identity
"""

import asyncio
import os
import sys
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from eth_utils import to_checksum_address

from govcore.exceptions import (
    InvalidExpressionError,
    PowerPrecisionError,
    ResolutionError,
    UnknownFunctionError,
    UnsupportedOperatorError,
)
from govcore.functions import (
    CapabilityRegistry,
    Combinator,
    DidWeight,
    Erc20Balance,
    Erc721Weight,
    ExpressionEvaluator,
    IsDid,
    IsSubDidOf,
    Operator,
    OwnsErc721,
    and_,
    leaf,
    not_,
    or_,
    sum_,
)
from govcore.snapshots import SnapshotSet


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = "alice.bit"
BOB = "bob.bit"
DEV = "dev.alice.bit"
ETH = 60

SNAPSHOTS = SnapshotSet({ETH: 18_000_000})


def contract(n: int) -> str:
    return to_checksum_address("0x" + f"{n:040x}")


class FakeChain:
    """In-memory ChainDataSource recording calls and in-flight concurrency."""

    def __init__(self, owners=None, balances=None, delays=None, failures=None, delay=0.0):
        self.owners = owners or {}        # (did, contract) -> set of token ids
        self.balances = balances or {}    # (did, contract) -> amount
        self.delays = delays or {}        # contract -> seconds
        self.failures = failures or {}    # contract -> exception
        self.delay = delay
        self.calls = []
        self.completed = []
        self.in_flight = 0
        self.peak = 0

    async def _visit(self, contract_address):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(contract_address, self.delay))
        finally:
            self.in_flight -= 1
        if contract_address in self.failures:
            raise self.failures[contract_address]
        self.completed.append(contract_address)

    async def fetch_ownership(self, did, coin_type, snapshot, contract_address, token_ids):
        self.calls.append((did, coin_type, snapshot, contract_address))
        await self._visit(contract_address)
        held = self.owners.get((did, contract_address), set())
        if token_ids:
            return bool(held & set(token_ids))
        return bool(held)

    async def fetch_balance(self, did, coin_type, snapshot, contract_address):
        self.calls.append((did, coin_type, snapshot, contract_address))
        await self._visit(contract_address)
        return self.balances.get((did, contract_address), Decimal("0"))


def owns(n: int, coin_type: int = ETH, token_ids=()):
    return leaf(OwnsErc721(coin_type, contract(n), tuple(token_ids)))


def is_did(*dids):
    return leaf(IsDid(tuple(dids)))


TRUE = is_did(ALICE)
FALSE = is_did(BOB)


def evaluator(source=None, **kwargs) -> ExpressionEvaluator:
    return ExpressionEvaluator(source=source, **kwargs)


# ══════════════════════════════════════════════════════════════════════
#  BOOLEAN LAWS
# ══════════════════════════════════════════════════════════════════════


class TestBooleanLaws:
    """Evaluated for ALICE: TRUE matches her, FALSE does not."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operands,expected", [
        ((TRUE, TRUE), True),
        ((TRUE, FALSE), False),
        ((FALSE, FALSE), False),
        ((), True),
    ])
    async def test_and(self, operands, expected):
        assert await evaluator().check_boolean(and_(*operands), ALICE, SNAPSHOTS) is expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operands,expected", [
        ((TRUE, TRUE), True),
        ((FALSE, TRUE), True),
        ((FALSE, FALSE), False),
        ((), False),
    ])
    async def test_or(self, operands, expected):
        assert await evaluator().check_boolean(or_(*operands), ALICE, SNAPSHOTS) is expected

    @pytest.mark.asyncio
    async def test_not(self):
        ev = evaluator()
        assert await ev.check_boolean(not_(TRUE), ALICE, SNAPSHOTS) is False
        assert await ev.check_boolean(not_(FALSE), ALICE, SNAPSHOTS) is True

    @pytest.mark.asyncio
    async def test_lenient_not_uses_first_operand(self):
        ev = evaluator(strict_not=False)
        expr = ev.parse_boolean({"operator": "not", "operands": [
            {"function": "is_did", "arguments": [[BOB]]},
            {"function": "is_did", "arguments": [[ALICE]]},
        ]})
        assert await ev.check_boolean(expr, ALICE, SNAPSHOTS) is True

    @pytest.mark.asyncio
    async def test_strict_not_rejects_built_tree(self):
        chain = FakeChain()
        expr = Combinator(Operator.NOT, (owns(1), owns(2)))
        with pytest.raises(InvalidExpressionError, match="exactly one operand"):
            await evaluator(chain).check_boolean(expr, ALICE, SNAPSHOTS)
        assert chain.calls == []

    @pytest.mark.asyncio
    async def test_lenient_not_accepts_built_tree(self):
        expr = Combinator(Operator.NOT, (FALSE, TRUE))
        assert await evaluator(strict_not=False).check_boolean(expr, ALICE, SNAPSHOTS) is True

    @pytest.mark.asyncio
    async def test_sub_did_predicate(self):
        ev = evaluator()
        expr = leaf(IsSubDidOf((ALICE,)))
        assert await ev.check_boolean(expr, DEV, SNAPSHOTS) is True
        assert await ev.check_boolean(expr, ALICE, SNAPSHOTS) is False
        assert await ev.check_boolean(expr, "x.dev.alice.bit", SNAPSHOTS) is False

    @pytest.mark.asyncio
    async def test_nested(self):
        # (alice OR bob) AND NOT sub-did-of alice
        expr = and_(or_(is_did(ALICE), is_did(BOB)), not_(leaf(IsSubDidOf((ALICE,)))))
        ev = evaluator()
        assert await ev.check_boolean(expr, ALICE, SNAPSHOTS) is True
        assert await ev.check_boolean(expr, DEV, SNAPSHOTS) is False

    @pytest.mark.asyncio
    async def test_identity_predicates_need_no_snapshots(self):
        assert await evaluator().check_boolean(TRUE, ALICE, SnapshotSet()) is True

    @pytest.mark.asyncio
    async def test_sum_in_boolean_tree_unsupported(self):
        with pytest.raises(UnsupportedOperatorError):
            await evaluator().check_boolean(Combinator(Operator.SUM, (TRUE,)), ALICE, SNAPSHOTS)

    @pytest.mark.asyncio
    async def test_non_expression_rejected(self):
        with pytest.raises(InvalidExpressionError):
            await evaluator().check_boolean("is_did", ALICE, SNAPSHOTS)


# ══════════════════════════════════════════════════════════════════════
#  ON-CHAIN PREDICATES
# ══════════════════════════════════════════════════════════════════════


class TestOnChain:

    @pytest.mark.asyncio
    async def test_owns_erc721_reads_pinned_snapshot(self):
        chain = FakeChain(owners={(ALICE, contract(1)): {7}})
        ev = evaluator(chain)
        assert await ev.check_boolean(owns(1), ALICE, SNAPSHOTS) is True
        assert chain.calls == [(ALICE, ETH, 18_000_000, contract(1))]

    @pytest.mark.asyncio
    async def test_erc20_balance_passes_pinned_snapshot(self):
        chain = AsyncMock()
        chain.fetch_balance.return_value = Decimal("42.5")
        expr = leaf(Erc20Balance(ETH, contract(2)))
        assert await evaluator(chain).calculate_decimal(expr, ALICE, SNAPSHOTS) == Decimal("42.5")
        chain.fetch_balance.assert_awaited_once_with(ALICE, ETH, 18_000_000, contract(2))

    @pytest.mark.asyncio
    async def test_owns_erc721_token_filter(self):
        chain = FakeChain(owners={(ALICE, contract(1)): {7}})
        ev = evaluator(chain)
        assert await ev.check_boolean(owns(1, token_ids=[7, 9]), ALICE, SNAPSHOTS) is True
        assert await ev.check_boolean(owns(1, token_ids=[9]), ALICE, SNAPSHOTS) is False

    @pytest.mark.asyncio
    async def test_missing_snapshot(self):
        ev = evaluator(FakeChain())
        with pytest.raises(ResolutionError) as exc:
            await ev.check_boolean(owns(1, coin_type=714), ALICE, SNAPSHOTS)
        assert exc.value.coin_type == 714
        assert exc.value.function == "owns_erc721"

    @pytest.mark.asyncio
    async def test_missing_source(self):
        with pytest.raises(ResolutionError, match="No chain data source"):
            await evaluator().check_boolean(owns(1), ALICE, SNAPSHOTS)

    @pytest.mark.asyncio
    async def test_non_bool_result_rejected(self):
        class Sloppy(FakeChain):
            async def fetch_ownership(self, *args):
                return "yes"

        with pytest.raises(ResolutionError, match="expected bool"):
            await evaluator(Sloppy()).check_boolean(owns(1), ALICE, SNAPSHOTS)


# ══════════════════════════════════════════════════════════════════════
#  DECIMAL
# ══════════════════════════════════════════════════════════════════════


class TestDecimal:

    @pytest.mark.asyncio
    async def test_exact_sum(self):
        expr = sum_(
            leaf(DidWeight((ALICE,), Decimal("0.1"))),
            leaf(DidWeight((ALICE,), Decimal("0.2"))),
        )
        assert await evaluator().calculate_decimal(expr, ALICE, SNAPSHOTS) == Decimal("0.3")

    @pytest.mark.asyncio
    async def test_sum_keeps_token_precision(self):
        amount = Decimal("1000000000000.000000000000000001")
        expr = sum_(leaf(DidWeight((ALICE,), amount)), leaf(DidWeight((ALICE,), amount)))
        total = await evaluator().calculate_decimal(expr, ALICE, SNAPSHOTS)
        assert total == Decimal("2000000000000.000000000000000002")

    @pytest.mark.asyncio
    async def test_sum_that_would_round_raises(self):
        expr = sum_(
            leaf(DidWeight((ALICE,), Decimal("1E+77"))),
            leaf(DidWeight((ALICE,), Decimal("0.000000001"))),
        )
        with pytest.raises(PowerPrecisionError):
            await evaluator().calculate_decimal(expr, ALICE, SNAPSHOTS)

    @pytest.mark.asyncio
    async def test_empty_sum_is_zero(self):
        assert await evaluator().calculate_decimal(sum_(), ALICE, SNAPSHOTS) == Decimal("0")

    @pytest.mark.asyncio
    async def test_mixed_weights(self):
        chain = FakeChain(
            owners={(ALICE, contract(1)): {1}},
            balances={(ALICE, contract(2)): Decimal("12.5")},
        )
        ev = evaluator(chain)
        expr = ev.parse_decimal({"operator": "sum", "operands": [
            {"function": "did_weight", "arguments": [[ALICE], "1"]},
            {"function": "sub_did_weight", "arguments": [[ALICE], "100"]},
            {"function": "erc721_weight", "arguments": [ETH, contract(1), [], "3"]},
            {"function": "erc20_balance", "arguments": [ETH, contract(2)]},
        ]})
        assert await ev.calculate_decimal(expr, ALICE, SNAPSHOTS) == Decimal("16.5")
        assert await ev.calculate_decimal(expr, DEV, SNAPSHOTS) == Decimal("100")

    @pytest.mark.asyncio
    async def test_has_power(self):
        ev = evaluator()
        expr = leaf(DidWeight((ALICE,), Decimal("2")))
        assert await ev.has_power(expr, ALICE, SNAPSHOTS) is True
        assert await ev.has_power(expr, BOB, SNAPSHOTS) is False

    @pytest.mark.asyncio
    async def test_negative_balance_rejected(self):
        chain = FakeChain(balances={(ALICE, contract(2)): Decimal("-1")})
        expr = leaf(Erc20Balance(ETH, contract(2)))
        with pytest.raises(ResolutionError, match="invalid amount"):
            await evaluator(chain).calculate_decimal(expr, ALICE, SNAPSHOTS)

    @pytest.mark.asyncio
    async def test_float_balance_rejected(self):
        chain = FakeChain(balances={(ALICE, contract(2)): 1.5})
        expr = leaf(Erc20Balance(ETH, contract(2)))
        with pytest.raises(ResolutionError, match="expected a decimal amount"):
            await evaluator(chain).calculate_decimal(expr, ALICE, SNAPSHOTS)

    @pytest.mark.asyncio
    async def test_boolean_operator_unsupported(self):
        with pytest.raises(UnsupportedOperatorError):
            await evaluator().calculate_decimal(
                Combinator(Operator.AND, (leaf(DidWeight((ALICE,), Decimal("1"))),)),
                ALICE, SNAPSHOTS,
            )


# ══════════════════════════════════════════════════════════════════════
#  FAN-OUT
# ══════════════════════════════════════════════════════════════════════


class TestFanOut:

    @pytest.mark.asyncio
    async def test_or_does_not_short_circuit(self):
        chain = FakeChain(
            owners={(ALICE, contract(1)): {1}},
            delays={contract(1): 0.0, contract(2): 0.05},
        )
        result = await evaluator(chain).check_boolean(or_(owns(1), owns(2)), ALICE, SNAPSHOTS)
        assert result is True
        assert sorted(chain.completed) == sorted([contract(1), contract(2)])

    @pytest.mark.asyncio
    async def test_and_does_not_short_circuit(self):
        chain = FakeChain(delays={contract(2): 0.05})
        result = await evaluator(chain).check_boolean(and_(owns(1), owns(2)), ALICE, SNAPSHOTS)
        assert result is False
        assert len(chain.completed) == 2

    @pytest.mark.asyncio
    async def test_failure_after_decided_result_still_fails(self):
        chain = FakeChain(
            delays={contract(2): 0.05},
            failures={contract(2): RuntimeError("rpc down")},
        )
        with pytest.raises(ResolutionError, match="rpc down"):
            await evaluator(chain).check_boolean(and_(owns(1), owns(2)), ALICE, SNAPSHOTS)

    @pytest.mark.asyncio
    async def test_concurrency_cap(self):
        chain = FakeChain(delay=0.01)
        expr = or_(*(owns(n) for n in range(1, 13)))
        await evaluator(chain, max_concurrency=5).check_boolean(expr, ALICE, SNAPSHOTS)
        assert len(chain.completed) == 12
        assert 1 < chain.peak <= 5

    @pytest.mark.asyncio
    async def test_concurrency_of_one_serializes(self):
        chain = FakeChain(delay=0.005)
        expr = sum_(*(leaf(Erc721Weight(ETH, contract(n), (), Decimal("1"))) for n in range(1, 5)))
        await evaluator(chain, max_concurrency=1).calculate_decimal(expr, ALICE, SNAPSHOTS)
        assert chain.peak == 1

    @pytest.mark.asyncio
    async def test_nested_combinators_do_not_deadlock(self):
        chain = FakeChain(owners={(ALICE, contract(4)): {1}})
        expr = and_(or_(owns(1), owns(2)), or_(owns(3), owns(4)), or_(and_(owns(5), owns(6))))
        ev = evaluator(chain, max_concurrency=1)
        result = await asyncio.wait_for(ev.check_boolean(expr, ALICE, SNAPSHOTS), timeout=2)
        assert result is False
        assert len(chain.completed) == 6

    @pytest.mark.asyncio
    async def test_first_failure_in_authored_order(self):
        chain = FakeChain(
            delays={contract(1): 0.05, contract(2): 0.0},
            failures={
                contract(1): RuntimeError("first"),
                contract(2): RuntimeError("second"),
            },
        )
        with pytest.raises(ResolutionError, match="first"):
            await evaluator(chain).check_boolean(or_(owns(1), owns(2)), ALICE, SNAPSHOTS)

    @pytest.mark.asyncio
    async def test_result_independent_of_completion_order(self):
        slow_true = FakeChain(
            owners={(ALICE, contract(1)): {1}},
            delays={contract(1): 0.03},
        )
        fast_true = FakeChain(
            owners={(ALICE, contract(1)): {1}},
            delays={contract(2): 0.03},
        )
        expr = not_(or_(owns(1), owns(2)))
        assert await evaluator(slow_true).check_boolean(expr, ALICE, SNAPSHOTS) is False
        assert await evaluator(fast_true).check_boolean(expr, ALICE, SNAPSHOTS) is False


# ══════════════════════════════════════════════════════════════════════
#  ERRORS
# ══════════════════════════════════════════════════════════════════════


class TestErrors:

    @pytest.mark.asyncio
    async def test_wrapped_error_names_function_and_did(self):
        chain = FakeChain(failures={contract(1): ConnectionError("timeout")})
        with pytest.raises(ResolutionError) as exc:
            await evaluator(chain).check_boolean(owns(1), ALICE, SNAPSHOTS)
        assert exc.value.function == "owns_erc721"
        assert exc.value.did == ALICE
        assert isinstance(exc.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_resolution_error_passes_through(self):
        original = ResolutionError("rate limited", coin_type=ETH)
        chain = FakeChain(failures={contract(1): original})
        with pytest.raises(ResolutionError) as exc:
            await evaluator(chain).check_boolean(owns(1), ALICE, SNAPSHOTS)
        assert exc.value is original

    @pytest.mark.asyncio
    async def test_unregistered_capability(self):
        ev = ExpressionEvaluator(registry=CapabilityRegistry())
        with pytest.raises(UnknownFunctionError):
            await ev.check_boolean(TRUE, ALICE, SNAPSHOTS)

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            ExpressionEvaluator(max_concurrency=0)

    def test_required_coin_types_shortcut(self):
        ev = evaluator()
        assert ev.required_coin_types(and_(owns(1), owns(2, coin_type=966))) == frozenset({ETH, 966})
