"""
govcore Exceptions

Custom exception classes shared by the evaluation engine, the phase
machine and the choice codec.
"""

from typing import Optional


class GovernanceError(Exception):
    """Base exception for govcore."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  EXPRESSIONS
# ══════════════════════════════════════════════════════════════════════

class ExpressionError(GovernanceError):
    """Base exception for expression construction and evaluation."""
    pass


class UnknownFunctionError(ExpressionError):
    """Raised when an expression names a capability that is not registered."""
    def __init__(self, name: str, value_type: Optional[str] = None):
        self.name = name
        self.value_type = value_type
        if value_type:
            message = f"Unknown {value_type} function: {name!r}"
        else:
            message = f"Unknown function: {name!r}"
        super().__init__(message)


class UnsupportedOperatorError(ExpressionError):
    """Raised when a combinator uses an operator outside its family."""
    def __init__(self, operator: object):
        self.operator = operator
        super().__init__(f"Unsupported operator: {operator!r}")


class InvalidExpressionError(ExpressionError):
    """Raised when an expression tree or argument list is malformed."""
    pass


class RegistryFrozenError(GovernanceError):
    """Raised when registering a capability after startup."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  RESOLUTION
# ══════════════════════════════════════════════════════════════════════

class ResolutionError(GovernanceError):
    """
    Raised when a capability cannot be resolved against external data.

    Carries the failing leaf so the caller can decide whether to retry.
    """
    def __init__(
        self,
        message: str,
        function: Optional[str] = None,
        did: Optional[str] = None,
        coin_type: Optional[int] = None,
    ):
        self.function = function
        self.did = did
        self.coin_type = coin_type
        context = []
        if function:
            context.append(f"function={function}")
        if did:
            context.append(f"did={did}")
        if coin_type is not None:
            context.append(f"coin_type={coin_type}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


# ══════════════════════════════════════════════════════════════════════
#  BALLOTS & PHASES
# ══════════════════════════════════════════════════════════════════════

class MalformedBallotError(GovernanceError):
    """Raised when a ballot value cannot be decoded for its ballot type."""
    pass


class PhaseConfigError(GovernanceError):
    """Raised when a phase duration configuration is invalid."""
    pass


class PowerPrecisionError(GovernanceError):
    """Raised when a voting-power total cannot be represented exactly."""
    pass
