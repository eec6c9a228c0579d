"""
govcore - Permission & Voting-Power Evaluation Engine

Core imports are lazily loaded to keep `import govcore` cheap.
For direct module access, import from submodules:

    from govcore.functions import ExpressionEvaluator, parse_boolean_expression
    from govcore.governance.phases import current_phase, PhaseSchedule
    from govcore.governance.choices import toggle, power_by_option
"""

__version__ = "0.3.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading for the most common entry points."""
    if name == 'ExpressionEvaluator':
        from .functions import ExpressionEvaluator
        return ExpressionEvaluator
    elif name == 'SnapshotSet':
        from .snapshots import SnapshotSet
        return SnapshotSet
    elif name == 'GovernanceError':
        from .exceptions import GovernanceError
        return GovernanceError
    raise AttributeError(f"module 'govcore' has no attribute {name!r}")

__all__ = ['ExpressionEvaluator', 'SnapshotSet', 'GovernanceError']
