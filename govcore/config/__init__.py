"""
govcore Unified Configuration

Loads govcore.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    EngineSectionConfig,
    GovernanceConfig,
    LoggingSectionConfig,
    PhasesSectionConfig,
    load_config,
)

__all__ = [
    "EngineSectionConfig",
    "GovernanceConfig",
    "LoggingSectionConfig",
    "PhasesSectionConfig",
    "load_config",
]
