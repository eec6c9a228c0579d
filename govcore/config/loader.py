"""
govcore TOML Configuration Loader

Loads govcore.toml at startup with environment variable overrides.

Environment variable mapping:
    [engine] max_concurrency → GOVCORE_MAX_CONCURRENCY
    [engine] strict_not      → GOVCORE_STRICT_NOT
    [logging] level          → GOVCORE_LOG_LEVEL
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import (
    ConfigBool,
    GOVCORE_MAX_CONCURRENCY,
    GOVCORE_STRICT_NOT,
    GRANT_DEFAULT_DURATIONS,
    LOG_LEVEL,
    PROPOSAL_DEFAULT_DURATIONS,
    parse_bool,
    parse_int,
)
from ..exceptions import PhaseConfigError
from ..functions.evaluator import ExpressionEvaluator
from ..governance.phases import PhaseSchedule
from ..logger import get_logger

logger = get_logger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _dotenv_value(value):
    """Plain value of a .env setting; text that did not parse stays a string."""
    if isinstance(value, ConfigBool):
        return bool(value)
    if isinstance(value, int):
        return int(value)
    return str(value)


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------


@dataclass
class EngineSectionConfig:
    """[engine] section."""
    max_concurrency: int = field(default_factory=lambda: _dotenv_value(GOVCORE_MAX_CONCURRENCY))
    strict_not: bool = field(default_factory=lambda: _dotenv_value(GOVCORE_STRICT_NOT))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineSectionConfig":
        defaults = cls()
        return cls(
            max_concurrency=data.get("max_concurrency", defaults.max_concurrency),
            strict_not=data.get("strict_not", defaults.strict_not),
        )

    def apply_env(self) -> None:
        """Override from environment variables; values are checked in validate()."""
        if v := os.environ.get("GOVCORE_MAX_CONCURRENCY"):
            self.max_concurrency = parse_int(v)
        if v := os.environ.get("GOVCORE_STRICT_NOT"):
            self.strict_not = parse_bool(v)


@dataclass
class PhasesSectionConfig:
    """[phases.grant] and [phases.proposal] default durations, in seconds."""
    grant: Dict[str, int] = field(default_factory=lambda: dict(GRANT_DEFAULT_DURATIONS))
    proposal: Dict[str, int] = field(default_factory=lambda: dict(PROPOSAL_DEFAULT_DURATIONS))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhasesSectionConfig":
        return cls(
            grant={**GRANT_DEFAULT_DURATIONS, **data.get("grant", {})},
            proposal={**PROPOSAL_DEFAULT_DURATIONS, **data.get("proposal", {})},
        )

    def grant_schedule(self) -> PhaseSchedule:
        return PhaseSchedule.for_grant(self.grant)

    def proposal_schedule(self) -> PhaseSchedule:
        return PhaseSchedule.for_proposal(self.proposal)


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = str(LOG_LEVEL)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(level=str(data.get("level", LOG_LEVEL)).upper())

    def apply_env(self) -> None:
        if v := os.environ.get("GOVCORE_LOG_LEVEL"):
            self.level = v.upper()


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class GovernanceConfig:
    """
    Unified engine configuration.

    Loads every section of govcore.toml and applies environment variable
    overrides.
    """
    engine: EngineSectionConfig = field(default_factory=EngineSectionConfig)
    phases: PhasesSectionConfig = field(default_factory=PhasesSectionConfig)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        """Create GovernanceConfig from a parsed TOML dict."""
        return cls(
            engine=EngineSectionConfig.from_dict(data.get("engine", {})),
            phases=PhasesSectionConfig.from_dict(data.get("phases", {})),
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "GovernanceConfig":
        """
        Load configuration from a TOML file.

        Args:
            config_path: Path to govcore.toml

        Returns:
            GovernanceConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            raw = tomllib.load(f)

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.engine.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ValueError: on invalid engine or logging settings
            PhaseConfigError: on invalid phase durations
        """
        max_concurrency = self.engine.max_concurrency
        if isinstance(max_concurrency, bool) or not isinstance(max_concurrency, int):
            raise ValueError(f"max_concurrency must be an integer, got {max_concurrency!r}")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        if not isinstance(self.engine.strict_not, bool):
            raise ValueError(f"strict_not must be True or False, got {self.engine.strict_not!r}")
        if self.logging.level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.logging.level}")
        try:
            self.phases.grant_schedule()
            self.phases.proposal_schedule()
        except PhaseConfigError as exc:
            raise PhaseConfigError(f"[phases] {exc}") from exc
        return True

    # --- wiring -----------------------------------------------------------

    def build_evaluator(self, source=None, registry=None) -> ExpressionEvaluator:
        """ExpressionEvaluator configured from the [engine] section."""
        return ExpressionEvaluator(
            registry=registry,
            source=source,
            max_concurrency=self.engine.max_concurrency,
            strict_not=self.engine.strict_not,
        )

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "engine": {
                "max_concurrency": self.engine.max_concurrency,
                "strict_not": self.engine.strict_not,
            },
            "phases": {
                "grant": dict(self.phases.grant),
                "proposal": dict(self.phases.proposal),
            },
            "logging": {
                "level": self.logging.level,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> GovernanceConfig:
    """
    Load engine configuration.

    Resolution order:
        1. Explicit *path* argument
        2. GOVCORE_CONFIG env var
        3. ./govcore.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("GOVCORE_CONFIG", "govcore.toml")

    return GovernanceConfig.from_file(path)
