"""
govcore Constants

This module consolidates all global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

ENGINE_DEFAULTS = {
    'GOVCORE_MAX_CONCURRENCY':         '5',
    'GOVCORE_STRICT_NOT':              'True',
}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# EVALUATION CONSTANTS
# ==================================================================================
# Operand fan-out ceiling per combinator when nothing else is configured
DEFAULT_MAX_CONCURRENCY = 5

# Significant digits for voting-power arithmetic; covers 18-decimal token
# balances up to 10^60 whole tokens
POWER_PRECISION = 78


# ==================================================================================
# COIN TYPES (SLIP-44)
# ==================================================================================
COIN_TYPE_ETH = 60
COIN_TYPE_CKB = 309
COIN_TYPE_AR = 472
COIN_TYPE_BNB = 714
COIN_TYPE_MATIC = 966

COMMON_COIN_TYPES = {
    'ETH':   COIN_TYPE_ETH,
    'CKB':   COIN_TYPE_CKB,
    'AR':    COIN_TYPE_AR,
    'BNB':   COIN_TYPE_BNB,
    'MATIC': COIN_TYPE_MATIC,
}


# ==================================================================================
# PHASES
# ==================================================================================
PHASE_CONFIRMING = 'confirming'
PHASE_ENDED = 'ended'
RESERVED_PHASE_NAMES = frozenset({PHASE_CONFIRMING, PHASE_ENDED})

# Ordered phase shapes per process kind
GRANT_PHASE_NAMES = ('announcing', 'proposing', 'voting')
PROPOSAL_PHASE_NAMES = ('pending', 'voting')

# Defaults used when a community does not configure a duration
GRANT_DEFAULT_DURATIONS = {
    'announcing': 86400,       # 1 day
    'proposing':  7 * 86400,   # 1 week
    'voting':     7 * 86400,   # 1 week
}
PROPOSAL_DEFAULT_DURATIONS = {
    'pending':    86400,       # 1 day
    'voting':     7 * 86400,   # 1 week
}

# Duration units offered by the duration input (largest first)
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * 60
SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_WEEK = 7 * 24 * 60 * 60
SECONDS_PER_MONTH = 30 * 24 * 60 * 60
SECONDS_PER_YEAR = 364 * 24 * 60 * 60


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
# Values read from .env keep their built-in default reachable via .default()

class _HasDefault:
    __slots__ = ()

    def default(self):
        return self._default


class ConfigString(_HasDefault, str):
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj


class ConfigInt(_HasDefault, int):
    def __new__(cls, value, default):
        obj = int.__new__(cls, value)
        obj._default = default
        return obj


class ConfigBool(_HasDefault, int):
    """Boolean setting; an int subclass because bool cannot be subclassed."""
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def __repr__(self):
        return str(bool(self))

    __str__ = __repr__

    def __eq__(self, other):
        return bool(self) == other

    def __hash__(self):
        return hash(bool(self))


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
_BOOL_LITERALS = {"true": True, "false": False}


def parse_bool(v):
    """'True' / 'false' / ' TRUE ' into bool; anything else is returned unchanged."""
    if isinstance(v, str):
        return _BOOL_LITERALS.get(v.strip().casefold(), v)
    return v


def parse_int(v):
    """Decimal integer literal into int; anything else is returned unchanged."""
    if isinstance(v, str) and v.strip().lstrip('-').isdigit():
        return int(v.strip())
    return v


def _wrap(raw, default_raw):
    value = parse_int(parse_bool(raw))
    default = parse_int(parse_bool(default_raw))
    if isinstance(value, bool):
        return ConfigBool(value, default)
    if isinstance(value, int):
        return ConfigInt(value, default)
    return ConfigString(raw, default)


for _key, _default_raw in (ENGINE_DEFAULTS | LOGGER_DEFAULTS).items():
    # dotenv_values yields None for keys without a value
    _raw = _config.get(_key)
    globals()[_key] = _wrap(_default_raw if _raw is None else _raw, _default_raw)
