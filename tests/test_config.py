"""
Configuration Test Suite

Coverage:
  - govcore.toml parsing and defaults
  - Environment variable overrides
  - Validation of engine, phase and logging sections
  - Evaluator wiring from the [engine] section
  - Environment constants and the logging setup
"""

import logging
import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from govcore.config import GovernanceConfig, load_config
from govcore.config import loader
from govcore.constants import (
    ConfigBool,
    ConfigInt,
    ConfigString,
    GRANT_DEFAULT_DURATIONS,
    LOG_DATE_FORMAT,
    LOG_FORMAT,
    PROPOSAL_DEFAULT_DURATIONS,
    parse_bool,
    parse_int,
)
from govcore.exceptions import PhaseConfigError
from govcore.logger import (
    LogManager,
    TerminalSafeFormatter,
    get_logger,
    resolve_formats,
    set_log_level,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

SAMPLE_TOML = """
[engine]
max_concurrency = 8
strict_not = false

[phases.grant]
announcing = 3600
voting = 1209600

[phases.proposal]
pending = 0

[logging]
level = "debug"
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("GOVCORE_CONFIG", "GOVCORE_MAX_CONCURRENCY", "GOVCORE_STRICT_NOT", "GOVCORE_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "govcore.toml"
    path.write_text(SAMPLE_TOML)
    return path


# ══════════════════════════════════════════════════════════════════════
#  LOADING
# ══════════════════════════════════════════════════════════════════════


class TestLoading:

    def test_from_file(self, config_file):
        config = GovernanceConfig.from_file(str(config_file))
        assert config.engine.max_concurrency == 8
        assert config.engine.strict_not is False
        assert config.logging.level == "DEBUG"
        assert config.phases.grant == {
            "announcing": 3600,
            "proposing": GRANT_DEFAULT_DURATIONS["proposing"],
            "voting": 1209600,
        }
        assert config.phases.proposal["pending"] == 0
        assert config.validate() is True

    def test_missing_file_uses_defaults(self, tmp_path):
        config = GovernanceConfig.from_file(str(tmp_path / "nope.toml"))
        assert config.engine.max_concurrency == 5
        assert config.engine.strict_not is True
        assert config.phases.grant == GRANT_DEFAULT_DURATIONS
        assert config.phases.proposal == PROPOSAL_DEFAULT_DURATIONS

    def test_load_config_from_env_path(self, monkeypatch, config_file):
        monkeypatch.setenv("GOVCORE_CONFIG", str(config_file))
        assert load_config().engine.max_concurrency == 8

    def test_explicit_path_wins(self, monkeypatch, config_file, tmp_path):
        monkeypatch.setenv("GOVCORE_CONFIG", str(tmp_path / "nope.toml"))
        assert load_config(str(config_file)).engine.max_concurrency == 8

    def test_to_dict(self, config_file):
        data = GovernanceConfig.from_file(str(config_file)).to_dict()
        assert data["engine"] == {"max_concurrency": 8, "strict_not": False}
        assert data["logging"] == {"level": "DEBUG"}


class TestEnvOverrides:

    def test_overrides(self, monkeypatch, config_file):
        monkeypatch.setenv("GOVCORE_MAX_CONCURRENCY", "2")
        monkeypatch.setenv("GOVCORE_STRICT_NOT", "TRUE")
        monkeypatch.setenv("GOVCORE_LOG_LEVEL", "warning")
        config = GovernanceConfig.from_file(str(config_file))
        assert config.engine.max_concurrency == 2
        assert config.engine.strict_not is True
        assert config.logging.level == "WARNING"

    def test_invalid_bool_reported_by_validate(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GOVCORE_STRICT_NOT", "maybe")
        config = GovernanceConfig.from_file(str(tmp_path / "nope.toml"))
        with pytest.raises(ValueError, match="strict_not must be True or False, got 'maybe'"):
            config.validate()

    def test_invalid_concurrency_reported_by_validate(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GOVCORE_MAX_CONCURRENCY", "abc")
        config = load_config(str(tmp_path / "nope.toml"))
        assert config.engine.max_concurrency == "abc"
        with pytest.raises(ValueError, match="max_concurrency must be an integer, got 'abc'"):
            config.validate()

    def test_invalid_dotenv_value_reported_by_validate(self, monkeypatch):
        monkeypatch.setattr(loader, "GOVCORE_MAX_CONCURRENCY", ConfigString("abc", "5"))
        config = GovernanceConfig()
        assert config.engine.max_concurrency == "abc"
        with pytest.raises(ValueError, match="got 'abc'"):
            config.validate()


# ══════════════════════════════════════════════════════════════════════
#  VALIDATION
# ══════════════════════════════════════════════════════════════════════


class TestValidation:

    @pytest.mark.parametrize("section", [
        {"engine": {"max_concurrency": 0}},
        {"engine": {"max_concurrency": "5"}},
        {"engine": {"max_concurrency": True}},
        {"engine": {"strict_not": "yes"}},
        {"logging": {"level": "loud"}},
    ])
    def test_invalid_values(self, section):
        with pytest.raises(ValueError):
            GovernanceConfig.from_dict(section).validate()

    @pytest.mark.parametrize("phases", [
        {"grant": {"announcing": -1}},
        {"grant": {"review": 10}},
        {"proposal": {"voting": "1 week"}},
    ])
    def test_invalid_phases(self, phases):
        with pytest.raises(PhaseConfigError, match=r"\[phases\]"):
            GovernanceConfig.from_dict({"phases": phases}).validate()

    def test_schedules(self):
        config = GovernanceConfig()
        assert config.phases.grant_schedule().names == ["announcing", "proposing", "voting"]
        assert config.phases.proposal_schedule().names == ["pending", "voting"]


class TestWiring:

    def test_build_evaluator(self, config_file):
        evaluator = GovernanceConfig.from_file(str(config_file)).build_evaluator()
        assert evaluator.max_concurrency == 8
        assert evaluator.strict_not is False
        assert evaluator.registry.is_frozen


# ══════════════════════════════════════════════════════════════════════
#  CONSTANTS
# ══════════════════════════════════════════════════════════════════════


class TestConstantWrappers:

    def test_parse_bool(self):
        assert parse_bool(" true ") is True
        assert parse_bool("FALSE") is False
        assert parse_bool("yes") == "yes"

    def test_parse_int(self):
        assert parse_int("12") == 12
        assert parse_int("-3") == -3
        assert parse_int("1.5") == "1.5"

    def test_wrappers_keep_default(self):
        flag = ConfigBool(False, True)
        assert flag == False  # noqa: E712
        assert flag.default() is True
        number = ConfigInt(7, 5)
        assert number == 7
        assert number.default() == 5


# ══════════════════════════════════════════════════════════════════════
#  LOGGING
# ══════════════════════════════════════════════════════════════════════


class TestLogging:

    def test_sanitize_strips_escapes(self):
        assert TerminalSafeFormatter.sanitize("\x1b[31mevil.bit\x1b[0m\r\x07") == "evil.bit"
        assert TerminalSafeFormatter.sanitize("a\tb\nc") == "a\tb\nc"

    def test_broken_formats_fall_back(self):
        log_format, date_format, problems = resolve_formats("%(nope)s", "no directives")
        assert log_format == LOG_FORMAT.default()
        assert date_format == LOG_DATE_FORMAT.default()
        assert len(problems) == 2

    def test_valid_formats_kept(self):
        assert resolve_formats("%(message)s", "%H:%M") == ("%(message)s", "%H:%M", [])

    def test_set_log_level(self):
        root = logging.getLogger()
        previous = root.level
        try:
            set_log_level("warning")
            assert root.level == logging.WARNING
        finally:
            set_log_level(logging.getLevelName(previous))

    def test_get_logger_is_configured(self):
        assert get_logger("govcore.test").name == "govcore.test"
        assert LogManager().is_configured
