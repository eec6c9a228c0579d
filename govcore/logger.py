"""
govcore Logging
===============

One root configuration shared by the engine, the config loader and the CLI:
a Rich console handler on stderr (or a plain stream handler when
highlighting is disabled) and an optional rotating file under `logs/`.

Usage:
    >>> from govcore.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.debug("[is_did] alice.bit → True")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Tuple

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FILE_OUTPUT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
)

PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "govcore.log"

GOVCORE_THEME = Theme({
    "govcore.arrow":     "bold yellow",
    "govcore.did":       "cyan",
    "govcore.function":  "bold magenta",
    "govcore.level":     "bold",
    "govcore.operator":  "bold white",
    "govcore.phase":     "bold blue",
    "govcore.power":     "bold green",
    "govcore.timestamp": "dim cyan",
})


class GovcoreLogHighlighter(RegexHighlighter):
    """Highlights DIDs, phases, operators and capability tags in log lines."""

    base_style = "govcore."
    highlights = [
        r"(?P<timestamp>^\S+ UTC)",
        r"(?P<level>\b(DEBUG|INFO|WARNING|ERROR|CRITICAL)\b)",
        r"(?P<arrow>→)",
        r"(?P<function>\[[a-z0-9_]+\])",
        r"(?P<operator>\b(AND|OR|NOT|SUM)\b)",
        r"(?P<phase>\b(confirming|announcing|proposing|pending|voting|ended)\b)",
        r"(?P<did>\b[\w-]+(?:\.[\w-]+)*\.(?:bit|eth)\b)",
        r"power=(?P<power>\d+(?:\.\d+)?)",
    ]


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that strips ANSI escapes and control characters.

    DIDs, option labels and rule files are user supplied and end up in log
    messages verbatim.
    """

    _escapes = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    _controls = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._controls.sub("", cls._escapes.sub("", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


def resolve_formats(log_format: str, date_format: str) -> Tuple[str, str, list]:
    """
    Check the configured formats against a sample record.

    Returns the formats to use plus a list of problems; a broken format is
    replaced by its default so logging stays available.
    """
    problems = []
    sample = logging.LogRecord("govcore", logging.INFO, "", 0, "sample", (), None)

    log_format = str(log_format or LOG_FORMAT.default())
    try:
        rendered = logging.Formatter(fmt=log_format).format(sample)
        if "%(" in rendered:
            raise ValueError("unprocessed specifier")
    except (ValueError, KeyError, TypeError) as e:
        problems.append(f"Invalid LOG_FORMAT ({e}), using default")
        log_format = str(LOG_FORMAT.default())

    date_format = str(date_format or LOG_DATE_FORMAT.default())
    if "%" not in date_format:
        problems.append(f"Invalid LOG_DATE_FORMAT {date_format!r}, using default")
        date_format = str(LOG_DATE_FORMAT.default())
    else:
        try:
            time.strftime(date_format)
        except ValueError as e:
            problems.append(f"Invalid LOG_DATE_FORMAT ({e}), using default")
            date_format = str(LOG_DATE_FORMAT.default())

    return log_format, date_format, problems


class LogManager:
    """
    Process-wide logging setup (singleton).

    `configure` runs once; later calls are no-ops. `set_level` may be called
    any time, e.g. after the `[logging]` config section has been read.
    """

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._configured = False
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._configured

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Configure the root logger.

        Args:
            log_level:      Level name; defaults to LOG_LEVEL
            log_file:       Rotating log file; defaults to logs/govcore.log
            console_output: Attach the stderr console handler
            file_output:    Attach the file handler; defaults to LOG_FILE_OUTPUT
        """
        with self._lock:
            if self._configured:
                return

            level = _numeric_level(log_level or LOG_LEVEL)
            log_format, date_format, problems = resolve_formats(LOG_FORMAT, LOG_DATE_FORMAT)

            # Timestamps in UTC regardless of host timezone
            formatter = TerminalSafeFormatter(fmt=log_format, datefmt=date_format + " UTC")
            formatter.converter = time.gmtime

            root = logging.getLogger()
            root.setLevel(level)
            root.handlers.clear()

            if console_output:
                root.addHandler(_console_handler(level, formatter))

            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)
            if file_output:
                path = log_file or LOG_FILE_PATH
                path.parent.mkdir(parents=True, exist_ok=True)
                handler = logging.handlers.RotatingFileHandler(
                    filename=str(path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

        for problem in problems:
            logging.getLogger(__name__).warning(problem)

    def set_level(self, log_level: str) -> None:
        level = _numeric_level(log_level)
        root = logging.getLogger()
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


def _numeric_level(name) -> int:
    return getattr(logging, str(name).upper(), logging.INFO)


def _console_handler(level: int, formatter: logging.Formatter) -> logging.Handler:
    if LOG_CONSOLE_HIGHLIGHTING:
        handler = RichHandler(
            console=Console(theme=GOVCORE_THEME, highlight=False, stderr=True),
            highlighter=GovcoreLogHighlighter(),
            keywords=[],
            markup=False,
            rich_tracebacks=True,
            show_level=False,
            show_path=False,
            show_time=False,
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, configuring the logging system on first use."""
    return _manager.get_logger(name)


def set_log_level(log_level: str) -> None:
    """Change the active log level, e.g. after loading `[logging]` config."""
    _manager.set_level(log_level)


_manager.configure()
