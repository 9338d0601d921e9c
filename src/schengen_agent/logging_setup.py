# src/schengen_agent/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "agent.log"

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that chatter at INFO/DEBUG on every request or sync.
_QUIET_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "nio": logging.INFO,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console policy while the REPL is in use:

    - schengen_agent.*                      every level the handler lets through
    - schengen_agent.connectors.matrix_*    WARNING+ (push delivery is chatty)
    - anything else, py.warnings included   ERROR+

    The log file is unfiltered.
    """

    OWN_PREFIX = "schengen_agent."
    QUIET_PREFIX = "schengen_agent.connectors.matrix_"

    def filter(self, record: logging.LogRecord) -> bool:
        if not record.name.startswith(self.OWN_PREFIX):
            return record.levelno >= logging.ERROR
        if record.name.startswith(self.QUIET_PREFIX):
            return record.levelno >= logging.WARNING
        return True


def _console_handler(level: int, fmt: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(fmt)
    handler.addFilter(_ConsoleNoiseFilter())
    return handler


def _file_handler(path: Path, level: int, fmt: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(str(path), encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/schengen",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Route all logging to stderr (filtered) and to <log_dir>/agent.log (everything).

    Must run once before the agent thread starts. Returns the log file path.
    """
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    log_file = directory / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    root.addHandler(_console_handler(console_level, fmt))
    root.addHandler(_file_handler(log_file, file_level, fmt))

    # warnings.warn(...) -> 'py.warnings' logger
    logging.captureWarnings(True)

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    return log_file
