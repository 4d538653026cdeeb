"""
Logging setup for warehouse runs.
Every record is stamped with the id of the run that produced it, so console
output and run log files can be correlated with the outcome summary.
"""

import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional, Union


DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] [run %(run_id)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log every statement at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


class RunIdFilter(logging.Filter):
    """Attach ``run_id`` to each record passing through a handler."""

    def __init__(self, run_id: Optional[str] = None):
        super().__init__()
        self.run_id = run_id or "-"

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "run_id"):
            record.run_id = self.run_id
        return True


def resolve_level(level: Union[int, str]) -> int:
    """Map a level name such as ``"debug"`` to its number; unknown names mean INFO."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    run_id: Optional[str] = None,
    log_format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> None:
    """
    Configure root logging for one pipeline run.

    Args:
        level: Logging level or level name (default: INFO)
        log_file: Optional path to a log file, parent directories are created
        run_id: Run identifier stamped on every record
        log_format: Log message format
        date_format: Date format in log messages
    """
    level = resolve_level(level)
    formatter = logging.Formatter(log_format, date_format)
    run_filter = RunIdFilter(run_id)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(run_filter)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def create_run_log_file(base_dir: str = "logs", run_id: Optional[str] = None) -> str:
    """
    Build the log file path for a run: ``<base_dir>/dwh_run_<timestamp>[_<run_id>].log``.
    The directory is created if needed.
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_dir = Path(base_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    suffix = f"_{run_id}" if run_id else ""
    return str(log_dir / f"dwh_run_{timestamp}{suffix}.log")
