"""
Logging setup for dashboard runs.

Every module logs through ``logging.getLogger(__name__)``, so all records end
up under the ``prospect_dashboard`` logger. The entry point calls
``configure_logging`` once per run to attach a console handler and,
optionally, one log file per day.
"""
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "prospect_dashboard"
DEFAULT_LOG_DIR = Path(__file__).resolve().parents[2] / "logs"

_FORMATTER = logging.Formatter(
    fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def log_file_for(log_dir: Path, day: Optional[date] = None) -> Path:
    """Daily log file inside *log_dir*."""
    day = day or date.today()
    return Path(log_dir) / f"prospect_dashboard_{day:%Y-%m-%d}.log"


def configure_logging(level: str = "INFO", log_dir: Optional[Path] = DEFAULT_LOG_DIR) -> logging.Logger:
    """
    Attach console (and file) output to the package logger.

    Handlers from a previous call are closed and replaced, so the run's
    settings always win. Pass ``log_dir=None`` to log to the console only.
    Unknown level names fall back to INFO.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file_for(log_dir), encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(_FORMATTER)
        logger.addHandler(handler)
    return logger
