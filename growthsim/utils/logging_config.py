"""
Structured Logging for the Simulation Study
===========================================

Provides consistent logging across the study engine.

Usage:
    from growthsim.utils.logging_config import get_logger, StudyLogger

    # Simple logging
    logger = get_logger(__name__)
    logger.info("Starting study")

    # Structured study progress
    study_log = StudyLogger(n_conditions=12, n_replications=500)
    study_log.start()
    study_log.condition_finished(condition_id=1, n_retained=498, n_failed=2)
    study_log.finished()

Author: Growth Curve Simulation Team
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

FORMATS = {
    "standard": "%(asctime)s | %(levelname)-8s | %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
    "json": None  # Handled by JsonFormatter
}


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    format_style: str = "standard"
) -> None:
    """
    Configure logging for the study engine.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for log output
        format_style: "standard", "detailed", or "json"
    """
    handlers = []

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if format_style == "json":
        console_handler.setFormatter(JsonFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter(FORMATS.get(format_style, FORMATS["standard"]),
                              datefmt="%Y-%m-%d %H:%M:%S")
        )
    handlers.append(console_handler)

    # File handler always uses the detailed format
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter(FORMATS["detailed"], datefmt="%Y-%m-%d %H:%M:%S")
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module."""
    return logging.getLogger(name)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


# =============================================================================
# STUDY LOGGER
# =============================================================================

class StudyLogger:
    """
    Structured logger for Monte Carlo study progress.

    Example:
        study_log = StudyLogger(n_conditions=12, n_replications=500)
        study_log.start()
        study_log.condition_finished(1, n_retained=500, n_failed=0)
        study_log.finished()
    """

    def __init__(self,
                 n_conditions: int,
                 n_replications: int,
                 max_failure_rate: float = 0.10,
                 verbose: bool = True):
        self.n_conditions = n_conditions
        self.n_replications = n_replications
        self.max_failure_rate = max_failure_rate
        self.verbose = verbose
        self.start_time: Optional[datetime] = None
        self.n_done = 0
        self._logger = get_logger("growthsim.study")

    def _progress(self, message: str, *args) -> None:
        """Progress messages are INFO when verbose, DEBUG otherwise."""
        level = logging.INFO if self.verbose else logging.DEBUG
        self._logger.log(level, message, *args)

    def elapsed(self) -> float:
        """Seconds since `start`."""
        if self.start_time is None:
            return 0.0
        return (datetime.now() - self.start_time).total_seconds()

    def start(self, n_workers: int = 1) -> None:
        """Log study start."""
        self.start_time = datetime.now()
        self.n_done = 0
        self._progress(
            "Starting study: %d conditions x %d replications (workers=%d)",
            self.n_conditions, self.n_replications, n_workers
        )

    def condition_finished(self, condition_id: int, n_retained: int,
                           n_failed: int) -> None:
        """Log a finished condition and warn when its loss rate is too high."""
        self.n_done += 1
        total = n_retained + n_failed
        rate = n_failed / total if total else 0.0
        self._progress(
            "[%d/%d] Condition %d: %d retained, %d failed (%.1f%%)",
            self.n_done, self.n_conditions, condition_id,
            n_retained, n_failed, 100 * rate
        )
        if rate > self.max_failure_rate:
            self._logger.warning(
                "Condition %d exceeds failure threshold: %.1f%% > %.1f%%",
                condition_id, 100 * rate, 100 * self.max_failure_rate
            )

    def finished(self, n_records: int = 0, n_failed: int = 0) -> None:
        """Log study completion with timing."""
        elapsed = self.elapsed()
        self._progress(
            "Study complete in %.1fs: %d replications retained, %d dropped",
            elapsed, n_records, n_failed
        )

    def failed(self, reason: str) -> None:
        """Log a fatal study error."""
        self._logger.error("Study aborted after %.1fs: %s", self.elapsed(), reason)
