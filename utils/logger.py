# utils/logger.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Logging utility for rule evaluation with configurable levels

import logging
import sys
from enum import Enum
from typing import Optional


class LogLevel(Enum):
    """Log levels for rule evaluation."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


class HorizonLogger:
    """Centralized logger for the evaluator with structured, domain-specific helpers."""

    def __init__(self, name: str = "horizon", level: LogLevel = LogLevel.INFO):
        """Initialize the evaluator logger.

        Args:
            name: Logger name
            level: Default logging level
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level.value)

        # Remove existing handlers to avoid duplicates
        self.logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level.value)
        console_handler.setFormatter(HorizonFormatter())

        self.logger.addHandler(console_handler)

        # Prevent propagation to root logger
        self.logger.propagate = False

    def set_level(self, level: LogLevel):
        """Change the logging level."""
        self.logger.setLevel(level.value)
        for handler in self.logger.handlers:
            handler.setLevel(level.value)

    @property
    def level(self) -> int:
        return self.logger.level

    # Core logging methods
    def debug(self, message: str, **kwargs):
        """Log debug message (detailed internal state)."""
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message (general progress)."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message (unexpected but recoverable)."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message (serious problems)."""
        self.logger.error(message, **kwargs)

    # Specialized methods for evaluation events
    def rule_registered(self, rule_name: str, formula: str, horizon: float):
        """Log rule activation."""
        self.info(f"Rule '{rule_name}' active: {formula}")
        if horizon:
            self.debug(f"    Rule '{rule_name}' output latency: {horizon}")

    def rule_closed(self, rule_name: str, reports: int):
        """Log rule teardown."""
        self.debug(f"Rule '{rule_name}' closed after {reports} reports")

    def time_point_closed(self, index: int, timestamp: float, fact_count: int):
        """Log closure of a time point."""
        self.debug(f"    ⏱  time point #{index} @{timestamp} closed with {fact_count} facts")

    def fact_rejected(self, fact: str, reason: str):
        """Log a fact refused at ingestion."""
        self.warning(f"Rejected fact {fact}: {reason}")

    def obligations_dropped(self, rule_name: str, count: int):
        """Log pending time points discarded by cancellation."""
        if count:
            self.info(f"Rule '{rule_name}' cancelled with {count} pending time points discarded")

    def retention_degraded(self, node_id: int, limit: int, dropped: int):
        """Log a window store overflowing its retention limit."""
        self.warning(
            f"WindowStore {node_id} exceeded retention limit {limit}: "
            f"dropped {dropped} oldest rows, evaluation degraded"
        )

    def report_emitted(self, line: str, satisfied: bool):
        """Log a single report."""
        marker = "🔴" if satisfied else "🟢"
        self.debug(f"    {marker} {line}")

    def final_summary(self, facts: int, time_points: int, violations: int):
        """Log end-of-trace summary."""
        self.info(f"\n>>> {facts} facts, {time_points} time points, {violations} violating time points <<<")


class HorizonFormatter(logging.Formatter):
    """Custom formatter with clean output."""

    def format(self, record):
        # For INFO level, show message only (clean output)
        if record.levelno == logging.INFO:
            return record.getMessage()

        # For DEBUG level, show with level indicator
        if record.levelno == logging.DEBUG:
            return f"[DEBUG] {record.getMessage()}"

        return f"[{record.levelname}] {record.getMessage()}"


# Global logger instance
_global_logger: Optional[HorizonLogger] = None


def get_logger(name: str = "horizon") -> HorizonLogger:
    """Get or create the global evaluator logger instance.

    Args:
        name: Logger name (default: "horizon")

    Returns:
        HorizonLogger instance
    """
    global _global_logger
    if _global_logger is None:
        _global_logger = HorizonLogger("horizon")
    return _global_logger


def set_log_level(level: LogLevel):
    """Set the global log level.

    Args:
        level: New log level
    """
    get_logger().set_level(level)


def configure_logging(verbose: bool = False, debug: bool = False):
    """Configure logging based on command line flags.

    Args:
        verbose: Enable verbose (INFO) output
        debug: Enable debug output (overrides verbose)
    """
    if debug:
        set_log_level(LogLevel.DEBUG)
    elif verbose:
        set_log_level(LogLevel.INFO)
    else:
        set_log_level(LogLevel.WARNING)
