# utils/__init__.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Utility module exports

from .logger import (
    HorizonLogger,
    LogLevel,
    configure_logging,
    get_logger,
    set_log_level,
)

__all__ = [
    "HorizonLogger",
    "LogLevel",
    "configure_logging",
    "get_logger",
    "set_log_level",
]
