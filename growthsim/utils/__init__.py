"""
Utility modules for the growth curve simulation study.
"""

from .logging_config import setup_logging, get_logger, JsonFormatter, StudyLogger

__all__ = [
    'setup_logging',
    'get_logger',
    'JsonFormatter',
    'StudyLogger',
]
