"""
Shared utilities.
"""

from .logging import get_logger, log_event, log_warning, setup_logging

__all__ = ["get_logger", "log_event", "log_warning", "setup_logging"]
