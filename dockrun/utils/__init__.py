"""Utility modules for dockrun."""

from .logging import setup_logging, get_logger
from .shutdown import install_signal_handlers, remove_signal_handlers

__all__ = [
    "setup_logging",
    "get_logger",
    "install_signal_handlers",
    "remove_signal_handlers",
]
