"""
HotSwap Utilities Package.

Settings, restart options and logging shared by all components.
Requires Python 3.11+.
"""

from utils.config import Settings, get_settings
from utils.logger import configure_logging, get_logger, logger, LoggerMixin
from utils.options import RestartOptions, platform_executable_ext

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "logger",
    "LoggerMixin",
    "RestartOptions",
    "platform_executable_ext",
]
