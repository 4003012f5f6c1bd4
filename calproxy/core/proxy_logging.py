"""
Central logging configuration for calproxy.

Quiets debug output from third-party libraries while keeping calproxy's own
modules at INFO, or DEBUG when debug logging is requested.
"""

import logging
import os
import sys
from typing import Optional

import colorlog

CONSOLE_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

NOISY_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "aiohttp.web_log": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}

PROXY_MODULES = [
    "calproxy",
    "calproxy.api",
    "calproxy.calendar",
    "calproxy.core",
    "calproxy.origin",
]


def _env_debug() -> bool:
    return os.getenv("CALPROXY_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def init_console_logging(level_name: Optional[str] = None) -> None:
    """Attach a colorized stderr handler to the root logger.

    Runs before configuration is loaded so early startup messages are
    visible. Does nothing to handlers if the root logger already has some.
    CALPROXY_DEBUG forces DEBUG.
    """
    if _env_debug():
        level_name = "DEBUG"

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(
            colorlog.ColoredFormatter(CONSOLE_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS)
        )
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)


def configure_proxy_logging(debug_mode: bool = False, log_level: Optional[str] = None) -> None:
    """
    Apply logger levels once configuration is known.

    Args:
        debug_mode: Whether to enable debug logging for calproxy modules
        log_level: Root log level name (DEBUG, INFO, WARNING, ERROR)

    Environment Variables:
        CALPROXY_DEBUG: Set to '1', 'true', 'yes' to force debug logging
    """
    final_debug = debug_mode or _env_debug()

    root_level = logging.DEBUG if final_debug else logging.INFO
    if log_level and log_level.upper() in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, log_level.upper())
    logging.getLogger().setLevel(root_level)

    for logger_name, level in NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    module_level = logging.DEBUG if final_debug else logging.INFO
    for module in PROXY_MODULES:
        logging.getLogger(module).setLevel(module_level)

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s, calproxy=%s",
        logging.getLevelName(root_level),
        logging.getLevelName(module_level),
    )


def get_logging_status() -> dict[str, str]:
    """Map key logger names to their current level names."""
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["calproxy", "aiohttp.access", "httpx", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
