"""calproxy - republish a private ICS feed and a censored free/busy variant.

Imports are kept light here; the server and its dependencies load in
``run_server``.
"""

__version__ = "1.0.0"

from typing import Any, Optional


def run_server(args: Optional[Any] = None) -> None:
    """Load configuration and run the proxy until shutdown.

    Args:
        args: Optional argparse namespace with ``port``, ``update_secs`` and
            ``env_file`` overrides

    Raises:
        ConfigurationError: If required configuration is missing or invalid
        FetchError: If the initial fetch fails
        ParseError: If the initially fetched calendar is invalid
    """
    import logging
    import os
    from pathlib import Path

    from calproxy.core.proxy_logging import init_console_logging

    init_console_logging(os.environ.get("CALPROXY_LOG_LEVEL"))
    logger = logging.getLogger(__name__)

    from calproxy.api.server import start_server
    from calproxy.core.config_manager import ConfigManager

    env_file = getattr(args, "env_file", None)
    manager = ConfigManager(env_file_path=Path(env_file) if env_file else None)

    overrides = {
        "port": getattr(args, "port", None),
        "update_secs": getattr(args, "update_secs", None),
    }
    config = manager.load_config(overrides)
    logger.info("Starting calproxy %s", __version__)

    start_server(config)
