"""
Process-wide log sink setup.

Container output and lifecycle messages are emitted through the ``chainbox``
logger hierarchy; ``init_logging`` attaches a rich console handler to it once.
"""

import logging
import threading
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from chainbox.config import log_level

ROOT_LOGGER = "chainbox"

_init_lock = threading.Lock()
_handler: Optional[logging.Handler] = None


def init_logging(level: Optional[str] = None) -> bool:
    """Attach the chainbox log handler if it is not attached yet.

    Safe to call any number of times; only the first call configures anything.

    Args:
        level: Log level name. Falls back to CHAINBOX_LOG_LEVEL, then INFO.

    Returns:
        True if this call installed the handler, False if it was already set up.
    """
    global _handler

    with _init_lock:
        if _handler is not None:
            return False

        logger = logging.getLogger(ROOT_LOGGER)
        logger.setLevel(getattr(logging, log_level(level), logging.INFO))

        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
        _handler = handler
        return True


def reset_logging() -> None:
    """Detach the handler installed by init_logging (used by tests)."""
    global _handler

    with _init_lock:
        if _handler is not None:
            logging.getLogger(ROOT_LOGGER).removeHandler(_handler)
            _handler = None
