"""
Logging setup for applications embedding agentloop.

Library modules only create loggers with ``logging.getLogger(__name__)``;
the host application calls :func:`setup_logging` once at startup.
"""

import logging
import sys

from agentloop.config.schema import LoggingConfig

# Third-party loggers that are too chatty at INFO
_NOISY_LOGGERS: tuple[str, ...] = ("httpx", "mcp", "fastmcp")


def setup_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure the root logger.

    Parameters
    ----------
    config : LoggingConfig | None, optional
        Logging settings. Uses defaults if not provided.

    Examples
    --------
    >>> setup_logging(LoggingConfig(level="DEBUG"))
    """
    if config is None:
        config = LoggingConfig()

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stderr,
        force=True,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
