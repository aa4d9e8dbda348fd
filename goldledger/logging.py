"""Logging setup for the goldledger CLI.

Log records go to stderr so that command output on stdout stays clean.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# per-request INFO lines from the HTTP client drown out transaction transitions
NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: int = logging.INFO, force: bool = False) -> None:
    """Route goldledger logs to stderr at ``level``.

    The HTTP client libraries stay at WARNING unless ``level`` is DEBUG.
    ``force=True`` replaces handlers left by an earlier call, as the CLI does on
    every invocation.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else max(level, logging.WARNING))
