"""Logging for the console: one stdout handler on the ``recon_console`` tree."""

import logging
import sys

# Libraries whose per-request INFO lines would drown out the console's own
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Install the console's handler and return its top-level logger.

    Every module logs through a child of ``recon_console``, so backend
    calls, session lifecycle and view-state decisions share one
    pipe-separated format.  The HTTP client libraries are held at WARNING
    unless ``level`` is DEBUG.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL; unknown names fall
            back to INFO.

    Returns:
        The ``recon_console`` logger.
    """
    log_format = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("recon_console")
    logger.setLevel(numeric_level)

    # Calling twice (tests, reloads) must not stack handlers
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
        logger.addHandler(handler)
    logger.propagate = False

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a console module, e.g. ``get_logger(__name__)``.

    Names already under ``recon_console`` are used as-is; anything else is
    nested beneath it so it still reaches the console handler.
    """
    if name.startswith("recon_console"):
        return logging.getLogger(name)
    return logging.getLogger(f"recon_console.{name}")
