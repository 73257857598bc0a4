"""Singleton logging configuration.

The library itself only creates module loggers. Applications embedding it
call ``setup_logging()`` once at startup; the call is idempotent.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] - %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"

# Third-party loggers to suppress to WARNING
_SUPPRESSED_LOGGERS = ("yaml",)

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger and quiet noisy dependencies.

    Idempotent: a second call is a no-op.
    """
    global _configured  # noqa: PLW0603
    if _configured:
        return
    _configured = True

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    for name in _SUPPRESSED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("docdoctor").setLevel(
        getattr(logging, level.upper())
    )
