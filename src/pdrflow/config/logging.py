"""Root logger setup for the CLI and the event handlers."""

from __future__ import annotations

import logging

# Libraries that log every request at INFO/DEBUG; kept quiet unless pdrflow runs at DEBUG.
_CHATTY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "httpx", "httpcore")


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Configure the root logger with a terse ``time level [logger] message`` format.

    ``force=True`` replaces handlers installed earlier, e.g. by a serverless runtime.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
