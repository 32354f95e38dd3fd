"""Logging setup shared by the CLI and the HTTP server."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - [%(levelname)s] - %(message)s"

_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer", "httpx", "httpcore", "hpack")


def setup_logging(level: str | int = logging.INFO) -> None:
    """Configure the root logger.

    Call once at process startup; library code only ever uses
    ``logging.getLogger(__name__)``.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
