"""Logging configuration shared by the API process and the background pipelines."""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Install a single timestamped console handler on the root logger."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger.setLevel(level.upper())
    root_logger.addHandler(handler)

    # Third-party clients are chatty at INFO
    for noisy in ("httpx", "httpcore", "hpack", "urllib3", "pypdf"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
