"""Logging configuration helpers."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    normalized = level.upper()
    logging.basicConfig(level=getattr(logging, normalized, logging.INFO), format=LOG_FORMAT)
    logging.getLogger(__name__).debug("Logging configured at %s", normalized)
