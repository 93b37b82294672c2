"""Logging configuration helpers for the quiz service."""

from __future__ import annotations

import logging
import os
from logging import Logger


def configure_logging(level: str | None = None) -> Logger:
    """Configure basic logging for the service and return the package logger."""
    resolved = (level or os.getenv("PROCTOR_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("proctor_app")
