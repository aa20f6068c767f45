from __future__ import annotations

import logging
import sys

logger = logging.getLogger("cdh")


def configure_logging(level: str = "INFO") -> None:
    """(Re)attach a single stderr handler to the ``cdh`` logger."""
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for h in [h for h in logger.handlers if getattr(h, "_cdh", False)]:
        logger.removeHandler(h)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%dT%H:%M:%S"))
    handler._cdh = True  # type: ignore[attr-defined]
    logger.addHandler(handler)


def log_event(level: str, message: str, service_name: str | None = None, version: str | None = None) -> None:
    if service_name and version:
        message = f"[{service_name}@{version}] {message}"
    elif service_name:
        message = f"[{service_name}] {message}"
    logger.log(getattr(logging, level.upper(), logging.INFO), message)
