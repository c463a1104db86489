"""Logging setup for the command-line entry point. The library itself only emits records."""

import logging
from pathlib import Path
from typing import Optional


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure root logging with a console handler and an optional file handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Path of a log file to write as well. Its directory is created.
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    logging.getLogger(__name__).debug("Logging configured: level=%s, file=%s", level, log_file)
