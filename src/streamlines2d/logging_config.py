"""Opt-in logging setup for streamlines2d.

The package itself only attaches a NullHandler; call `setup_logging` from a
script or notebook to see run progress (debug: per-streamline commits and
exhausted seeds; info: completion, dispose, saved files).
"""
import logging
import sys
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-7s [%(name)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Route the 'streamlines2d' logger to stderr (and optionally a file).

    Args:
        level: logging level, as a number or a name such as "debug".
        log_file: optional path; the file is overwritten on each call.
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown logging level: {level}")
        level = resolved

    logger = logging.getLogger("streamlines2d")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized at %s.", logging.getLevelName(level))
    return logger
