"""Centralized logging configuration."""

import logging
import sys
from typing import Dict, Optional


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = (level or "INFO").upper()
    logger.setLevel(getattr(logging, log_level))

    # One stdout handler per named logger
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level))
        console_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(console_handler)

    return logger


def job_context(
    job_id: Optional[str] = None,
    analysis_id: Optional[object] = None,
    **fields: object,
) -> Dict[str, object]:
    """Build the ``extra`` mapping attached to analysis lifecycle log records.

    Args:
        job_id: Client job identifier
        analysis_id: Analysis row id, once allocated
        **fields: Additional structured fields

    Returns:
        Dict suitable for the ``extra`` argument of logger calls
    """
    context: Dict[str, object] = {"job_id": job_id}
    if analysis_id is not None:
        context["analysis_id"] = str(analysis_id)
    context.update(fields)
    return context
