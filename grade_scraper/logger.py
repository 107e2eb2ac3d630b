"""Logging configuration for the scraper and organizer."""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(
    level: Union[str, int] = 'INFO',
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure logging for the grade_scraper package.

    Args:
        level: Log level name or number
        log_file: Optional path of a rotating log file

    Returns:
        Configured package logger
    """
    logger = logging.getLogger('grade_scraper')
    logger.setLevel(level)

    # Reconfiguring replaces the handlers installed by a previous call
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5,
            encoding='utf-8',
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
