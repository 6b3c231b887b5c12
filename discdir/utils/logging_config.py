"""
Logging configuration for the Discriminator Directory service
"""
import logging
import logging.handlers
import sys
from pathlib import Path

from ..config import LOG_DIR, LOG_LEVEL


def setup_logging(logger_name: str, log_level: int = None) -> logging.Logger:
    """
    Set up logging configuration for a specific logger

    Args:
        logger_name: Name of the logger to configure
        log_level: Logging level to use, defaults to LOG_LEVEL from the environment

    Returns:
        logging.Logger: Configured logger instance
    """
    if log_level is None:
        log_level = getattr(logging, LOG_LEVEL, logging.INFO)

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)

    # Remove any existing handlers
    logger.handlers = []

    # Prevent propagation to root logger to avoid duplicate logs
    logger.propagate = False

    log_dir = Path(LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"{logger_name.replace('.', '_')}.log"
    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=50*1024*1024,  # 50MB
        backupCount=10
    )
    file_handler.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)

    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_formatter = logging.Formatter(
        '%(levelname)s: %(message)s'
    )

    file_handler.setFormatter(file_formatter)
    console_handler.setFormatter(console_formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)
