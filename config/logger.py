import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from config.constants import LOG_BACKUP_COUNT, LOG_FILE_NAME, LOG_MAX_BYTES

_initialized = False

# Expose a module-level logger that callers can import.
# It will be configured by setup_logging() once at process start.
logger = logging.getLogger('survey_bot')


def setup_logging(level: int = logging.INFO, name: str = 'survey_bot', log_dir: Optional[str] = None) -> logging.Logger:
    """
    Initialize logging once for the application.

    Idempotent: subsequent calls return the same configured logger
    without re-attaching duplicate handlers.
    """
    global _initialized
    log = logging.getLogger(name)
    if _initialized and log.handlers:
        return log

    log.setLevel(logging.DEBUG)

    # Remove existing handlers to avoid duplicates across runs
    for handler in list(log.handlers):
        log.removeHandler(handler)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

    # Console handler
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    log.addHandler(console)

    # File handler (best-effort)
    try:
        logs_dir = Path(log_dir) if log_dir else Path(__file__).parent.parent / 'logs'
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(logs_dir / LOG_FILE_NAME),
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8',
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        log.addHandler(file_handler)
    except OSError as e:  # pragma: no cover - filesystem issues
        # Use console logger to report file handler setup failure
        log.error(f"Failed to create log file handler: {e}")

    _initialized = True
    return log
