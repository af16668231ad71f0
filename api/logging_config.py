"""
Logging configuration with rotation and structured JSON logging.

Console output stays human-readable; ``affiliates.log`` and ``errors.log``
carry JSON lines including the engine's correlation ids (affiliate,
referral, commission, invoice, charge) passed through ``extra=``.
"""

import logging
import logging.handlers
import json
from pathlib import Path

from api.config import settings
from core.time_utils import utcnow

# Extra attributes copied from log records into JSON output
EXTRA_FIELDS = (
    "affiliate_id",
    "referral_id",
    "commission_id",
    "invoice_id",
    "charge_id",
    "event_type",
    "duration",
)

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# Third-party loggers and the level they are capped at
QUIET_LOGGERS = {
    "aiohttp": logging.WARNING,
    "aiohttp.access": logging.WARNING,
    "asyncio": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "apscheduler": logging.INFO,
}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, correlation ids included when present."""

    def format(self, record):
        log_data = {
            "timestamp": utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def _json_file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging():
    """Install console and rotating JSON handlers on the root logger."""
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(console_handler)
    root_logger.addHandler(_json_file_handler(log_dir / "affiliates.log", logging.DEBUG))
    root_logger.addHandler(_json_file_handler(log_dir / "errors.log", logging.ERROR))

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    logging.info(f"Logging configured: level={settings.log_level}, dir={log_dir.absolute()}")
