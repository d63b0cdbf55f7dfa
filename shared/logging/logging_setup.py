from datetime import datetime
from pytz import timezone
import logging.config
import logging
import os
from logging import Logger

# console colors per level, INFO stays uncolored
_ANSI_RESET = "\033[0m"
_LEVEL_COLORS: dict[int, str] = {
    logging.DEBUG: "\033[36m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}

# third party loggers that are only interesting when debugging
_NOISY_LOGGERS = ("httpx", "httpcore", "pymongo", "uvicorn.access")

LOGGER_NAME = "vector_sync"


class CustomFormatter(logging.Formatter):
    """Renders timestamps in the configured timezone and marks warnings and errors."""

    def __init__(self, tz_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # broken format args, keep the raw message instead of dropping the line
            message = str(record.msg)

        if record.levelno >= logging.ERROR:
            message = "⛔ " + message
        elif record.levelno == logging.WARNING:
            message = "⚠️ " + message

        # format on a copy, the file handler must see the original record
        record = logging.makeLogRecord(record.__dict__)
        record.msg = message
        record.args = ()
        return super().format(record)


class ColoredFormatter(CustomFormatter):
    """Console formatter coloring each line by its level."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _LEVEL_COLORS.get(record.levelno)
        return f"{ansi}{line}{_ANSI_RESET}" if ansi and line else line


def _get_level() -> int:
    level_name = os.getenv("LOG_LEVEL", "info").upper()
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging() -> Logger:
    """Configure console and rotating file logging, return the pipeline logger.

    Environment:
        LOG_LEVEL: debug, info, warning or error (default info).
        TIMEZONE: pytz zone name used for timestamps (default Europe/Berlin).
        ROOT_DIR: Base directory of the ``logs`` folder (default working directory).
        LOG_FILE_MAX_BYTES / LOG_FILE_BACKUPS: Rotation of ``logs/vector_sync.log``.
    """
    log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    loglevel = _get_level()
    os.makedirs(log_dir, exist_ok=True)

    line_format = "%(asctime)s - %(levelname)s - %(message)s"
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "()": CustomFormatter,
                "format": line_format,
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "tz_name": tz_name,
            },
            "colored": {
                "()": ColoredFormatter,
                "format": line_format,
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "tz_name": tz_name,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "colored",
                "level": loglevel,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "standard",
                "level": loglevel,
                "filename": os.path.join(log_dir, f"{LOGGER_NAME}.log"),
                "maxBytes": int(os.getenv("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024)),
                "backupCount": int(os.getenv("LOG_FILE_BACKUPS", 5)),
                "encoding": "utf-8",
            },
        },
        "root": {
            "handlers": ["console", "file"],
            "level": loglevel,
        },
    }

    logging.config.dictConfig(logging_config)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.DEBUG if loglevel <= logging.DEBUG else logging.WARNING)

    return logging.getLogger(LOGGER_NAME)
