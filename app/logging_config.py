"""
Logging for the mealplan service.

Everything logs under the `mealplan` logger: stdout for the container,
`app.log` for the full trail and `error.log` for ERROR and above. Auth code
logs user ids and outcomes; `RedactSecretsFilter` masks anything that looks
like a password, token or session id that slips into a message anyway.
"""
import logging
import re
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

from .core.config import settings

LOG_DIR = Path(settings.log_dir)
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

_SECRET_PATTERN = re.compile(
    r"(?P<key>password|confirmPassword|idToken|id_token|key|token|"
    + re.escape(settings.session_cookie_name) + "|" + re.escape(settings.federated_cookie_name)
    + r")(?P<sep>[\"']?\s*[:=]\s*[\"']?)(?P<value>[^\s\"',;&]+)",
    re.IGNORECASE
)


class RedactSecretsFilter(logging.Filter):
    """Replace `password=...`, `token: ...` style values with `***`."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _SECRET_PATTERN.sub(r"\g<key>\g<sep>***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _file_handler(filename: str, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        LOG_DIR / filename,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Configure the `mealplan` logger once per process.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        The configured `mealplan` logger
    """
    logger = logging.getLogger("mealplan")
    logger.setLevel(getattr(logging, log_level.upper()))

    # Uvicorn reload re-imports this module
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    handlers = [
        console_handler,
        _file_handler("app.log", logging.DEBUG, formatter),
        _file_handler("error.log", logging.ERROR, formatter),
    ]
    redact = RedactSecretsFilter()
    for handler in handlers:
        handler.addFilter(redact)
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Child of the `mealplan` logger, e.g. `mealplan.session_authority`."""
    return logging.getLogger(f"mealplan.{name}")


logger = setup_logging(settings.log_level)
