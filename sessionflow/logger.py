"""
JSON logging for the session flow.

Every record becomes one JSON line carrying the timestamp, level, logger
name, message and whatever structured fields were passed via ``extra``
(``event``, ``principal_id``, ``error_code`` ...).  Contact details are
masked by :class:`ContactMaskingFilter` before any handler sees them, so
neither the console nor the rotating log file holds an email address or
phone number in clear.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Optional, TextIO, Union


def mask_email(value: str) -> str:
    """Return ``a***@example.com`` for ``alice@example.com``."""
    local, sep, domain = value.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def mask_phone(value: str) -> str:
    """Keep only the last four digits of a phone number."""
    digits = "".join(ch for ch in value if ch.isdigit())
    if len(digits) <= 4:
        return "***"
    return f"***{digits[-4:]}"


# ``extra`` key -> masking function.
_MASKED_FIELDS: dict[str, Callable[[str], str]] = {
    "email": mask_email,
    "phone": mask_phone,
    "phone_number": mask_phone,
}

# Attributes every LogRecord has; anything else arrived through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.makeLogRecord({})).keys()
) | {"message", "asctime"}


class ContactMaskingFilter(logging.Filter):
    """Rewrites contact-detail ``extra`` fields in place; never drops a record.

    ``mask_phone`` is not idempotent, so attach this to the logger rather
    than to each handler.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, mask in _MASKED_FIELDS.items():
            value = record.__dict__.get(key)
            if isinstance(value, str):
                setattr(record, key, mask(value))
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields are nested under ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, object] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        extra = {
            key: str(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
        }
        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


def _build_handlers(
    stream: TextIO,
    log_file: str,
    max_bytes: int,
    backup_count: int,
) -> tuple[list[logging.Handler], Optional[str]]:
    """Create the console handler and, when *log_file* is set, a rotating file.

    Returns the handlers plus an error text when the file could not be
    opened; logging then continues on the console alone.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(stream)]
    if not log_file:
        return handlers, None

    path = Path(log_file)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                filename=str(path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        )
    except OSError as exc:
        return handlers, f"Could not open log file '{log_file}': {exc}"
    return handlers, None


class StructuredLogger:
    """Injectable wrapper around a configured ``logging.Logger``.

    ``log_file=None`` uses ``LOG_FILE`` from the configuration; an empty
    string disables file output.  Handlers are attached once per logger
    name.

    Usage::

        log = StructuredLogger(name="sessionflow")
        log.info("Code sent", extra={"event": "PHONE_CODE_SENT", "phone": number})
    """

    def __init__(
        self,
        name: str = "sessionflow",
        level: int = logging.INFO,
        stream: Union[TextIO, None] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        # Imported here: config logs through the stdlib at import time.
        from sessionflow.config import get_config

        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(level)
        if self._logger.handlers:
            return

        cfg = get_config()
        handlers, file_error = _build_handlers(
            stream=stream or sys.stdout,
            log_file=cfg.LOG_FILE if log_file is None else log_file,
            max_bytes=cfg.LOG_MAX_BYTES if max_bytes is None else max_bytes,
            backup_count=cfg.LOG_BACKUP_COUNT if backup_count is None else backup_count,
        )
        formatter = JSONFormatter()
        for handler in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
            self._logger.addHandler(handler)
        # Logger-level so each record is masked exactly once.
        self._logger.addFilter(ContactMaskingFilter())

        if file_error:
            self._logger.warning("%s. Logging to the console only.", file_error)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def debug(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.critical(msg, *args, **kwargs)


def get_logger(name: str = "sessionflow") -> StructuredLogger:
    """Return a ``StructuredLogger`` for *name*."""
    return StructuredLogger(name=name)
