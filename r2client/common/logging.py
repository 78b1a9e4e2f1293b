import json
import logging
from logging.config import dictConfig

from r2client.common.config import get_settings


def setup_logging(level: str | None = None, *, json_output: bool | None = None) -> None:
    """Configure root logging for applications embedding the client.

    The library itself only calls ``logging.getLogger(__name__)``; handlers are
    installed here so callers opt in explicitly.
    """
    settings = get_settings()
    resolved_level = (level or settings.LOG_LEVEL).upper()
    use_json = settings.LOG_JSON if json_output is None else json_output
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": JsonFormatter,
                },
                "plain": {
                    "format": "%(levelname)s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if use_json else "plain",
                },
            },
            "root": {
                "level": resolved_level,
                "handlers": ["console"],
            },
            "loggers": {
                # per-request chatter from the SDK drowns out our own records
                "botocore": {"level": "WARNING"},
                "boto3": {"level": "WARNING"},
                "s3transfer": {"level": "WARNING"},
                "urllib3": {"level": "WARNING"},
            },
        }
    )


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
