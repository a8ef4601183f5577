import json  # JSON serialization
import logging
from datetime import datetime, timezone

# client libraries that log every outbound request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "openai")


class JsonFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        data = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["exc"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure root logger with JSON formatter.

    ``level`` accepts ``LOG_LEVEL`` names such as ``"debug"``; unknown names
    fall back to INFO. Outbound HTTP client chatter is kept at WARNING unless
    DEBUG is requested.
    """
    resolved = _resolve_level(level)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=resolved, handlers=[handler], force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING)
