from __future__ import annotations

import json
import logging
import os
import re
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, Any, Mapping, MutableMapping, Optional

if TYPE_CHECKING:
    from stakerank.curation.config import LoggingConfig


ROOT_LOGGER = "stakerank"


@dataclass(frozen=True)
class LoggingOptions:
    level: str = "INFO"
    format: str = "text"  # text | json
    file: Optional[str] = None
    redact: bool = True

    @classmethod
    def from_config(cls, config: "LoggingConfig") -> "LoggingOptions":
        return cls(level=config.level, format=config.format, file=config.file, redact=config.redact)


# Keys whose values never reach a log sink: signing material and API credentials
# of the token ledger the engine escrows through.
_SECRET_KEY_FRAGMENTS = (
    "api_key",
    "authorization",
    "mnemonic",
    "passphrase",
    "password",
    "private_key",
    "secret",
    "seed",
)

_RE_KV = re.compile(
    r"(?P<key>api[_-]?key|private[_-]?key|mnemonic|passphrase|password|secret)\s*[:=]\s*(?P<value>[^\s,;]+)",
    flags=re.IGNORECASE,
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context is not None:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


def _looks_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(fragment in lowered for fragment in _SECRET_KEY_FRAGMENTS)


def _redact_str(value: str) -> str:
    return _RE_KV.sub(lambda match: f"{match.group('key')}=[REDACTED]", value)


def _redact_any(value: Any, *, depth: int, max_depth: int) -> Any:
    """Redact secret-like values in nested structures.

    Preconditions:
        - max_depth >= 0

    Postconditions:
        - Secret-like keys have their values replaced with "[REDACTED]"

    Invariants:
        - Does not recurse beyond max_depth
    """
    if depth > max_depth:
        return "[REDACTED]"

    if isinstance(value, str):
        return _redact_str(value)

    if isinstance(value, Mapping):
        redacted: dict[Any, Any] = {}
        for k, v in value.items():
            if isinstance(k, str) and _looks_secret_key(k):
                redacted[k] = "[REDACTED]"
            else:
                redacted[k] = _redact_any(v, depth=depth + 1, max_depth=max_depth)
        return redacted

    if isinstance(value, (list, tuple)):
        return [_redact_any(v, depth=depth + 1, max_depth=max_depth) for v in value]

    return value


class RedactionFilter(logging.Filter):
    def __init__(self, *, max_depth: int = 4):
        super().__init__()
        self._max_depth = max_depth

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _redact_str(record.msg)

        context = getattr(record, "context", None)
        if isinstance(context, MutableMapping):
            record.context = _redact_any(context, depth=0, max_depth=self._max_depth)

        return True


def _normalize_format(fmt: str) -> str:
    lowered = fmt.strip().lower()
    if lowered in {"text", "json"}:
        return lowered
    raise ValueError(f"Invalid log format: {fmt}")


def _formatter(fmt: str, *, with_time: bool) -> logging.Formatter:
    if fmt == "json":
        return JSONFormatter()
    if with_time:
        return logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    return logging.Formatter("%(levelname)s %(name)s: %(message)s")


def load_logging_options_from_env(base: Optional[LoggingOptions] = None) -> LoggingOptions:
    """Load logging options from environment.

    Unset variables keep the value from ``base`` (defaults when omitted).

    Env vars:
        - STAKERANK_LOG_LEVEL
        - STAKERANK_LOG_FORMAT
        - STAKERANK_LOG_FILE
        - STAKERANK_LOG_REDACT ("0" disables redaction)
    """
    base = base or LoggingOptions()
    redact_env = os.getenv("STAKERANK_LOG_REDACT")
    return LoggingOptions(
        level=os.getenv("STAKERANK_LOG_LEVEL", base.level),
        format=os.getenv("STAKERANK_LOG_FORMAT", base.format),
        file=os.getenv("STAKERANK_LOG_FILE", base.file),
        redact=base.redact if redact_env is None else redact_env not in {"0", "false", "FALSE"},
    )


def configure_logging(options: LoggingOptions) -> None:
    """Configure the "stakerank" logger hierarchy.

    Postconditions:
        - Logs emit to stderr (and an optional rotating file)
        - Redaction filter attached unless options.redact is False
        - Calling again replaces the previous handlers
    """
    fmt = _normalize_format(options.format)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, options.level.strip().upper(), logging.INFO))

    logger.handlers.clear()
    logger.propagate = False

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if options.file:
        handlers.append(RotatingFileHandler(options.file, maxBytes=10 * 1024 * 1024, backupCount=3))

    for handler in handlers:
        handler.setFormatter(_formatter(fmt, with_time=isinstance(handler, RotatingFileHandler)))
        if options.redact:
            handler.addFilter(RedactionFilter())
        logger.addHandler(handler)
