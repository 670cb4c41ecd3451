"""Structured logging bound to webhook deliveries.

Records carry the delivery they belong to: ``log_context`` binds fields such
as ``request_id`` (the ``X-GitHub-Delivery`` id), ``event`` and
``installation_id`` for the duration of a request or a background dispatch,
and ``DeliveryContextFilter`` copies them onto every record emitted inside.

Credentials are scrubbed twice. Structured extras are redacted by key name;
every string, the rendered message included, is also searched for
credential-shaped values (JWTs, GitHub tokens, PEM private keys).
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Mapping

from ghadapter.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

# Logger of the per-call trace written when GITHUB_DEBUG is on
REQUEST_TRACE_LOGGER = "ghadapter.adapters.github.executor"

CREDENTIAL_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "token",
        "jwt",
        "assertion",
        "installation_token",
        "private_key",
        "secret",
        "webhook_secret",
        "cookie",
        "set-cookie",
    }
)

_CREDENTIAL_PATTERNS = (
    re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----(?:.*?-----END [A-Z ]*PRIVATE KEY-----)?", re.DOTALL),
    re.compile(r"\beyJ[\w-]+\.[\w-]+\.[\w-]+"),
    re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}"),
    re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}"),
)

_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}

_log_context: ContextVar[Mapping[str, Any] | None] = ContextVar("log_context", default=None)


def current_log_context() -> Mapping[str, Any]:
    return _log_context.get() or {}


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind ``fields`` to every record logged inside the block.

    Nested blocks extend the outer binding; ``None`` values are ignored.

    Example:
        >>> with log_context(request_id=event.id, event=event.qualified_name):
        ...     await handler(context)
    """
    bound = {**current_log_context(), **{k: v for k, v in fields.items() if v is not None}}
    token = _log_context.set(bound)
    try:
        yield
    finally:
        _log_context.reset(token)


def get_request_id() -> str | None:
    """Correlation id of the delivery or request being handled, if any."""

    return current_log_context().get("request_id")


def scrub(value: Any, keys: frozenset[str] = CREDENTIAL_KEYS) -> Any:
    """Return ``value`` with credentials replaced by ``[REDACTED]``.

    Mappings are redacted by key (case-insensitive) and recursed into;
    strings are searched for credential-shaped substrings.
    """
    if isinstance(value, str):
        for pattern in _CREDENTIAL_PATTERNS:
            value = pattern.sub(REDACTED, value)
        return value
    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in keys else scrub(v, keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(scrub(v, keys) for v in value)
    return value


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Fields passed through ``extra=`` (or bound by a filter) on a record."""

    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class DeliveryContextFilter(logging.Filter):
    """Copy fields bound with ``log_context`` onto the record.

    Explicit ``extra=`` values win over bound ones.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in current_log_context().items():
            if key not in record.__dict__:
                setattr(record, key, value)
        return True


class CredentialScrubFilter(logging.Filter):
    """Scrub the message, extras and traceback text before any formatter runs."""

    def __init__(self, keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.keys = frozenset(k.lower() for k in keys) if keys else CREDENTIAL_KEYS

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = scrub(record.getMessage(), self.keys)
        record.args = None
        for key, value in record_extras(record).items():
            setattr(record, key, REDACTED if key.lower() in self.keys else scrub(value, self.keys))
        if record.exc_info and not record.exc_text:
            record.exc_text = scrub(logging.Formatter().formatException(record.exc_info), self.keys)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": scrub(record.getMessage()),
        }
        entry.update(scrub(record_extras(record)))
        if record.exc_info:
            entry["exc_info"] = record.exc_text or scrub(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


def configure_logging(
    log_settings: LogSettings | None = None,
    *,
    debug_requests: bool | None = None,
) -> None:
    """Install the stdout handler on the root logger.

    Args:
        log_settings: Level and format; defaults to ``settings.log``.
        debug_requests: Trace every GitHub API call regardless of the root
            level; defaults to ``settings.github.debug``.
    """

    cfg = log_settings or settings.log
    if debug_requests is None:
        debug_requests = settings.github.debug

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(DeliveryContextFilter())
    handler.addFilter(CredentialScrubFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
    # httpx logs every request at INFO; the executor owns request logging
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger(REQUEST_TRACE_LOGGER).setLevel(logging.DEBUG if debug_requests else logging.NOTSET)
