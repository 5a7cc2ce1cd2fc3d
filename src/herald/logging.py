"""Logging configuration for Herald.

Entry points (CLI, server) call configure_logging() once at startup.

Events are logged as snake_case names with structured context in
``extra`` using dotted keys::

    logger.info("message_delivered", extra={"slack.team_id": team_id})

Levels:
- DEBUG: Join attempts, claim losses, non-retryable errors
- INFO: Scheduling, deliveries, cycle summaries, retry attempts
- WARNING: Rate limiting, exhausted retries
- ERROR: Failed deliveries, rejected refresh tokens
"""

import json
import logging
import os
import re
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Any, TextIO

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_RETENTION_DAYS = 7

# Each pattern's first group is the secret; without a group the whole match is
SECRET_PATTERNS = (
    # Slack bot, user, app and refresh tokens
    r"\b(xox[abprse]-[A-Za-z0-9-]{10,})\b",
    r"\b(xapp-[A-Za-z0-9-]{10,})\b",
    # SLACK_CLIENT_SECRET=... or REFRESH_TOKEN: ...
    r"\b[A-Z0-9_]+(?:KEY|TOKEN|SECRET|PASSWORD)\s*[=:]\s*([^\s\"'&]{8,})",
    # OAuth form bodies
    r"\b(?:client_secret|refresh_token|access_token)=([^\s&\"']{8,})",
    r"\bBearer\s+([A-Za-z0-9._\-+=]{20,})\b",
)

# Third-party loggers that drown out Herald's own events below WARNING
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "uvicorn.access",
    "aiosqlite",
    "sqlalchemy.engine",
)

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "component"}


def _mask(secret: str) -> str:
    return "***" if len(secret) < 12 else f"{secret[:4]}...{secret[-4:]}"


class SecretRedactor:
    """Masks credentials in log output, keeping the ends for identification."""

    def __init__(self, patterns: Iterable[str] = SECRET_PATTERNS, enabled: bool = True):
        self.patterns = [re.compile(p, re.IGNORECASE) for p in patterns]
        self.enabled = enabled

    def redact(self, text: str) -> str:
        if self.enabled and text:
            for pattern in self.patterns:
                text = pattern.sub(self._replace, text)
        return text

    @staticmethod
    def _replace(match: re.Match[str]) -> str:
        whole = match.group(0)
        if not match.lastindex:
            return _mask(whole)
        secret = match.group(1)
        # Already masked by an earlier pattern
        if "..." in secret:
            return whole
        return whole.replace(secret, _mask(secret))


_redactor = SecretRedactor()


def component_of(logger_name: str) -> str:
    """``herald.scheduling.scheduler`` -> ``scheduling``; others keep their root."""
    root, _, rest = logger_name.partition(".")
    if root == "herald" and rest:
        return rest.split(".", 1)[0]
    return root


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Structured fields passed through ``extra``."""
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


def prune_old_logs(
    logs_dir: Path, retention_days: int = LOG_RETENTION_DAYS, suffix: str = ".jsonl"
) -> int:
    """Delete ``*<suffix>`` files under logs_dir not modified within retention.

    Returns the number of files deleted.
    """
    if not logs_dir.is_dir():
        return 0

    cutoff = (datetime.now(UTC) - timedelta(days=retention_days)).timestamp()
    deleted = 0
    for path in logs_dir.glob(f"*{suffix}"):
        try:
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                deleted += 1
        except FileNotFoundError:
            # Another process pruned it first
            continue
    return deleted


class JSONLHandler(logging.Handler):
    """Appends one redacted JSON object per record to ``<logs>/YYYY-MM-DD.jsonl``.

    A new file is opened at each UTC date change, and old files are pruned
    whenever that happens.
    """

    def __init__(self, logs_dir: Path, retention_days: int = LOG_RETENTION_DAYS):
        super().__init__()
        logs_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir = logs_dir
        self.retention_days = retention_days
        self._day: date | None = None
        self._stream: TextIO | None = None

    def _stream_for(self, day: date) -> TextIO:
        if self._stream is None or day != self._day:
            self._close_stream()
            path = self.logs_dir / f"{day.isoformat()}.jsonl"
            self._stream = path.open("a", encoding="utf-8")
            self._day = day
            prune_old_logs(self.logs_dir, self.retention_days)
        return self._stream

    def _close_stream(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def format_entry(self, record: logging.LogRecord) -> dict[str, Any]:
        created = datetime.fromtimestamp(record.created, UTC)
        entry: dict[str, Any] = {
            "ts": created.isoformat(),
            "level": record.levelname,
            "component": component_of(record.name),
            "logger": record.name,
            "event": _redactor.redact(record.getMessage()),
        }
        if context := record_context(record):
            # Redact the serialized form so nested values are covered too
            serialized = _redactor.redact(json.dumps(context, default=str))
            try:
                entry["context"] = json.loads(serialized)
            except json.JSONDecodeError:
                entry["context"] = {"_redacted_raw": serialized}
        if record.exc_info:
            traceback = (self.formatter or logging.Formatter()).formatException(
                record.exc_info
            )
            entry["exception"] = _redactor.redact(traceback)
        return entry

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(self.format_entry(record))
            stream = self._stream_for(datetime.now(UTC).date())
            stream.write(line + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        self._close_stream()
        super().close()


class ComponentFormatter(logging.Formatter):
    """Exposes ``%(component)s`` and appends ``extra`` context as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        record.component = component_of(record.name)
        line = super().format(record)
        context = record_context(record)
        if context:
            line += " " + " ".join(f"{k}={v}" for k, v in context.items())
        return _redactor.redact(line)


def _resolve_level(level: str | None) -> int:
    name = (level or os.environ.get("HERALD_LOG_LEVEL") or "INFO").upper()
    return getattr(logging, name if name in LOG_LEVELS else "INFO")


def _console_handler(use_rich: bool) -> logging.Handler:
    if use_rich:
        from rich.logging import RichHandler

        handler: logging.Handler = RichHandler(
            show_time=True, show_path=False, markup=False, rich_tracebacks=False
        )
        handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
        return handler

    handler = logging.StreamHandler()
    handler.setFormatter(
        ComponentFormatter(
            "%(asctime)s %(levelname)-7s [%(component)s] %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    return handler


def configure_logging(
    level: str | None = None,
    use_rich: bool = False,
    log_to_file: bool = False,
) -> None:
    """Configure logging for Herald.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. Defaults to HERALD_LOG_LEVEL,
            then INFO; unknown names fall back to INFO.
        use_rich: Colorful console output via Rich (server mode).
        log_to_file: Also write JSONL files under $HERALD_HOME/logs.
    """
    from herald.config.paths import get_logs_path

    log_level = _resolve_level(level)
    handlers = [_console_handler(use_rich)]
    if log_to_file:
        file_handler = JSONLHandler(get_logs_path())
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # uvicorn installs its own handlers; route its errors through ours
    if use_rich:
        for name in ("uvicorn", "uvicorn.error"):
            uvicorn_logger = logging.getLogger(name)
            uvicorn_logger.handlers = list(handlers)
            uvicorn_logger.propagate = False
