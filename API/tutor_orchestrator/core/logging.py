import json
import logging
import re
import sys
from datetime import datetime, timezone

DOMAIN_ORCHESTRATION = "orchestration"
DOMAIN_TEACHING = "teaching"
DOMAIN_PERSISTENCE = "persistence"
DOMAIN_COLLABORATOR = "collaborator"

LOG_FORMAT = "%(asctime)s | %(levelname)s | [%(domain)s] | %(name)s | %(message)s"


class DomainLoggerAdapter(logging.LoggerAdapter):
    """Stamps a domain on every record while keeping any per-call `extra` the caller passes."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_domain_logger(name: str, domain: str) -> DomainLoggerAdapter:
    return DomainLoggerAdapter(logging.getLogger(name), {"domain": domain})


# Tavily keys travel inside JSON bodies; redis and postgres URLs embed passwords.
_SECRET_PATTERNS = [
    re.compile(r"(?i)(\"?api[_-]?key\"?\s*[=:]\s*\"?)([^\s,;\"]+)"),
    re.compile(r"(?i)(authorization\s*[=:]\s*bearer\s+)([^\s,;]+)"),
    re.compile(r"(?i)(password\s*[=:]\s*)([^\s,;]+)"),
    re.compile(r"(?i)((?:redis|postgresql(?:\+asyncpg)?)://[^:/@\s]*:)([^@\s]+)(?=@)"),
]


def redact_secrets(message: str) -> str:
    text = str(message or "")
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1[REDACTED]", text)
    return text


class RecordEnricher(logging.Filter):
    """Defaults the domain for third-party loggers and masks secrets in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "domain"):
            record.domain = "app"  # type: ignore[attr-defined]
        record.msg = redact_secrets(record.getMessage())
        record.args = ()
        return True


class SuppressHealthCheckFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        return not ("/health" in msg and " 200" in msg)


def log_state_transition(
    logger: logging.LoggerAdapter,
    *,
    session_id: str,
    student_id: str,
    from_state: str,
    to_state: str,
    event: str,
    payload: dict | None = None,
) -> None:
    """Emit one JSON line per state change so transitions can be grepped and replayed."""
    logger.info(
        json.dumps(
            {
                "type": "state_transition",
                "session_id": session_id,
                "student_id": student_id,
                "from_state": from_state,
                "to_state": to_state,
                "event": event,
                "payload": payload or {},
                "ts": datetime.now(timezone.utc).isoformat(),
            },
            default=str,
        )
    )


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RecordEnricher())
    handler.set_name("tutor-orchestrator")
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    # Reconfiguring replaces our handler instead of stacking a second one.
    for existing in list(root.handlers):
        if existing.get_name() == handler.get_name():
            root.removeHandler(existing)
    root.addHandler(handler)
    # Collaborator URLs are logged by the client itself at WARNING.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").addFilter(SuppressHealthCheckFilter())
