"""Centralized logging utilities for agentgate.

This module provides:
- Logging configuration from GateConfig
- Safe preview utilities for free-text fields (request reasons, notes)
- Secret redaction
- Structured logging with subject / request context
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from .config import GateConfig, LogLevel
from .models import AgentRequest, PermissionGrant, Subject

# Patterns for detecting secrets (common patterns to redact)
SECRET_PATTERNS = [
    r'(?i)(?:password|passwd|pwd|secret|token|api[_-]?key|auth[_-]?token)\s*[:=]\s*["\']?([^"\'\s]+)',
    r'(?i)(?:bearer|basic)\s+([a-zA-Z0-9+/=]+)',
    r'(?i)(?:sk-|pk-)[a-zA-Z0-9]{32,}',
    r'(?i)(?:-----BEGIN\s+(?:RSA\s+)?(?:PRIVATE\s+)?KEY-----).*?(?:-----END\s+(?:RSA\s+)?(?:PRIVATE\s+)?KEY-----)',
]

# Context attributes copied from records into structured output
_CONTEXT_KEYS = ("subject_id", "request_id", "grant_id")

_RESERVED = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info", "taskName",
    *_CONTEXT_KEYS,
}


def safe_preview(value: Any, limit: int = 240) -> str:
    """Create a single-line, length-bounded preview of a value for logging.

    Args:
        value: The value to preview (any type)
        limit: Maximum length of the preview (default: 240)

    Returns:
        A truncated string representation
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (dict, list)):
        try:
            s = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"

    return s


def redact_secrets(text: str, replacement: str = "[REDACTED]") -> str:
    """Redact secret patterns (API keys, tokens, passwords, private keys) from text."""
    if not isinstance(text, str):
        return text

    result = text
    for pattern in SECRET_PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE | re.DOTALL)

    return result


def safe_log_value(value: Any, limit: int = 240, redact: bool = True) -> str:
    """Preview plus optional redaction. Use for any user-supplied text."""
    preview = safe_preview(value, limit=limit)
    if redact:
        preview = redact_secrets(preview)
    return preview


class GateFormatter(logging.Formatter):
    """Formatter emitting JSON or plain text with subject/request context.

    Extra fields are previewed and redacted; the message itself is redacted
    when ``redact_secrets`` is on.
    """

    def __init__(
        self,
        json_format: bool = True,
        redact_secrets: bool = True,
        *args: Any,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.json_format = json_format
        self.redact_secrets = redact_secrets

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = {key: getattr(record, key) for key in _CONTEXT_KEYS if getattr(record, key, None)}
        log_data.update(context)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED:
                log_data[key] = safe_log_value(value, redact=self.redact_secrets)

        if self.redact_secrets:
            log_data["message"] = redact_secrets(log_data["message"])

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            f"{log_data['level']}",
            f"{log_data['logger']}",
        ]
        parts.extend(f"{key}={value}" for key, value in context.items())
        parts.append(f": {log_data['message']}")
        return " ".join(parts)


class GateLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that attaches subject / request / grant ids to records.

    Usage:
        logger = get_gate_logger(__name__)
        logger.info("Request submitted", request=agent_request)
        logger.info("Grant used", grant=grant, subject=subject)
    """

    def __init__(self, logger: logging.Logger, subject_id: Optional[str] = None):
        super().__init__(logger, {})
        self.subject_id = subject_id

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        subject_id = kwargs.pop("subject_id", self.subject_id)
        request_id = kwargs.pop("request_id", None)
        grant_id = kwargs.pop("grant_id", None)

        subject = kwargs.pop("subject", None)
        if isinstance(subject, Subject):
            subject_id = subject_id or subject.id

        request = kwargs.pop("request", None)
        if isinstance(request, AgentRequest):
            request_id = request_id or request.id
            subject_id = subject_id or request.requester_id

        grant = kwargs.pop("grant", None)
        if isinstance(grant, PermissionGrant):
            grant_id = grant_id or grant.id
            subject_id = subject_id or grant.grantee_id

        extra = kwargs.get("extra", {})
        if subject_id:
            extra["subject_id"] = subject_id
        if request_id:
            extra["request_id"] = request_id
        if grant_id:
            extra["grant_id"] = grant_id
        kwargs["extra"] = extra

        return msg, kwargs


def setup_logging(
    config: Optional[GateConfig] = None,
    json_format: Optional[bool] = None,
    redact_secrets: bool = True,
) -> None:
    """Configure the root logger from GateConfig.

    Args:
        config: GateConfig instance (if None, loads from environment)
        json_format: Override ``config.log_json``
        redact_secrets: Whether to redact secrets (default: True)
    """
    if config is None:
        from .config import load_gate_config_from_env

        config = load_gate_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    log_level = level_map.get(config.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        GateFormatter(
            json_format=config.log_json if json_format is None else json_format,
            redact_secrets=redact_secrets,
        )
    )
    root_logger.addHandler(console_handler)

    if config.service_name:
        logging.getLogger(config.service_name).setLevel(log_level)


def get_gate_logger(name: str, subject_id: Optional[str] = None) -> GateLoggerAdapter:
    """Get a logger adapter with subject/request context support.

    Example:
        logger = get_gate_logger(__name__)
        logger.info("Request resolved", request=agent_request)
    """
    return GateLoggerAdapter(logging.getLogger(name), subject_id=subject_id)


__all__ = [
    "GateFormatter",
    "GateLoggerAdapter",
    "get_gate_logger",
    "redact_secrets",
    "safe_log_value",
    "safe_preview",
    "setup_logging",
]
