"""Redaction helpers for safe logging.

Phone numbers, e-mails and WhatsApp identifiers (JIDs such as
``5551999999999@c.us`` or ``123456789@lid``) never reach the logs.
"""

import hashlib
import re
from typing import Any

# JIDs first: their user part is usually a phone number
_JID_PATTERN = re.compile(r"[\w.+-]+@(?:c\.us|g\.us|lid|s\.whatsapp\.net)\b")
_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"


def redact_string(value: str) -> str:
    """Redact PII patterns from a string."""
    result = _JID_PATTERN.sub(_REDACTED, value)
    result = _PHONE_PATTERN.sub(_REDACTED, result)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {k: redact_value(v) for k, v in kwargs.items()}


def identifier_hash(identifier: str | None) -> str:
    """Short non-reversible fingerprint used to correlate an identifier across log lines."""
    if not identifier:
        return "none"
    return hashlib.sha256(identifier.encode()).hexdigest()[:12]
