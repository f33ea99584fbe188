"""Scrub credentials out of provider error text before it is logged or raised."""

import re
from collections.abc import Iterable

MAX_ERROR_LENGTH = 500
REDACTED = "[REDACTED]"

_PATTERNS = [
    # Anthropic / OpenAI style keys
    re.compile(r"sk-ant-[A-Za-z0-9_\-]{8,}"),
    re.compile(r"sk-[A-Za-z0-9_\-]{8,}"),
    # Google API keys
    re.compile(r"AIza[0-9A-Za-z_\-]{20,}"),
    # Authorization headers
    re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._\-~+/=]{8,}"),
    re.compile(r"(?i)(x-api-key[\"']?\s*[:=]\s*[\"']?)[^\s\"',}]+"),
    re.compile(r"(?i)(api[_-]?key[\"']?\s*[:=]\s*[\"']?)[^\s\"'&,}]+"),
    # ?key=... query parameters
    re.compile(r"(?i)([?&]key=)[^&\s\"']+"),
    # Long opaque hex / base64 tokens
    re.compile(r"\b[0-9a-fA-F]{32,}\b"),
    re.compile(r"\b[A-Za-z0-9+/_\-]{40,}={0,2}"),
]


def _replace(match: re.Match) -> str:
    if match.groups() and match.group(1):
        return match.group(1) + REDACTED
    return REDACTED


def sanitize_error(text: str, secrets: Iterable[str] = (), max_length: int = MAX_ERROR_LENGTH) -> str:
    """Return ``text`` with secrets redacted, truncated to ``max_length``.

    Args:
        text: Raw error text (often an HTTP response body)
        secrets: Literal values that must never appear, e.g. the configured key
        max_length: Truncation limit for the returned text

    Returns:
        Sanitized text
    """
    cleaned = str(text)
    for secret in secrets:
        if secret:
            cleaned = cleaned.replace(secret, REDACTED)
    for pattern in _PATTERNS:
        cleaned = pattern.sub(_replace, cleaned)

    cleaned = " ".join(cleaned.split())
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length] + "..."
    return cleaned
