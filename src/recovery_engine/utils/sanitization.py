"""Redaction of patient-communication content for logs and audit output.

Failures in speech, sign and mediation subsystems frequently carry fragments
of what a patient or clinician said. This module strips such content, and
identifiers like medical record numbers, from strings and structured data
before they reach a log handler.

Examples:
    >>> redact_text("Recognition failed for MRN 0048812")
    'Recognition failed for MRN <REDACTED>'

    >>> sanitize_value({"transcript": "chest pain since noon", "attempt": 2})
    {'transcript': '<REDACTED>', 'attempt': 2}
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import TypeIs

# Redaction marker for sanitized values
REDACTED = "<REDACTED>"

# Medical record numbers: "MRN 123456", "MRN: 123456", "mrn#123456"
_MRN_PATTERN = re.compile(r"(\bMRN\s*[:#]?\s*)([A-Z0-9-]{4,})", re.IGNORECASE)

# Email addresses
_EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")

# North American style phone numbers: 555-123-4567, (555) 123 4567
_PHONE_PATTERN = re.compile(r"(?<!\w)\+?(?:1[\s.-])?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]\d{4}(?!\w)")

# Inline quoted speech: transcript="...", utterance='...'
_QUOTED_SPEECH_PATTERN = re.compile(
    r"((?:transcript|utterance|phrase|text)\s*[=:]\s*)([\"'])(.*?)(\2)",
    re.IGNORECASE,
)

# Field names that carry conversation content or credentials (case-insensitive)
_SENSITIVE_FIELD_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in [
        r".*transcript.*",
        r".*utterance.*",
        r".*patient.*",
        r".*mrn.*",
        r".*message_text.*",
        r".*spoken.*",
        r".*token.*",
        r".*secret.*",
        r".*password.*",
        r".*credential.*",
    ]
]


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates sensitive data.

    Args:
        field_name: The field name to check (e.g., "transcript", "patient_id")

    Returns:
        True if the field name matches sensitive patterns

    Examples:
        >>> is_sensitive_field("patient_id")
        True
        >>> is_sensitive_field("component")
        False
    """
    return any(pattern.match(field_name) for pattern in _SENSITIVE_FIELD_PATTERNS)


def redact_text(text: str) -> str:
    """Redact identifiers and quoted speech from free text.

    The surrounding text is preserved so the message stays useful for
    debugging.

    Args:
        text: Text to redact

    Returns:
        Text with sensitive fragments replaced by the REDACTED marker
    """
    if not text:
        return text

    redacted = _QUOTED_SPEECH_PATTERN.sub(rf"\1\2{REDACTED}\4", text)
    redacted = _MRN_PATTERN.sub(rf"\1{REDACTED}", redacted)
    redacted = _EMAIL_PATTERN.sub(REDACTED, redacted)
    return _PHONE_PATTERN.sub(REDACTED, redacted)


def _is_primitive(value: object) -> TypeIs[str | int | float | bool | None]:
    return isinstance(value, (str, int, float, bool, type(None)))


def _is_mapping(value: object) -> TypeIs[Mapping[str, object]]:
    return isinstance(value, Mapping)


def _is_sequence(value: object) -> TypeIs[Sequence[object]]:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def sanitize_value(
    value: object,
    *,
    field_name: str | None = None,
) -> object:
    """Recursively sanitize sensitive values from structured data.

    Args:
        value: The value to sanitize (can be any type)
        field_name: Optional field name for context-aware sanitization

    Returns:
        Sanitized value with sensitive content replaced by REDACTED marker
    """
    if field_name and is_sensitive_field(field_name):
        return REDACTED

    if _is_primitive(value):
        if type(value) is str:
            return redact_text(value)
        return value

    if _is_mapping(value):
        return {key: sanitize_value(val, field_name=str(key)) for key, val in value.items()}

    if _is_sequence(value):
        sanitized_items: list[object] = [sanitize_value(item) for item in value]
        if isinstance(value, tuple):
            return tuple(sanitized_items)
        return sanitized_items

    # Unknown objects are rendered and redacted as text
    return redact_text(str(value))


def sanitize_exception(exc: BaseException) -> str:
    """Render an exception as "Type: message" with sensitive content redacted.

    Examples:
        >>> sanitize_exception(RuntimeError("no match for transcript='help me'"))
        "RuntimeError: no match for transcript='<REDACTED>'"
    """
    return f"{type(exc).__name__}: {redact_text(str(exc))}"


def sanitize_args(args: tuple[object, ...]) -> tuple[object, ...]:
    """Sanitize a tuple of logging arguments."""
    return tuple(sanitize_value(arg) for arg in args)


def sanitize_mapping(
    data: Mapping[str, object],
) -> dict[str, object]:
    """Sanitize a mapping (e.g., logging extra dict) for safe output."""
    return {key: sanitize_value(val, field_name=key) for key, val in data.items()}
