"""Log sanitization for raw source payloads and actor addresses.

Transformer error logs quote ref ids, subjects and exception messages taken
from raw records. Those can carry tokens pasted into Slack or emails of
people outside the org, so they pass through here first.

Usage:
    from teampulse.utils.log_sanitizer import sanitize_exception, mask_email

    logger.error(f"Failed {ref}: {sanitize_exception(e)}")
    logger.info(f"Created identity for {mask_email(email)}")
"""

import re

# Regex patterns for sensitive data in strings
SENSITIVE_PATTERNS = [
    (re.compile(r"(xox[a-z]-[a-zA-Z0-9-]+)"), "[SLACK_TOKEN]"),
    (re.compile(r"(gh[pousr]_[a-zA-Z0-9]{36})"), "[GITHUB_TOKEN]"),
    (re.compile(r"Bearer\s+([a-zA-Z0-9._-]+)", re.IGNORECASE), "Bearer [REDACTED]"),
    (re.compile(r"\b([a-zA-Z0-9]{64,})\b"), "[POSSIBLE_TOKEN]"),
]

EMAIL_PATTERN = re.compile(r"\b([A-Za-z0-9._%+-]+)@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")


def mask_email(email: str) -> str:
    """Keep the first character of the local part and the domain.

    Example:
        >>> mask_email("alice@acme.com")
        'a***@acme.com'
    """
    if not email or "@" not in email:
        return email
    local, domain = email.split("@", 1)
    return f"{local[:1]}***@{domain}"


def sanitize_string(value: str) -> str:
    """Redact tokens and mask email addresses in a string."""
    if not isinstance(value, str):
        return value

    result = value
    for pattern, replacement in SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)

    return EMAIL_PATTERN.sub(lambda m: mask_email(m.group(0)), result)


def sanitize_exception(exc: Exception) -> str:
    """Sanitize an exception message for logging."""
    return sanitize_string(str(exc))
