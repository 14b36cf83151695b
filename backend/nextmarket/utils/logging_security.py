"""
Log sanitization helpers.

Package names, versions and object keys arrive inside uploaded archives and
request paths, so they are attacker controlled. Everything of that kind is
passed through these helpers before it reaches a log line (CWE-117).
"""

import re
from typing import Any, Optional
from urllib.parse import quote

LOG_INJECTION_PATTERNS = [
    r"[\r\n]",  # CRLF injection
    r"%0[ad]",  # URL-encoded CRLF
    r"\x00",
    r"[\x01-\x08\x0b\x0c\x0e-\x1f\x7f]",
]

# npm names may be scoped (@scope/name); semver may carry +build metadata
SAFE_LOG_PATTERN = re.compile(r"^[a-zA-Z0-9._@/+\-\s]+$")


def sanitize_for_log(value: Optional[Any], max_length: int = 100) -> str:
    """
    Sanitize a value for safe logging.

    Args:
        value: Value to sanitize
        max_length: Maximum length of output

    Returns:
        Sanitized string
    """
    if value is None:
        return "null"

    str_value = str(value)
    if len(str_value) > max_length:
        str_value = str_value[:max_length] + "..."

    for pattern in LOG_INJECTION_PATTERNS:
        str_value = re.sub(pattern, "", str_value)

    if not SAFE_LOG_PATTERN.match(str_value):
        str_value = re.sub(r"[^a-zA-Z0-9._@/+\-\s]", "", str_value)

    if not str_value.strip():
        return "[sanitized]"

    return str_value.strip()


def sanitize_path_for_log(path: Optional[str]) -> str:
    """Sanitize an object key or URL path for logging."""
    if not path:
        return "[no_path]"
    return sanitize_for_log(quote(path, safe="/.:-_@+"), max_length=200)


def sanitize_error_message_for_log(error_msg: Optional[Any]) -> str:
    """
    Redact credentials from error text before logging.

    boto3 and database driver errors can echo connection strings or signed
    URLs back at us.
    """
    if not error_msg:
        return "[no_error_message]"

    str_msg = str(error_msg)
    sensitive_patterns = [
        (r"://[^:/\s]+:[^@/\s]+@", "://[REDACTED]@"),  # user:password in URLs
        (r"password[=:\s]+[^\s]+", "password=[REDACTED]"),
        (r"secret[=:\s]+[^\s]+", "secret=[REDACTED]"),
        (r"(X-Amz-(?:Signature|Credential|Security-Token))=[^&\s]+", r"\1=[REDACTED]"),
    ]
    for pattern, replacement in sensitive_patterns:
        str_msg = re.sub(pattern, replacement, str_msg, flags=re.IGNORECASE)

    if len(str_msg) > 500:
        str_msg = str_msg[:500] + "..."
    return str_msg
