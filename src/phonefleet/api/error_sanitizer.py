"""Error message sanitization for API responses.

Fatal sync failures and unexpected exceptions surface their message to the
caller. Driver messages can carry connection strings, credentials or server
paths, so those messages go through sanitize_error_message() first; the
original text is only logged.

Example:
    >>> sanitize_error_message("connect failed: postgresql://fleet:pw@db/fleet")
    'connect failed: [DATABASE_URL]'
"""

import re
from typing import Optional

DEFAULT_PATTERNS: list[tuple[str, str]] = [
    # Connection strings
    (r"postgres(ql)?://[^\s]+", "[DATABASE_URL]"),
    # Credentials
    (r"password[=:\s]+[^\s,;]+", "password=[REDACTED]"),
    (r"api[-_]?key[=:\s]+[^\s,;]+", "api_key=[REDACTED]"),
    (r"secret[=:\s]+[^\s,;]+", "secret=[REDACTED]"),
    # Environment variable names
    (r"\bDATABASE_URL\b(?=[=:\s])", "[ENV_VAR]"),
    # Server-side paths (workbook exports, source files)
    (r"/(?:home|root|usr|var|etc|opt|mnt|srv|tmp)/[^\s,;]+", "[FILE_PATH]"),
    (r"[A-Z]:\\[^\s,;]+", "[FILE_PATH]"),
    # Stack traces
    (r"Traceback \(most recent call last\):[\s\S]*?(?=\n\n|\n[A-Z]|\Z)", "[STACK_TRACE]"),
]


class ErrorSanitizer:
    """Redacts sensitive fragments from error messages."""

    def __init__(
        self,
        patterns: Optional[list[tuple[str, str]]] = None,
        max_message_length: int = 500,
    ):
        self.patterns = list(patterns or DEFAULT_PATTERNS)
        self.max_message_length = max_message_length
        self._compiled_patterns = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in self.patterns
        ]

    def sanitize(self, message: str) -> str:
        if not message:
            return "An error occurred"

        sanitized = message
        for pattern, replacement in self._compiled_patterns:
            sanitized = pattern.sub(replacement, sanitized)

        if len(sanitized) > self.max_message_length:
            sanitized = sanitized[: self.max_message_length] + "... [TRUNCATED]"

        return sanitized.strip() or "An error occurred"

    def is_safe(self, message: str) -> bool:
        """True when no pattern would redact anything from message."""
        return not any(p.search(message) for p, _ in self._compiled_patterns)


# Singleton instance for convenience
_default_sanitizer: Optional[ErrorSanitizer] = None


def get_sanitizer() -> ErrorSanitizer:
    """Get the default error sanitizer instance."""
    global _default_sanitizer
    if _default_sanitizer is None:
        _default_sanitizer = ErrorSanitizer()
    return _default_sanitizer


def sanitize_error_message(message: str) -> str:
    """Sanitize an error message for client exposure."""
    return get_sanitizer().sanitize(message)
