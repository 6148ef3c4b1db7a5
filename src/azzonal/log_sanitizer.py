"""Log sanitization module for preventing secret leakage.

Every error message that reaches a log line or the console goes through
this module. Two kinds of secrets are masked:
- Pattern-based secrets (client secrets, passwords, tokens, bearer headers)
- Runtime secrets registered explicitly (the generated VM admin password)

Azure SDK error payloads can echo request bodies, which for a virtual
machine include ``admin_password``. Registered runtime secrets are replaced
wherever they appear, independent of the surrounding text.

Security Controls:
- Log sanitization: mask all secrets
- Error messages don't leak secrets
"""

import re
from re import Pattern
from typing import Any


class LogSanitizer:
    """Sanitize sensitive data from logs and error messages.

    All methods are class methods and can be called without instantiation.
    """

    REDACTED = "[REDACTED]"
    MASKED = "****"

    # Order matters: more specific patterns come first
    SECRET_PATTERNS: dict[str, Pattern] = {
        "client_secret_assignment": re.compile(
            r'(client[_-]?secret["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)',
            re.IGNORECASE,
        ),
        "client_secret_env": re.compile(
            r"((?:AZURE_)?CLIENT_SECRET[\"']?\s*[:=]\s*[\"']?)([^\s\"'&,\)]+)",
            re.IGNORECASE,
        ),
        "password": re.compile(
            r'((?:admin[_-]?)?password["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)', re.IGNORECASE
        ),
        "authorization_bearer": re.compile(r"(Authorization:\s*Bearer\s+)([^\s]+)", re.IGNORECASE),
        "access_token": re.compile(
            r'(access[_-]?token["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)',
            re.IGNORECASE,
        ),
        "secret_phrase": re.compile(
            r"(with secret:\s*|for secret:\s*|secret:\s*)([^\s,\)]+)", re.IGNORECASE
        ),
    }

    SENSITIVE_KEYS = {
        "client_secret",
        "password",
        "admin_password",
        "access_token",
        "token",
        "secret",
        "credential",
        "authorization",
    }

    _runtime_secrets: set[str] = set()

    @classmethod
    def register_secret(cls, value: str | None) -> None:
        """Register a runtime secret to be masked wherever it appears.

        Args:
            value: Secret value (ignored when empty)
        """
        if value:
            cls._runtime_secrets.add(value)

    @classmethod
    def clear_secrets(cls) -> None:
        """Forget all registered runtime secrets."""
        cls._runtime_secrets.clear()

    @classmethod
    def sanitize(cls, message: Any) -> str:
        """Sanitize message by redacting sensitive patterns.

        Args:
            message: The message to sanitize (converted with str())

        Returns:
            Sanitized message with secrets replaced by [REDACTED]

        Examples:
            >>> LogSanitizer.sanitize("client_secret=abc123")
            'client_secret=[REDACTED]'
            >>> LogSanitizer.sanitize("Auth failed with secret: abc123")
            'Auth failed with secret: [REDACTED]'
        """
        if not isinstance(message, str):
            message = str(message)

        result = message

        # Longest first so a secret containing another one is masked whole
        for secret in sorted(cls._runtime_secrets, key=len, reverse=True):
            result = result.replace(secret, cls.REDACTED)

        for pattern in cls.SECRET_PATTERNS.values():
            result = pattern.sub(r"\1" + cls.REDACTED, result)

        return result

    @classmethod
    def sanitize_exception(cls, error: BaseException) -> str:
        """Sanitize an exception message.

        Args:
            error: The exception to sanitize

        Returns:
            Sanitized ``str(error)``, or the exception type name when empty
        """
        message = str(error) or type(error).__name__
        return cls.sanitize(message)

    @classmethod
    def create_safe_error_message(cls, error: BaseException, context: str = "") -> str:
        """Create error message with secrets sanitized.

        Examples:
            >>> err = ValueError("Auth failed with client_secret=abc123")
            >>> LogSanitizer.create_safe_error_message(err, "Authentication")
            'Authentication: Auth failed with client_secret=[REDACTED]'
        """
        sanitized_msg = cls.sanitize_exception(error)

        if context:
            return f"{context}: {sanitized_msg}"
        return sanitized_msg

    @classmethod
    def sanitize_dict(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Sanitize dictionary values recursively.

        Creates a new dictionary with values under sensitive keys redacted.
        Lists are walked so nested parameter bundles are covered too.

        Examples:
            >>> data = {"os_profile": {"admin_username": "azureuser", "admin_password": "x"}}
            >>> LogSanitizer.sanitize_dict(data)["os_profile"]["admin_password"]
            '[REDACTED]'
        """
        result: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(key, str) and key.lower() in cls.SENSITIVE_KEYS:
                result[key] = cls.REDACTED
            else:
                result[key] = cls._sanitize_value(value)
        return result

    @classmethod
    def _sanitize_value(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return cls.sanitize_dict(value)
        if isinstance(value, list):
            return [cls._sanitize_value(item) for item in value]
        if isinstance(value, str):
            return cls.sanitize(value)
        return value
