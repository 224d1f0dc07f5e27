"""
Custom exceptions for the data-access layer.

Every error raised by a repository or the API client derives from
RepositoryException and carries a stable ``code``, an optional HTTP
``status_code`` and a ``retryable`` flag used by the retry policy.
"""

from typing import Any, Dict, List, Optional

RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


class RepositoryException(Exception):
    """Base exception for all data-access errors."""

    code = "REPOSITORY_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for logs and API responses."""
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "details": self.details,
        }


class NotFoundException(RepositoryException):
    """Raised when an entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any = "unknown", message: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            message=message or f"{entity} with id {entity_id} not found",
            status_code=404,
            details={"entity": entity, "id": str(entity_id)},
        )


class ValidationException(RepositoryException):
    """Raised when input validation fails. Carries one reason per problem."""

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        reasons: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.reasons = list(reasons or [])
        merged = {"reasons": self.reasons}
        merged.update(details or {})
        super().__init__(message=message, status_code=400, details=merged)

    def __str__(self) -> str:
        if not self.reasons:
            return self.message
        return f"{self.message}: {'; '.join(self.reasons)}"


class NetworkException(RepositoryException):
    """Raised when the transport could not reach the API."""

    code = "NETWORK_ERROR"
    retryable = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=0, details=details)


class TimeoutException(RepositoryException):
    """Raised when a request exceeded its deadline."""

    code = "TIMEOUT_ERROR"
    retryable = True

    def __init__(
        self,
        operation: str,
        timeout_ms: float,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.timeout_ms = timeout_ms
        merged = {"operation": operation, "timeout_ms": timeout_ms}
        merged.update(details or {})
        super().__init__(
            message=f'Operation "{operation}" timed out after {timeout_ms:g}ms',
            details=merged,
        )


class ApiException(RepositoryException):
    """Raised when the API answered with an error status."""

    STATUS_CODES = {
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        408: "REQUEST_TIMEOUT",
        409: "CONFLICT",
        429: "RATE_LIMITED",
    }

    def __init__(
        self,
        message: str,
        status_code: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        if status_code >= 500:
            code = "SERVER_ERROR"
        else:
            code = self.STATUS_CODES.get(status_code, "HTTP_ERROR")
        super().__init__(message=message, code=code, status_code=status_code, details=details)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        # 4xx are final except request-timeout and rate limiting
        return self.status_code >= 500 or self.status_code in RETRYABLE_CLIENT_STATUSES


class UnknownException(RepositoryException):
    """Catch-all for failures that fit no other category."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=500, details=details)
