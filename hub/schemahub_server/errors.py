"""
Error types for SchemaHub.

This module defines the error taxonomy surfaced at the registry boundary:
- RegistryError: Base exception
- NotFoundError: Unknown service, tag or version
- AuthError: Missing or invalid API key
- ValidationError: Malformed SDL
- ConflictError: Concurrent tag update lost the race
- RegistryTimeoutError: Diff or persistence exceeded its time bound

Invariants:
    - All errors inherit from RegistryError
    - Every error carries a stable code used by HTTP clients and CI parsers
    - Messages never include SQL, file paths or stack details
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class RegistryError(Exception):
    """Base exception for all registry errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    code = "INTERNAL"
    http_status = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the error payload returned by the API."""
        result: Dict[str, Any] = {"error": self.message, "error_code": self.code}
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(RegistryError):
    """Requested service, tag or version does not exist."""

    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, message: str, resource: Optional[str] = None) -> None:
        super().__init__(message, details={"resource": resource} if resource else None)
        self.resource = resource


class AuthError(RegistryError):
    """API key is missing or not recognized.

    Raised before any store or index is touched.
    """

    code = "AUTH_ERROR"
    http_status = 401


class ValidationError(RegistryError):
    """Schema document failed to parse or validate.

    Raised when:
    - SDL has a syntax error
    - SDL references unknown types
    - Request is missing the SDL body
    """

    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message, details={"errors": errors} if errors else None)
        self.errors = errors or []


class ConflictError(RegistryError):
    """A concurrent tag update won the race; the caller should retry."""

    code = "CONFLICT"
    http_status = 409

    def __init__(
        self,
        message: str,
        expected_version_id: Optional[str] = None,
        actual_version_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            details={
                "expected_version_id": expected_version_id,
                "actual_version_id": actual_version_id,
            },
        )
        self.expected_version_id = expected_version_id
        self.actual_version_id = actual_version_id


class RegistryTimeoutError(RegistryError):
    """Operation exceeded its time bound."""

    code = "TIMEOUT"
    http_status = 504

    def __init__(self, message: str, timeout_seconds: Optional[float] = None) -> None:
        super().__init__(
            message,
            details={"timeout_seconds": timeout_seconds} if timeout_seconds else None,
        )
        self.timeout_seconds = timeout_seconds
