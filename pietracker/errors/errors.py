"""
Custom exceptions for the pie tracker.

Exception hierarchy:
- PieTrackerError (base)
  - RemoteError: anything coming back from the portfolio API
    - TransportError: connection/DNS/timeout failures
    - RateLimitedError: HTTP 429, a soft condition
    - RemoteStatusError: any other non-2xx status
    - SchemaError: body matches none of the accepted shapes
    - BusinessError: HTTP 200 body that encodes an application failure
  - PersistenceError: state file could not be read or written
  - ConfigurationError: invalid configuration
"""

from __future__ import annotations

from typing import Any, Optional


class PieTrackerError(Exception):
    """Base exception for all pie tracker errors."""

    def __init__(
        self,
        message: str,
        *,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.component = component
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.component:
            parts.append(f"[component={self.component}]")
        if self.details:
            parts.append(f"[details={self.details}]")
        return " ".join(parts)


class RemoteError(PieTrackerError):
    """Raised when a call against the portfolio API does not yield usable data."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.url = url
        details = details or {}
        if url:
            details["url"] = url
        super().__init__(message, component=component, details=details)


class TransportError(RemoteError):
    """Raised when the request never produced an HTTP response."""


class RateLimitedError(RemoteError):
    """Raised on HTTP 429. Callers treat this as 'no data this cycle'."""

    def __init__(
        self,
        message: str,
        *,
        retry_after_s: Optional[float] = None,
        url: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.retry_after_s = retry_after_s
        details = details or {}
        if retry_after_s is not None:
            details["retry_after_s"] = retry_after_s
        super().__init__(message, url=url, component=component, details=details)


class RemoteStatusError(RemoteError):
    """Raised when the API answers with a non-2xx status other than 429."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        body: Optional[str] = None,
        url: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status = status
        self.body = body
        details = details or {}
        details["status"] = status
        super().__init__(message, url=url, component=component, details=details)


class SchemaError(RemoteError):
    """Raised when a response body cannot be parsed into the expected shape."""

    def __init__(
        self,
        message: str,
        *,
        raw_body: Optional[str] = None,
        expected_shape: Optional[str] = None,
        url: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.raw_body = raw_body
        self.expected_shape = expected_shape
        details = details or {}
        if expected_shape:
            details["expected_shape"] = expected_shape
        # raw_body stays off details to keep log lines short
        super().__init__(message, url=url, component=component, details=details)


class BusinessError(RemoteError):
    """Raised when an HTTP 200 body carries an application-level error payload."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        raw_body: Optional[str] = None,
        url: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.code = code
        self.raw_body = raw_body
        details = details or {}
        if code:
            details["code"] = code
        super().__init__(message, url=url, component=component, details=details)


class PersistenceError(PieTrackerError):
    """Raised when the state file cannot be read or written."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.path = path
        details = details or {}
        if path:
            details["path"] = path
        super().__init__(message, component=component, details=details)


class ConfigurationError(PieTrackerError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.field = field
        self.value = value
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, component=component, details=details)
