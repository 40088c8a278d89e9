"""
Custom application exceptions
"""

from typing import Optional, Dict, Any, List


class CinegoException(Exception):
    """Base exception for CineGo application"""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(CinegoException):
    """Authentication related errors"""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="AUTH_ERROR",
            status_code=401,
            details=details
        )


class AuthorizationError(CinegoException):
    """Authorization related errors"""

    def __init__(self, message: str = "Not authorized", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="AUTH_FORBIDDEN",
            status_code=403,
            details=details
        )


class NotFoundError(CinegoException):
    """Resource not found errors"""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id {identifier} not found"
        super().__init__(
            message=message,
            code="NOT_FOUND",
            status_code=404,
            details={"resource": resource}
        )


class ValidationError(CinegoException):
    """Validation errors"""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        details = dict(details or {})
        if field:
            details["field"] = field
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class SeatUnavailableError(CinegoException):
    """Requested seats are already held or sold"""

    def __init__(self, seat_ids: Optional[List[str]] = None):
        details = {"unavailable_seats": seat_ids} if seat_ids else {}
        super().__init__(
            message="Selected seats are not available",
            code="SEATS_UNAVAILABLE",
            status_code=409,
            details=details
        )


class ConcurrencyError(CinegoException):
    """Concurrency conflict error"""

    def __init__(self, message: str = "Resource was modified by another process"):
        super().__init__(
            message=message,
            code="CONCURRENCY_ERROR",
            status_code=409
        )


class PaymentProviderError(CinegoException):
    """Payment provider call failed"""

    def __init__(self, message: str = "Payment provider request failed", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="PAYMENT_PROVIDER_ERROR",
            status_code=502,
            details=details
        )


class WebhookSignatureError(PaymentProviderError):
    """Inbound webhook could not be authenticated"""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message=message)
        self.code = "INVALID_SIGNATURE"
        self.status_code = 400
