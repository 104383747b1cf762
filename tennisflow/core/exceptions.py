from fastapi import HTTPException, status
from typing import Optional, Dict, Any

class BaseAPIException(HTTPException):
    """Base exception for API errors"""
    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details
                }
            }
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message

class AuthenticationError(BaseAPIException):
    """Authentication related errors"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTH_001",
            message=message,
            details=details
        )

class AuthorizationError(BaseAPIException):
    """Authorization related errors"""
    def __init__(self, message: str = "Access forbidden", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="AUTH_002",
            message=message,
            details=details
        )

class ValidationError(BaseAPIException):
    """Validation errors"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_001",
            message=message,
            details=details
        )

class NotFoundError(BaseAPIException):
    """Resource not found errors"""
    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict] = None,
        error_code: str = "NOT_FOUND_001",
    ):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=error_code,
            message=message,
            details=details
        )

class ConflictError(BaseAPIException):
    """Resource conflict errors"""
    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[Dict] = None,
        error_code: str = "CONFLICT_001",
    ):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code=error_code,
            message=message,
            details=details
        )

class InternalServerError(BaseAPIException):
    """Internal server errors"""
    def __init__(self, message: str = "Internal server error", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_001",
            message=message,
            details=details
        )

class TransactionRetryExhaustedError(BaseAPIException):
    """Transient transaction errors that outlived every retry"""
    def __init__(self, message: str = "Temporarily unavailable, please retry", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="TRANSACTION_RETRY_EXHAUSTED",
            message=message,
            details=details
        )


# ---------------------------------------------------------------------------
# Points ledger
# ---------------------------------------------------------------------------

class InvalidAmountError(BaseAPIException):
    """Amount is not a positive integer"""
    def __init__(self, message: str = "Amount must be a positive integer", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_AMOUNT",
            message=message,
            details=details
        )

class UserNotFoundError(NotFoundError):
    def __init__(self, message: str = "User not found", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="USER_NOT_FOUND")

class InsufficientPointsError(ConflictError):
    def __init__(self, message: str = "Insufficient points", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="INSUFFICIENT_POINTS")

class PointsDebtExistsError(ConflictError):
    def __init__(self, message: str = "Outstanding points debt blocks spending", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="POINTS_DEBT_EXISTS")


# ---------------------------------------------------------------------------
# Orders / rentals / patch precondition
# ---------------------------------------------------------------------------

class OutOfStockError(ConflictError):
    def __init__(self, message: str = "Insufficient stock", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="OUT_OF_STOCK")

class RentalReservedError(ConflictError):
    def __init__(self, message: str = "Racket is not available for rental", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="RENTAL_RESERVED")

class InvalidStateError(ConflictError):
    def __init__(self, message: str = "Invalid state transition", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="INVALID_STATE")

class OrderLockedError(ConflictError):
    def __init__(self, message: str = "Order is in a terminal state", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="ORDER_LOCKED")

class IdempotencyKeyReusedError(ConflictError):
    """Idempotency-Key already belongs to another user's request"""
    def __init__(self, message: str = "Idempotency-Key was already used by another request", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="IDEMPOTENCY_KEY_REUSED")

class StaleWriteError(ConflictError):
    """The document changed after the client last read it"""
    def __init__(self, message: str = "Document was modified by someone else", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="conflict")

class DocumentGoneError(NotFoundError):
    """The document no longer exists"""
    def __init__(self, message: str = "Document not found", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="not_found")
