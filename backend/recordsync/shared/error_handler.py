"""
Error Handler
Unified error classification and public error messages for the sync API
"""

import os
import logging
from typing import Dict, Any, Optional, List
from enum import Enum

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal Server Error"
RETRY_AFTER_SECONDS = 30


class ErrorType(str, Enum):
    """Error type classification"""
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    STORAGE = "storage"
    UNKNOWN = "unknown"


class ErrorInfo:
    """Structured error information"""
    def __init__(
        self,
        error_type: ErrorType,
        user_message: str,
        technical_message: Optional[str] = None,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: bool = False,
        retry_after: Optional[int] = None,
        errors: Optional[List[Dict[str, str]]] = None,
    ):
        self.error_type = error_type
        self.user_message = user_message
        self.technical_message = technical_message
        self.error_code = error_code
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after = retry_after
        self.errors = errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the ``{success: false, ...}`` response envelope"""
        body: Dict[str, Any] = {
            "success": False,
            "error": self.user_message,
            "code": self.error_code,
        }
        if self.errors is not None:
            body["errors"] = self.errors
        return body

    def headers(self) -> Dict[str, str]:
        """Response headers; retryable failures tell the client when to come back"""
        if self.retryable and self.retry_after is not None:
            return {"Retry-After": str(self.retry_after)}
        return {}

    def log(self, context: str):
        """Log the technical detail, which never reaches the response body"""
        detail = self.technical_message or self.user_message
        message = f"{context}: {self.error_type.value} error {self.status_code} ({detail})"
        if self.error_type in (ErrorType.STORAGE, ErrorType.UNKNOWN):
            logger.error(message)
        else:
            logger.warning(message)


def is_debug_mode() -> bool:
    """Development mode exposes underlying error messages in 500 responses"""
    if os.getenv("SYNC_DEBUG_ERRORS") == "1":
        return True
    return os.getenv("ENVIRONMENT", "production").lower() == "development"


def public_error_message(error: Exception) -> str:
    """
    Message safe to send to the caller for an unexpected failure

    Production never leaks storage-layer detail; development returns the
    underlying message to ease debugging.
    """
    if is_debug_mode():
        return str(error) or error.__class__.__name__
    return GENERIC_ERROR_MESSAGE


def classify_status(status_code: int) -> ErrorInfo:
    """Map an HTTP status to an ErrorInfo with the matching retry semantics"""
    if status_code == 401:
        return ErrorInfo(ErrorType.AUTHENTICATION, "Unauthorized", error_code="UNAUTHORIZED",
                         status_code=401, retryable=False)
    if status_code == 405:
        return ErrorInfo(ErrorType.VALIDATION, "Method not allowed", error_code="METHOD_NOT_ALLOWED",
                         status_code=405, retryable=False)
    if status_code == 404:
        return ErrorInfo(ErrorType.VALIDATION, "Not found", error_code="NOT_FOUND",
                         status_code=404, retryable=False)
    if 400 <= status_code < 500:
        return ErrorInfo(ErrorType.VALIDATION, "Bad request", error_code="BAD_REQUEST",
                         status_code=status_code, retryable=False)
    if status_code == 503:
        return ErrorInfo(ErrorType.STORAGE, "Service unavailable", error_code="SERVICE_UNAVAILABLE",
                         status_code=503, retryable=True, retry_after=RETRY_AFTER_SECONDS)
    return ErrorInfo(ErrorType.STORAGE, GENERIC_ERROR_MESSAGE, error_code="INTERNAL_ERROR",
                     status_code=status_code, retryable=True, retry_after=RETRY_AFTER_SECONDS)
