"""
Sync service exceptions
Each carries the HTTP status and machine-readable code it is rendered with
"""

from typing import Dict, List, Optional


class SyncServiceError(Exception):
    """Base exception for push/pull processing"""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class EntityTypeError(SyncServiceError):
    """Unknown entity-type token"""
    status_code = 400
    code = "INVALID_ENTITY_TYPE"


class PayloadValidationError(SyncServiceError):
    """Envelope or entity payload failed structural validation"""
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, errors: List[Dict[str, str]], message: str = "Validation failed"):
        super().__init__(message, errors=errors)


class StorageError(SyncServiceError):
    """Remote store failure; retryable from the client's point of view"""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, original: Optional[Exception] = None):
        super().__init__(message)
        self.original = original
