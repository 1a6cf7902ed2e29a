"""
Custom Exceptions Module.

This module defines all custom exceptions used throughout the receipt
extraction pipeline. Engine-level exceptions are raised by the AI and OCR
layers and caught at the extraction orchestrator boundary, where they are
converted into record state; they never reach the batch scheduler.

Exception Hierarchy:
    ReceiptExtractionError (base)
    ├── InputError
    │   ├── UnsupportedFileTypeError
    │   ├── DuplicateFileError
    │   └── CorruptedFileError
    ├── ExtractionError
    │   ├── AIServiceError
    │   │   ├── AIServiceNotConfiguredError
    │   │   └── AIServiceTimeoutError
    │   └── OCRError
    │       ├── OCREngineNotAvailableError
    │       └── OCRProcessingError
    ├── PostProcessingError
    │   └── ValidationError
    ├── StorageError
    │   └── DatabaseError
    └── RecordStateError
"""


class ReceiptExtractionError(Exception):
    """
    Base exception for all receipt extraction errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(ReceiptExtractionError):
    """Base exception for ingestion errors."""
    pass


class UnsupportedFileTypeError(InputError):
    """
    Raised when a file with a non-image MIME type is submitted.

    Example:
        >>> raise UnsupportedFileTypeError("report.pdf", "application/pdf")
    """

    def __init__(self, filename: str, mime_type: str):
        message = f"Unsupported file type for '{filename}': {mime_type or 'unknown'}"
        details = {"filename": filename, "mime_type": mime_type}
        super().__init__(message, details)


class DuplicateFileError(InputError):
    """Raised when a file's fingerprint was already seen."""

    def __init__(self, filename: str, fingerprint: str):
        message = f"Duplicate receipt skipped: {filename}"
        details = {"filename": filename, "fingerprint": fingerprint}
        super().__init__(message, details)


class CorruptedFileError(InputError):
    """Raised when an image cannot be decoded."""

    def __init__(self, filename: str, reason: str = None):
        message = f"Corrupted or unreadable image: {filename}"
        details = {"filename": filename, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# EXTRACTION ERRORS
# =============================================================================

class ExtractionError(ReceiptExtractionError):
    """Base exception for extraction engine errors."""
    pass


class AIServiceError(ExtractionError):
    """Raised when the AI extraction service fails."""

    def __init__(self, reason: str = None, status: int = None):
        message = "AI extraction service failed"
        details = {"reason": reason}
        if status is not None:
            details["status"] = status
        super().__init__(message, details)


class AIServiceNotConfiguredError(AIServiceError):
    """Raised when no API key is available for the AI service."""

    def __init__(self):
        super().__init__("API key is not configured")


class AIServiceTimeoutError(AIServiceError):
    """Raised when the AI call loses the race against its timeout."""

    def __init__(self, timeout: float):
        super().__init__(f"no response within {timeout:g}s")
        self.timeout = timeout


class OCRError(ExtractionError):
    """Base exception for OCR-related errors."""
    pass


class OCREngineNotAvailableError(OCRError):
    """Raised when the OCR engine is not installed or reachable."""

    def __init__(self, engine_name: str):
        message = f"OCR engine not available: {engine_name}"
        details = {"engine": engine_name}
        super().__init__(message, details)


class OCRProcessingError(OCRError):
    """Raised when OCR processing fails."""

    def __init__(self, filename: str, reason: str = None):
        message = f"OCR processing failed for: {filename}"
        details = {"filename": filename, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# POST-PROCESSING ERRORS
# =============================================================================

class PostProcessingError(ReceiptExtractionError):
    """Base exception for post-processing errors."""
    pass


class ValidationError(PostProcessingError):
    """Raised when data validation fails."""

    def __init__(self, field: str, value: str, reason: str = None):
        message = f"Validation failed for field '{field}'"
        details = {"field": field, "value": value, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# STORAGE ERRORS
# =============================================================================

class StorageError(ReceiptExtractionError):
    """Base exception for storage errors."""
    pass


class DatabaseError(StorageError):
    """Raised when database operations fail."""

    def __init__(self, operation: str, reason: str = None):
        message = f"Database operation failed: {operation}"
        details = {"operation": operation, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# RECORD STATE ERRORS
# =============================================================================

class RecordStateError(ReceiptExtractionError):
    """Raised when a record operation is not allowed in its current state."""

    def __init__(self, record_id: str, status: str, operation: str):
        message = f"Cannot {operation} record {record_id} in status '{status}'"
        details = {"record_id": record_id, "status": status, "operation": operation}
        super().__init__(message, details)


__all__ = [
    'ReceiptExtractionError',
    'InputError',
    'UnsupportedFileTypeError',
    'DuplicateFileError',
    'CorruptedFileError',
    'ExtractionError',
    'AIServiceError',
    'AIServiceNotConfiguredError',
    'AIServiceTimeoutError',
    'OCRError',
    'OCREngineNotAvailableError',
    'OCRProcessingError',
    'PostProcessingError',
    'ValidationError',
    'StorageError',
    'DatabaseError',
    'RecordStateError',
]
