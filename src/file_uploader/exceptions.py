# src/file_uploader/exceptions.py

"""
Shared custom exceptions for the File Uploader service.

Centralizing exception definitions in a separate module prevents circular
import errors between other modules that need to raise or catch them.

Exception Hierarchy:
- FileUploaderError (base)
  - FileTransferError (isolated per file, recorded in the BatchResult)
    - OversizedFileError
    - DownloadFailedError
    - UploadFailedError
  - ResolutionFailedError
  - OrchestrationFaultError
  - LimiterNotInitializedError
  - StorageError
    - S3AccessDeniedError
    - S3ThrottlingError
    - S3TimeoutError
  - SlackApiError
  - SignatureVerificationError
  - RemoteUploadError
  - ConfigurationError
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the upload pipeline."""

    OVERSIZED_FILE = "OVERSIZED_FILE"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    RESOLUTION_FAILED = "RESOLUTION_FAILED"
    ORCHESTRATION_FAULT = "ORCHESTRATION_FAULT"


class FileUploaderError(Exception):
    """Base exception for all File Uploader service errors."""

    kind: Optional[ErrorKind] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = dict(context) if context else {}  # Copy context to prevent mutation
        self.correlation_id = correlation_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "error_kind": self.kind.value if self.kind else None,
            "error_message": self.message,
            "context": self.context,
            "correlation_id": self.correlation_id,
        }


# === Per-file transfer errors ===


class FileTransferError(FileUploaderError):
    """Base class for failures isolated to a single file."""

    kind = ErrorKind.UPLOAD_FAILED


class OversizedFileError(FileTransferError):
    """Raised when a file's declared size exceeds the configured maximum."""

    kind = ErrorKind.OVERSIZED_FILE

    def __init__(self, file_name: str, declared_size: int, max_size: int, **kwargs):
        message = f"File exceeds size limit: {file_name} ({declared_size} > {max_size} bytes)"
        context = {
            "file_name": file_name,
            "declared_size": declared_size,
            "max_size": max_size,
        }
        super().__init__(message, error_code="OVERSIZED_FILE", context=context, **kwargs)


class DownloadFailedError(FileTransferError):
    """Raised when a remote file cannot be downloaded."""

    kind = ErrorKind.DOWNLOAD_FAILED

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None, **kwargs):
        message = f"Download failed: {reason}"
        context = {}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        context.update({"url": url, "status_code": status_code})
        super().__init__(message, error_code="DOWNLOAD_FAILED", context=context, **kwargs)
        self.status_code = status_code


class UploadFailedError(FileTransferError):
    """Raised when object storage rejects or fails an upload."""

    kind = ErrorKind.UPLOAD_FAILED

    def __init__(self, namespace: str, name: str, reason: str = "storage rejected the object", **kwargs):
        message = f"Upload failed: {reason}"
        context = {}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        context.update({"namespace": namespace, "name": name})
        super().__init__(message, error_code="UPLOAD_FAILED", context=context, **kwargs)


# === Event-level errors ===


class ResolutionFailedError(FileUploaderError):
    """Raised when the message that attached a shared file cannot be located."""

    kind = ErrorKind.RESOLUTION_FAILED

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            f"Could not resolve file message: {reason}",
            error_code="RESOLUTION_FAILED",
            **kwargs,
        )


class OrchestrationFaultError(FileUploaderError):
    """Raised for unexpected faults outside the per-file isolation boundary."""

    kind = ErrorKind.ORCHESTRATION_FAULT

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            f"Batch orchestration failed: {reason}",
            error_code="ORCHESTRATION_FAULT",
            **kwargs,
        )


class LimiterNotInitializedError(FileUploaderError):
    """Raised when the upload limiter is used before it was initialized."""

    kind = ErrorKind.ORCHESTRATION_FAULT

    def __init__(self, **kwargs):
        super().__init__(
            "Upload limiter used before initialize_upload_limiter() was called",
            error_code="LIMITER_NOT_INITIALIZED",
            **kwargs,
        )


# === Storage errors ===


class StorageError(FileUploaderError):
    """Base class for object storage errors."""

    pass


class S3AccessDeniedError(StorageError):
    """Raised when access is denied to an S3 object."""

    def __init__(self, bucket: str, key: str, **kwargs):
        message = f"Access denied to S3 object: s3://{bucket}/{key}"
        context = {"bucket": bucket, "key": key}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        super().__init__(message, error_code="S3_ACCESS_DENIED", context=context, **kwargs)


class S3ThrottlingError(StorageError):
    """Raised when S3 operations are being throttled."""

    def __init__(self, operation: str, **kwargs):
        message = f"S3 operation throttled: {operation}"
        context = {"operation": operation}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        super().__init__(message, error_code="S3_THROTTLING", context=context, **kwargs)


class S3TimeoutError(StorageError):
    """Raised when S3 operations time out or the endpoint is unreachable."""

    def __init__(self, operation: str, **kwargs):
        message = f"S3 operation timed out: {operation}"
        context = {"operation": operation}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        super().__init__(message, error_code="S3_TIMEOUT", context=context, **kwargs)


# === Slack errors ===


class SlackApiError(FileUploaderError):
    """Raised when the Slack Web API answers with ok=false or an HTTP error."""

    def __init__(self, method: str, error: str, **kwargs):
        message = f"Slack API call {method} failed: {error}"
        context = {"method": method, "slack_error": error}
        super().__init__(message, error_code="SLACK_API_ERROR", context=context, **kwargs)
        self.method = method
        self.error = error


class SignatureVerificationError(FileUploaderError):
    """Raised when an inbound Slack request fails signature verification."""

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            f"Slack request verification failed: {reason}",
            error_code="INVALID_SIGNATURE",
            **kwargs,
        )


# === Single-URL ingestion ===


class RemoteUploadError(FileUploaderError):
    """Raised by the single-URL ingestion path; carries the HTTP status to return."""

    def __init__(self, message: str, status_code: int = 500, details: Any = None, **kwargs):
        if "error_code" not in kwargs:
            kwargs["error_code"] = "INTERNAL_ERROR"
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.details = details

    def to_response_body(self) -> Dict[str, Any]:
        return {
            "error": {
                "message": self.message,
                "code": self.error_code,
                "details": self.details,
            },
            "success": False,
        }


# === Configuration Errors ===


class ConfigurationError(FileUploaderError):
    """Raised when there's an error in the application configuration."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)


# === Utility Functions ===


def get_error_context(error: BaseException) -> Dict[str, Any]:
    """Extract error context for logging."""
    if isinstance(error, FileUploaderError):
        return error.to_dict()
    return {
        "error_type": error.__class__.__name__,
        "error_message": str(error),
        "error_kind": None,
    }
