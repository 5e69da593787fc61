"""Error types for binary provisioning."""
from typing import Any, Dict, Optional

from qsign.logging import get_logger


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    logger: Optional[Any] = None,
) -> None:
    """Log an error with context."""
    logger = logger or get_logger(__name__)

    error_info: Dict[str, Any] = {
        "error_type": error.__class__.__name__,
        "error_message": str(error),
    }
    if context:
        error_info["context"] = context
    if isinstance(error, QSignError):
        error_info["details"] = error.details

    logger.error("qsign_error", **error_info)


class QSignError(Exception):
    """Base error class for qsign."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class InvalidConfigError(QSignError, ValueError):
    """Missing or malformed caller configuration."""


class UnsupportedPlatformError(QSignError):
    """Operating system has no release artifact."""

    def __init__(self, os_id: str):
        super().__init__(
            f"Unsupported platform: {os_id}",
            details={"os_id": os_id},
        )


class UnsupportedArchitectureError(QSignError):
    """CPU architecture has no release artifact."""

    def __init__(self, arch_id: str):
        super().__init__(
            f"Unsupported architecture: {arch_id}",
            details={"arch_id": arch_id},
        )


class DownloadError(QSignError):
    """Release archive could not be fetched."""

    def __init__(self, url: str, status: Optional[int] = None, reason: Optional[str] = None):
        message = f"Failed to download {url}"
        if status is not None:
            message += f": HTTP {status}"
        elif reason:
            message += f": {reason}"
        super().__init__(message, details={"url": url, "status": status, "reason": reason})
        self.url = url
        self.status = status


class ExtractionError(QSignError):
    """Archive is corrupt or does not contain the expected binary."""


class ExecutablePermissionError(QSignError):
    """Executable bit could not be set on the installed binary."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Failed to mark {path} executable: {reason}",
            details={"path": path, "reason": reason},
        )
