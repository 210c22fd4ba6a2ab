"""
Error types for medication-label verification.

Provides specific exception types for the failure modes of the capture and
recognition path, with enough context for operator logs and an actionable
message for the end user.

Only device failures and invalid inputs are raised to callers. Recognition
failures, extraction gaps and validation failures are absorbed by the capture
controller and counted against its retry budgets.
"""

from typing import Any, Dict, List, Optional


class MedScanError(Exception):
    """Base exception for all medscan errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.suggestions = suggestions or []

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "suggestions": self.suggestions,
        }


class ConfigurationError(MedScanError):
    """Raised when configuration is invalid or missing."""

    pass


class InvalidImageError(MedScanError):
    """Raised when an image input cannot be decoded."""

    def __init__(self, reason: str, input_type: Optional[str] = None):
        super().__init__(
            f"Invalid image data: {reason}",
            details={"input_type": input_type},
            suggestions=[
                "Provide JPEG or PNG bytes, a decoded array, or a data:image/ URL",
                "Ensure the photo was not truncated during upload",
            ],
        )


class RecognitionFailure(MedScanError):
    """Raised by a recognizer that produced no usable text.

    The capture controller treats this as "no label detected" for the
    attempt; it never reaches the end user directly.
    """

    def __init__(self, reason: str, elapsed_s: Optional[float] = None):
        super().__init__(
            f"Text recognition failed: {reason}",
            details={"elapsed_s": elapsed_s},
        )


class DeviceUnavailableError(MedScanError):
    """Raised when the image-acquisition device cannot be acquired."""

    def __init__(self, reason: str, device: Optional[str] = None):
        super().__init__(
            f"Camera unavailable: {reason}",
            details={"device": device},
            suggestions=[
                "Allow camera access for this page in your browser settings",
                "Close other apps that may be using the camera",
                "Check that this device has a working camera",
            ],
        )

    @property
    def user_message(self) -> str:
        """Actionable message shown to the end user."""
        return f"{self.message}. {self.suggestions[0]}."
