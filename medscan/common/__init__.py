"""
Common types and errors shared across all modules.

This module provides the image input types used by the recognition capability
and the capture controller, and the exception hierarchy for the package.
"""

from medscan.common.errors import (
    ConfigurationError,
    DeviceUnavailableError,
    InvalidImageError,
    MedScanError,
    RecognitionFailure,
)
from medscan.common.types import ImageBuffer, ImageInput

__all__ = [
    "ImageBuffer",
    "ImageInput",
    "MedScanError",
    "ConfigurationError",
    "InvalidImageError",
    "RecognitionFailure",
    "DeviceUnavailableError",
]
