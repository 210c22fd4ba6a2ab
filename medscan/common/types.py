"""
Common type definitions for the medication-label verification pipeline.

This module provides the Pydantic-based image wrapper used wherever a decoded
frame is passed between the capture controller and the recognition
capability, plus the union of accepted raw image inputs.
"""

from typing import Union

import numpy as np
from pydantic import BaseModel, Field, field_validator

# Raw image as accepted by the recognition capability: decoded pixels,
# encoded bytes (JPEG/PNG), or a "data:image/...;base64," URL.
ImageInput = Union[np.ndarray, bytes, str]


class ImageBuffer(BaseModel):
    """
    Type-safe wrapper for decoded label photographs (numpy.ndarray).

    Ensures frames are valid uint8 arrays with a grayscale or color layout
    before they reach the OCR engine.

    Attributes:
        data: The underlying numpy array containing image data.
            Shape: (H, W, C) for color images, (H, W) for grayscale.
            Dtype: uint8 (0-255).

    Example:
        >>> import cv2
        >>> frame = cv2.imread("pouch.jpg")
        >>> image = ImageBuffer(data=frame).to_numpy()
    """

    data: np.ndarray = Field(..., description="Image data as numpy array")

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("data")
    @classmethod
    def _validate_image(cls, v: np.ndarray) -> np.ndarray:
        """
        Validate that the numpy array is a valid image.

        Args:
            v: Numpy array to validate.

        Returns:
            Validated numpy array.

        Raises:
            ValueError: If array is not a valid image format.
        """
        if not isinstance(v, np.ndarray):
            raise ValueError(f"Expected numpy.ndarray, got {type(v)}")

        if v.size == 0:
            raise ValueError("Image array is empty")

        if len(v.shape) not in (2, 3):
            raise ValueError(
                f"Expected 2D (grayscale) or 3D (color) image, got shape {v.shape}"
            )

        if len(v.shape) == 3 and v.shape[2] not in (1, 3, 4):
            raise ValueError(
                f"Expected 1, 3, or 4 channels for color image, got {v.shape[2]}"
            )

        if v.dtype != np.uint8:
            raise ValueError(
                f"Expected uint8 dtype for image, got {v.dtype}. "
                "Images should be in range [0, 255]"
            )

        return v

    def to_numpy(self) -> np.ndarray:
        """Get underlying numpy array."""
        return self.data
