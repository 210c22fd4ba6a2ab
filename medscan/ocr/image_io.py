"""Decoding of raw label photographs into pixel arrays.

The scan page hands images over as a base64 data URL, file uploads arrive as
encoded bytes, and tests or on-device callers may pass decoded arrays. All
three are normalized here into a validated uint8 numpy array.

Example:
    >>> image = decode_image("data:image/jpeg;base64,/9j/4AAQ...")
    >>> image.shape
    (720, 1280, 3)
"""

import base64
import binascii
import logging

import cv2
import numpy as np
from pydantic import ValidationError

from medscan.common.errors import InvalidImageError
from medscan.common.types import ImageBuffer, ImageInput

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/"


def decode_data_url(data_url: str) -> bytes:
    """Extract the encoded image bytes from a ``data:image/...`` URL.

    Args:
        data_url: String such as ``data:image/jpeg;base64,<payload>``.

    Returns:
        Decoded image file bytes.

    Raises:
        InvalidImageError: If the URL is not an image data URL or the payload
            is not valid base64.
    """
    if not data_url.startswith(DATA_URL_PREFIX):
        raise InvalidImageError("expected a data:image/ URL", input_type="str")

    header, _, payload = data_url.partition(",")
    if not payload:
        raise InvalidImageError("data URL has no payload", input_type="str")
    if ";base64" not in header:
        raise InvalidImageError("only base64 data URLs are supported", input_type="str")

    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError(f"bad base64 payload ({e})", input_type="str") from e


def decode_image(image: ImageInput) -> np.ndarray:
    """Decode any accepted image input into a validated pixel array.

    Args:
        image: Decoded array, encoded JPEG/PNG bytes, or a data URL.

    Returns:
        uint8 array of shape (H, W) or (H, W, C).

    Raises:
        InvalidImageError: If the input cannot be decoded.
    """
    if isinstance(image, str):
        image = decode_data_url(image)

    if isinstance(image, (bytes, bytearray)):
        if len(image) == 0:
            raise InvalidImageError("empty byte string", input_type="bytes")
        buffer = np.frombuffer(bytes(image), dtype=np.uint8)
        decoded = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if decoded is None:
            raise InvalidImageError(
                "bytes are not a supported image format", input_type="bytes"
            )
        logger.debug(f"Decoded {len(image)} bytes into image {decoded.shape}")
        image = decoded

    if not isinstance(image, np.ndarray):
        raise InvalidImageError(
            f"unsupported input type {type(image).__name__}",
            input_type=type(image).__name__,
        )

    try:
        return ImageBuffer(data=image).to_numpy()
    except ValidationError as e:
        raise InvalidImageError(str(e.errors()[0]["msg"]), input_type="ndarray") from e
