"""Image preprocessing applied before text recognition.

Steps (each controlled by PreprocessingConfig):
    1. Grayscale conversion
    2. Upscaling of small crops to a minimum height
    3. CLAHE contrast enhancement for unevenly lit pouches
"""

import logging

import cv2
import numpy as np

from .config_loader import PreprocessingConfig

logger = logging.getLogger(__name__)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert a BGR/BGRA/single-channel image to a 2D grayscale array."""
    if image.ndim == 2:
        return image
    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0]
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def preprocess(image: np.ndarray, config: PreprocessingConfig) -> np.ndarray:
    """Prepare a decoded label photograph for OCR.

    Args:
        image: Decoded uint8 image.
        config: Preprocessing configuration.

    Returns:
        Preprocessed image (grayscale when ``config.grayscale`` is set).
    """
    processed = to_grayscale(image) if config.grayscale else image

    h, w = processed.shape[:2]
    if config.auto_resize and h < config.min_height:
        # Keep aspect ratio; INTER_LINEAR is enough for upscaling text
        new_height = config.min_height
        new_width = int(round(new_height * (w / h)))
        processed = cv2.resize(
            processed, (new_width, new_height), interpolation=cv2.INTER_LINEAR
        )
        logger.debug(
            f"Resized image from {w}x{h} to {new_width}x{new_height} "
            f"(min_height={config.min_height}px)"
        )

    if config.enable_clahe and processed.ndim == 2:
        clahe = cv2.createCLAHE(
            clipLimit=config.clahe_clip_limit,
            tileGridSize=(config.clahe_tile_size, config.clahe_tile_size),
        )
        processed = clahe.apply(processed)
        logger.debug(
            f"Applied CLAHE (clip_limit={config.clahe_clip_limit}, "
            f"tile_size={config.clahe_tile_size})"
        )

    return processed
