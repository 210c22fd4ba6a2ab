"""Recognition capability: image in, text plus confidence out.

This module wraps the OCR engine behind a small protocol so the verification
pipeline and capture controller never depend on a specific engine.

Core Components:
    - types: OCRReading (immutable text + confidence)
    - config_loader: Configuration loading with Pydantic validation
    - image_io: Decoding of bytes / data URLs / arrays
    - preprocessing: Grayscale, upscaling and contrast enhancement
    - engine: Recognizer protocol and factory
    - engine_rapidocr: RapidOCR-backed recognizer

Example:
    >>> from medscan.ocr import create_recognizer
    >>> recognizer = create_recognizer()
    >>> reading = recognizer.recognize(image_bytes)
    >>> print(reading.text)
"""

from .config_loader import (
    Config,
    OCREngineConfig,
    OCRModuleConfig,
    PreprocessingConfig,
    get_default_config,
    load_config,
)
from .engine import Recognizer, create_recognizer
from .engine_rapidocr import RapidOCRRecognizer
from .image_io import decode_data_url, decode_image
from .preprocessing import preprocess, to_grayscale
from .types import OCRReading

__all__ = [
    # Types
    "OCRReading",
    # Configuration
    "Config",
    "OCRModuleConfig",
    "OCREngineConfig",
    "PreprocessingConfig",
    "load_config",
    "get_default_config",
    # Engines
    "Recognizer",
    "RapidOCRRecognizer",
    "create_recognizer",
    # Image handling
    "decode_image",
    "decode_data_url",
    "preprocess",
    "to_grayscale",
]
