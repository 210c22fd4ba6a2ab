"""Recognition capability interface.

Any object with a ``recognize(image) -> OCRReading`` method can drive the
verification pipeline and the capture controller. The bundled implementation
is RapidOCRRecognizer; tests and alternative engines only need to satisfy the
Recognizer protocol.

Example:
    >>> class FixedRecognizer:
    ...     def recognize(self, image):
    ...         return OCRReading(text="JOHN DOE", confidence=0.9)
    >>> isinstance(FixedRecognizer(), Recognizer)
    True
"""

from typing import Protocol, runtime_checkable

from medscan.common.types import ImageInput

from .types import OCRReading


@runtime_checkable
class Recognizer(Protocol):
    """Image in, text plus confidence out.

    Implementations may raise; the capture controller treats any exception as
    "no text produced" for that attempt.
    """

    def recognize(self, image: ImageInput) -> OCRReading:
        ...


def create_recognizer(config=None) -> Recognizer:
    """Build the recognizer named by ``config.ocr.engine.type``.

    Args:
        config: Recognition module Config. Defaults to the bundled config.

    Returns:
        Recognizer instance (engine itself is lazy-loaded).

    Raises:
        ValueError: If the engine type is unknown.
    """
    from .config_loader import get_default_config
    from .engine_rapidocr import RapidOCRRecognizer

    if config is None:
        config = get_default_config()

    engine_type = config.ocr.engine.type.lower()
    if engine_type == "rapidocr":
        return RapidOCRRecognizer(config.ocr)

    raise ValueError(f"Unknown OCR engine type: '{engine_type}'")
