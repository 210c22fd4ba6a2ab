"""RapidOCR engine wrapper for medication-label recognition.

This module provides a high-level interface to RapidOCR (PaddleOCR ONNX backend)
that satisfies the Recognizer protocol. It handles:

- Engine initialization with custom parameters (lazy, on first use)
- Decoding of bytes / data URLs / arrays and preprocessing
- Reassembly of detected text regions into label lines
- Error handling and logging

Recognition errors never propagate: a failed call yields an empty reading,
which the capture controller counts as "no label detected".

Example:
    >>> from medscan.ocr import RapidOCRRecognizer, OCRModuleConfig
    >>> recognizer = RapidOCRRecognizer(OCRModuleConfig())
    >>> reading = recognizer.recognize(open("pouch.jpg", "rb").read())
    >>> print(reading.text, reading.confidence)
    'JOHN DOE\\nLISINOPRIL 10MG\\n9:00 AM' 0.91
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from medscan.common.types import ImageInput

from .config_loader import OCRModuleConfig
from .image_io import decode_image
from .preprocessing import preprocess
from .types import OCRReading

logger = logging.getLogger(__name__)

# (top, left, bottom, text, confidence) for one detected region
_Region = Tuple[float, float, float, str, float]


class RapidOCRRecognizer:
    """Wrapper for RapidOCR producing line-structured OCR readings.

    Args:
        config: Recognition module configuration (engine + preprocessing).

    Attributes:
        config: Module configuration instance.
        engine: RapidOCR engine instance (lazy-loaded).
    """

    def __init__(self, config: OCRModuleConfig):
        """Initialize recognizer wrapper.

        Note:
            The actual RapidOCR engine is lazy-loaded on first use to
            avoid initialization overhead if not needed.
        """
        self.config = config
        self._engine: Optional[object] = None

        logger.info(
            f"RapidOCRRecognizer initialized with config: "
            f"use_gpu={config.engine.use_gpu}, text_score={config.engine.text_score}"
        )

    @property
    def engine(self):
        """Lazy-load RapidOCR engine on first access.

        Raises:
            ImportError: If rapidocr_onnxruntime is not installed.
            RuntimeError: If engine initialization fails.
        """
        if self._engine is None:
            engine_config = self.config.engine
            try:
                from rapidocr_onnxruntime import RapidOCR

                self._engine = RapidOCR(
                    text_score=engine_config.text_score,
                    use_cls=engine_config.use_angle_cls,
                    det_use_cuda=engine_config.use_gpu,
                    det_box_thresh=engine_config.det_db_box_thresh,
                    det_thresh=engine_config.det_db_thresh,
                    det_limit_side_len=engine_config.det_limit_side_len,
                )
                logger.info(
                    f"RapidOCR engine loaded with parameters: "
                    f"text_score={engine_config.text_score}, "
                    f"det_limit_side_len={engine_config.det_limit_side_len}"
                )

            except ImportError as e:
                logger.error(
                    "Failed to import rapidocr_onnxruntime. "
                    "Install with: pip install rapidocr-onnxruntime"
                )
                raise ImportError(
                    "rapidocr-onnxruntime not installed. "
                    "Run: pip install rapidocr-onnxruntime"
                ) from e

            except Exception as e:
                logger.error(f"Failed to initialize RapidOCR engine: {e}")
                raise RuntimeError(f"RapidOCR initialization failed: {e}") from e

        return self._engine

    def recognize(self, image: ImageInput) -> OCRReading:
        """Recognize the text printed on a label photograph.

        Args:
            image: Decoded array, encoded bytes, or data URL.

        Returns:
            OCRReading with one line of text per printed label line and the
            mean region confidence. Empty reading if nothing was recognized.

        Raises:
            InvalidImageError: If the image cannot be decoded.
        """
        pixels = decode_image(image)
        prepared = preprocess(pixels, self.config.preprocessing)

        try:
            result = self.engine(prepared)
        except (ImportError, RuntimeError):
            raise
        except Exception as e:
            logger.error(f"OCR extraction failed: {e}", exc_info=True)
            return OCRReading.empty()

        # rapidocr_onnxruntime returns (detections, elapsed); detections is
        # None or a list of [box, text, score]
        detections = result[0] if isinstance(result, tuple) else result
        if not detections:
            logger.warning("RapidOCR returned no text detections")
            return OCRReading.empty()

        regions = self._to_regions(detections)
        if not regions:
            logger.warning("RapidOCR detections contained no usable text")
            return OCRReading.empty()

        lines = self._assemble_lines(regions)
        text = "\n".join(lines)
        confidence = float(np.mean([region[4] for region in regions]))

        logger.debug(
            f"OCR extraction successful: lines={len(lines)}, "
            f"regions={len(regions)}, confidence={confidence:.2f}"
        )
        return OCRReading.from_engine(text, confidence)

    def _to_regions(self, detections: Sequence) -> List[_Region]:
        """Convert RapidOCR detections to (top, left, bottom, text, score)."""
        regions: List[_Region] = []
        for detection in detections:
            if len(detection) < 3:
                logger.warning(f"Unexpected detection format: {detection}")
                continue
            box, text, score = detection[0], detection[1], detection[2]
            if not text or not str(text).strip():
                continue
            points = np.asarray(box, dtype=np.float32).reshape(-1, 2)
            regions.append(
                (
                    float(points[:, 1].min()),
                    float(points[:, 0].min()),
                    float(points[:, 1].max()),
                    str(text).strip(),
                    float(score),
                )
            )
        return regions

    def _assemble_lines(self, regions: List[_Region]) -> List[str]:
        """Group regions into printed lines, top-to-bottom then left-to-right.

        A region joins the current line when its vertical center falls inside
        the vertical span of the line's first region.
        """
        ordered = sorted(regions, key=lambda r: (r[0], r[1]))
        lines: List[List[_Region]] = []

        for region in ordered:
            center = (region[0] + region[2]) / 2.0
            if lines:
                anchor = lines[-1][0]
                if anchor[0] <= center <= anchor[2]:
                    lines[-1].append(region)
                    continue
            lines.append([region])

        return [
            " ".join(r[3] for r in sorted(line, key=lambda r: r[1])) for line in lines
        ]

    def is_available(self) -> bool:
        """Check if RapidOCR engine is available."""
        try:
            _ = self.engine
            return True
        except (ImportError, RuntimeError):
            return False
