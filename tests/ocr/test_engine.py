"""Unit tests for the RapidOCR recognizer and the recognizer factory."""

from unittest.mock import Mock, patch

import numpy as np
import pytest

from medscan.common.errors import InvalidImageError
from medscan.ocr.config_loader import Config, OCREngineConfig, OCRModuleConfig
from medscan.ocr.engine import Recognizer, create_recognizer
from medscan.ocr.engine_rapidocr import RapidOCRRecognizer
from medscan.ocr.types import OCRReading


def _box(left, top, right, bottom):
    return [[left, top], [right, top], [right, bottom], [left, bottom]]


@pytest.fixture
def default_config():
    """Provide default recognition module configuration."""
    return OCRModuleConfig(engine=OCREngineConfig(use_gpu=False))


@pytest.fixture
def recognizer(default_config):
    """Provide RapidOCRRecognizer instance (engine not loaded)."""
    return RapidOCRRecognizer(default_config)


@pytest.fixture
def mock_rapidocr_result():
    """Provide mock RapidOCR output: (detections, elapse)."""
    detections = [
        [_box(10, 10, 200, 40), "JOHN DOE", 0.9],
        [_box(220, 62, 300, 88), "10MG", 0.7],
        [_box(10, 60, 200, 90), "LISINOPRIL", 0.8],
        [_box(10, 110, 150, 140), "9:00 AM", 0.9],
    ]
    return detections, [0.01, 0.02, 0.03]


@pytest.fixture
def sample_image():
    """Provide sample grayscale image."""
    return np.random.randint(0, 255, (50, 200), dtype=np.uint8)


class TestRecognizerInitialization:
    """Test RapidOCRRecognizer initialization."""

    def test_initialization_with_config(self, default_config):
        """Test recognizer keeps its configuration."""
        recognizer = RapidOCRRecognizer(default_config)

        assert recognizer.config == default_config
        assert recognizer._engine is None  # Lazy-loaded

    def test_satisfies_protocol(self, recognizer):
        """Test the recognizer is a Recognizer."""
        assert isinstance(recognizer, Recognizer)


class TestEngineLazyLoading:
    """Test lazy loading of RapidOCR engine."""

    def test_engine_loaded_on_first_access(self, default_config):
        """Test engine is loaded on first property access."""
        with patch("rapidocr_onnxruntime.RapidOCR") as mock_rapid:
            recognizer = RapidOCRRecognizer(default_config)

            _ = recognizer.engine

            mock_rapid.assert_called_once()
            kwargs = mock_rapid.call_args.kwargs
            assert kwargs["text_score"] == 0.5
            assert kwargs["det_use_cuda"] is False

    def test_engine_loaded_only_once(self, default_config):
        """Test engine is loaded only once (cached)."""
        with patch("rapidocr_onnxruntime.RapidOCR") as mock_rapid:
            recognizer = RapidOCRRecognizer(default_config)

            _ = recognizer.engine
            _ = recognizer.engine

            mock_rapid.assert_called_once()

    def test_import_error_handling(self, default_config):
        """Test handling of rapidocr import error."""
        with patch.dict("sys.modules", {"rapidocr_onnxruntime": None}):
            recognizer = RapidOCRRecognizer(default_config)

            with pytest.raises(ImportError, match="rapidocr-onnxruntime not installed"):
                _ = recognizer.engine

            assert recognizer.is_available() is False

    def test_initialization_failure(self, default_config):
        """Test engine construction errors become RuntimeError."""
        with patch("rapidocr_onnxruntime.RapidOCR", side_effect=OSError("no model")):
            recognizer = RapidOCRRecognizer(default_config)

            with pytest.raises(RuntimeError, match="initialization failed"):
                _ = recognizer.engine


class TestRecognize:
    """Test recognition of label images."""

    def test_lines_reassembled(self, recognizer, sample_image, mock_rapidocr_result):
        """Test regions are grouped into lines top-to-bottom, left-to-right."""
        recognizer._engine = Mock(return_value=mock_rapidocr_result)

        reading = recognizer.recognize(sample_image)

        assert reading.text == "JOHN DOE\nLISINOPRIL 10MG\n9:00 AM"
        assert reading.confidence == pytest.approx((0.9 + 0.7 + 0.8 + 0.9) / 4)

    def test_engine_receives_preprocessed_image(self, recognizer, mock_rapidocr_result):
        """Test the engine gets a grayscale image resized to min_height."""
        recognizer._engine = Mock(return_value=mock_rapidocr_result)

        recognizer.recognize(np.zeros((120, 240, 3), dtype=np.uint8))

        prepared = recognizer._engine.call_args.args[0]
        assert prepared.ndim == 2
        assert prepared.shape[0] == 480

    def test_encoded_bytes_accepted(self, recognizer, sample_label_png, mock_rapidocr_result):
        """Test PNG bytes are decoded before recognition."""
        recognizer._engine = Mock(return_value=mock_rapidocr_result)

        reading = recognizer.recognize(sample_label_png)

        assert reading.has_text

    def test_no_detections(self, recognizer, sample_image):
        """Test an empty reading when nothing is detected."""
        recognizer._engine = Mock(return_value=(None, None))

        reading = recognizer.recognize(sample_image)

        assert reading == OCRReading.empty()

    def test_blank_detections_skipped(self, recognizer, sample_image):
        """Test regions without text are ignored."""
        recognizer._engine = Mock(return_value=([[_box(0, 0, 10, 10), "  ", 0.9]], None))

        assert recognizer.recognize(sample_image).has_text is False

    def test_engine_exception_returns_empty(self, recognizer, sample_image):
        """Test engine errors yield an empty reading."""
        recognizer._engine = Mock(side_effect=ValueError("onnx failure"))

        reading = recognizer.recognize(sample_image)

        assert reading.text == ""
        assert reading.confidence == 0.0

    def test_invalid_image_raises(self, recognizer):
        """Test undecodable input raises InvalidImageError."""
        recognizer._engine = Mock()

        with pytest.raises(InvalidImageError):
            recognizer.recognize(b"not an image")

        recognizer._engine.assert_not_called()


class TestCreateRecognizer:
    """Test the recognizer factory."""

    def test_default_is_rapidocr(self):
        """Test the bundled config builds a RapidOCR recognizer."""
        assert isinstance(create_recognizer(), RapidOCRRecognizer)

    def test_unknown_engine(self):
        """Test unknown engine types are rejected."""
        config = Config(ocr=OCRModuleConfig(engine=OCREngineConfig(type="tesseract")))

        with pytest.raises(ValueError, match="Unknown OCR engine type"):
            create_recognizer(config)

    def test_protocol_accepts_any_recognize_method(self):
        """Test duck-typed recognizers satisfy the protocol."""

        class FixedRecognizer:
            def recognize(self, image):
                return OCRReading(text="JOHN DOE", confidence=0.9)

        assert isinstance(FixedRecognizer(), Recognizer)
