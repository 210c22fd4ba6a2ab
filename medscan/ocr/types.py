"""Type definitions for the recognition capability.

The recognition capability turns one photograph into text plus a confidence
score. Everything downstream (extraction, matching, validation) consumes the
immutable OCRReading defined here.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class OCRReading:
    """Text recognized from one capture attempt.

    Attributes:
        text: Recognized text, one label line per text line.
        confidence: Engine confidence in [0.0, 1.0].

    Raises:
        ValueError: If confidence is outside [0.0, 1.0].
    """

    text: str
    confidence: float

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"Confidence must be in [0.0, 1.0], got {self.confidence}"
            )

    @property
    def has_text(self) -> bool:
        """Check if the reading carries any non-whitespace text."""
        return bool(self.text and self.text.strip())

    @classmethod
    def empty(cls) -> "OCRReading":
        """Reading produced when no text could be recognized."""
        return cls(text="", confidence=0.0)

    @classmethod
    def from_engine(cls, text: str, confidence: float) -> "OCRReading":
        """Build a reading from raw engine output.

        Engines such as Tesseract report confidence on a 0-100 scale; values
        above 1.0 are rescaled. The result is clamped to [0.0, 1.0].

        Example:
            >>> OCRReading.from_engine("LISINOPRIL 10MG", 87.0).confidence
            0.87
        """
        score = float(confidence)
        if score > 1.0:
            score = score / 100.0
        score = min(max(score, 0.0), 1.0)
        return cls(text=text or "", confidence=score)
