"""Structured field extraction from OCR label text.

The extractor scans the recognized text line by line and applies, for each
target field, an ordered list of rules. The first rule that matches wins; if
none matches the field stays None. Rule priority per field:

- **patient_name**
    1. Keyword-anchored line ("Patient:", "Name:", "Pt:", "For:")
    2. "Last, First" line made of name-shaped words
    3. First line of 2-3 alphabetic words with no stop word
- **dosage**
    1. Keyword-anchored line ("Strength:", "Dose:", "Dosage:")
    2. Every "<number><unit>" occurrence (mg, mcg, ml, g, units, iu, %)
- **medication_name**
    1. Keyword-anchored line ("Rx:", "Drug:", "Medication:")
    2. Known medication names from configuration
    3. Words preceding a dosage on the same line
- **printed_time**
    1. Keyword-anchored line ("Take at", "Time:")
    2. "H:MM" with an am/pm marker
    3. Bare 24-hour "HH:MM"
- **instructions / pharmacy / prescriber**: keyword-anchored lines

Each line first has its OCR confusions corrected ("J0HN D0E" → "JOHN DOE",
"9:0O AM" → "9:00 AM"), keeping case and punctuation.

Patient names printed "Last, First" are returned as "First Last" so either
label order compares the same way. Times are rendered canonically
("9:00 AM", or "21:00" without a marker).

Extraction never raises; the label confidence is the OCR confidence.

Example:
    >>> extractor = FieldExtractor()
    >>> label = extractor.extract(OCRReading("DOE, JOHN\\nLISINOPRIL 10MG\\n9:00AM", 0.9))
    >>> label.patient_name, label.medication_name, label.dosage, label.printed_time
    ('JOHN DOE', 'LISINOPRIL', '10MG', '9:00 AM')
"""

import logging
import re
from typing import List, Optional, Pattern, Tuple

from medscan.ocr.types import OCRReading

from .config_loader import ExtractorConfig
from .normalizer import TextNormalizer, swap_name_order
from .types import ExtractedLabel

logger = logging.getLogger(__name__)

# Words that never belong to a patient name
NAME_STOPWORDS = frozenset(
    {
        "pharmacy", "doctor", "dr", "medication", "prescription", "rx", "qty",
        "quantity", "lot", "exp", "refill", "refills", "mg", "ml", "mcg",
        "tablet", "tablets", "tab", "tabs", "capsule", "capsules", "cap", "pill",
        "pills", "dose", "dosage", "strength", "date", "time", "warning", "product",
        "take", "by", "mouth", "daily", "once", "twice", "with", "food", "water",
        "morning", "evening", "noon", "bedtime", "night", "am", "pm", "oral",
        "generic", "brand", "for", "patient", "name", "store", "keep", "use",
        "january", "february", "march", "april", "may", "june", "july",
        "august", "september", "october", "november", "december",
        "hcl", "er", "xr", "sr", "ec", "adult", "low", "extended", "release",
    }
)

_NAME_WORD = r"[A-Za-z][A-Za-z'\-]+"
_NAME_GROUP = rf"{_NAME_WORD}(?:\s+{_NAME_WORD})*"

_PATIENT_KEYWORD = re.compile(
    r"^\s*(?:patient(?:\s+name)?|name|pt|for)\s*[:\-]\s*(?P<value>.+?)\s*$",
    re.IGNORECASE,
)
_LAST_FIRST = re.compile(
    rf"^\s*(?P<last>{_NAME_GROUP})\s*,\s*(?P<first>{_NAME_GROUP})\s*$"
)
_DOSAGE_KEYWORD = re.compile(
    r"^\s*(?:strength|dose|dosage)\s*[:\-]\s*(?P<value>.+?)\s*$", re.IGNORECASE
)
_MEDICATION_KEYWORD = re.compile(
    r"^\s*(?:rx|drug|medication|med)\s*[:#\-]\s*(?P<value>.+?)\s*$", re.IGNORECASE
)
_TIME_KEYWORD = re.compile(
    r"^\s*(?:take\s+at|time|scheduled)\s*[:\-]?\s*(?P<value>.+?)\s*$", re.IGNORECASE
)
_TIME_MERIDIEM = re.compile(
    r"(?<!\d)(?P<hour>\d{1,2})\s*[:.]\s*(?P<minute>\d{2})\s*(?P<meridiem>[ap])\.?\s*m\b\.?",
    re.IGNORECASE,
)
_TIME_24H = re.compile(r"(?<!\d)(?P<hour>[01]?\d|2[0-3]):(?P<minute>[0-5]\d)(?!\d)")
_INSTRUCTIONS = re.compile(r"^\s*(?:take|use|apply|sig\s*:)\b", re.IGNORECASE)
_PHARMACY = re.compile(r"\bpharmacy\b", re.IGNORECASE)
_PRESCRIBER = re.compile(
    r"^\s*(?:dr|prescriber|doctor)\b\.?\s*[:.]?\s*(?P<value>.+?)\s*$", re.IGNORECASE
)


class FieldExtractor:
    """Parses medication-label fields out of OCR text.

    Stateless after construction; safe to share across sessions.

    Args:
        config: Extraction configuration (known medications, units, stop words).
        normalizer: Corrects OCR confusions in each line before the rules run.
    """

    def __init__(
        self,
        config: Optional[ExtractorConfig] = None,
        normalizer: Optional[TextNormalizer] = None,
    ):
        self.config = config or ExtractorConfig()
        self.normalizer = normalizer or TextNormalizer()
        self.known_medications = sorted(
            {m.strip().lower() for m in self.config.known_medications if m.strip()},
            key=len,
            reverse=True,
        )
        self.label_words = NAME_STOPWORDS.union(
            w.lower() for w in self.config.extra_stopwords
        )
        # Drug names are never patient names either
        self.stopwords = self.label_words.union(
            w for m in self.known_medications for w in m.split()
        )
        self.dosage_pattern = self._build_dosage_pattern(self.config.dosage_units)

    def extract(self, ocr: OCRReading) -> ExtractedLabel:
        """Extract structured fields from one OCR reading.

        Args:
            ocr: Reading produced by the recognition capability.

        Returns:
            ExtractedLabel; fields that could not be located are None.
        """
        label = ExtractedLabel(confidence=ocr.confidence)
        lines = [
            self.normalizer.correct_line(line.strip())
            for line in (ocr.text or "").splitlines()
            if line.strip()
        ]
        if not lines:
            return label

        label.dosages = self._extract_dosages(lines)
        label.dosage = label.dosages[0] if label.dosages else None

        label.medication_names = self._extract_medication_names(lines)
        label.medication_name = (
            label.medication_names[0] if label.medication_names else None
        )

        label.patient_name = self._extract_patient_name(lines)
        label.printed_time = self._extract_time(lines)
        label.instructions = self._first_line_matching(lines, _INSTRUCTIONS)
        label.pharmacy = self._first_line_matching(lines, _PHARMACY)
        label.prescriber = self._extract_prescriber(lines)

        found = [
            name
            for name in ("patient_name", "medication_name", "dosage", "printed_time")
            if getattr(label, name)
        ]
        logger.debug(f"Extracted fields {found} from {len(lines)} lines")
        return label

    # ------------------------------------------------------------------
    # Patient name
    # ------------------------------------------------------------------

    def _extract_patient_name(self, lines: List[str]) -> Optional[str]:
        for line in lines:
            match = _PATIENT_KEYWORD.match(line)
            if match:
                return swap_name_order(match.group("value"))

        for line in lines:
            match = _LAST_FIRST.match(line)
            if match and self._is_name_shaped(f"{match.group('last')} {match.group('first')}"):
                return f"{match.group('first')} {match.group('last')}"

        for line in lines:
            if self._is_name_shaped(line):
                return " ".join(line.split())

        return None

    def _is_name_shaped(self, text: str) -> bool:
        """2-N alphabetic words, none of them a stop word."""
        words = text.split()
        if not 2 <= len(words) <= self.config.max_name_tokens:
            return False
        for word in words:
            if not re.fullmatch(_NAME_WORD, word):
                return False
            if word.lower().strip("'-") in self.stopwords:
                return False
        return True

    # ------------------------------------------------------------------
    # Dosage and medication name
    # ------------------------------------------------------------------

    @staticmethod
    def _build_dosage_pattern(units: List[str]) -> Pattern:
        alternatives = "|".join(
            re.escape(u) for u in sorted({u.lower() for u in units}, key=len, reverse=True)
        )
        return re.compile(
            rf"(?<![\w.])(?P<amount>\d+(?:[.,]\d+)?)\s*(?P<unit>{alternatives})(?!\w)",
            re.IGNORECASE,
        )

    def _dosage_spans(self, line: str) -> List[Tuple[int, str]]:
        return [
            (m.start(), line[m.start() : m.end()]) for m in self.dosage_pattern.finditer(line)
        ]

    def _extract_dosages(self, lines: List[str]) -> List[str]:
        dosages: List[str] = []

        for line in lines:
            match = _DOSAGE_KEYWORD.match(line)
            if match:
                spans = self._dosage_spans(match.group("value"))
                dosages.append(spans[0][1] if spans else match.group("value"))
                break

        for line in lines:
            for _, text in self._dosage_spans(line):
                if text not in dosages:
                    dosages.append(text)

        return dosages

    def _extract_medication_names(self, lines: List[str]) -> List[str]:
        names: List[str] = []

        for line in lines:
            match = _MEDICATION_KEYWORD.match(line)
            if match:
                value = self.dosage_pattern.split(match.group("value"))[0].strip()
                # "Rx: 1234567" is a prescription number, not a drug
                if re.search(r"[A-Za-z]{3,}", value):
                    names.append(value)
                    break

        for line in lines:
            lowered = line.lower()
            for known in self.known_medications:
                index = _word_index(lowered, known)
                if index >= 0:
                    candidate = line[index : index + len(known)]
                    if candidate.lower() not in (n.lower() for n in names):
                        names.append(candidate)

        for line in lines:
            spans = self._dosage_spans(line)
            if not spans or _DOSAGE_KEYWORD.match(line) or _MEDICATION_KEYWORD.match(line):
                continue
            prefix = line[: spans[0][0]].strip(" :-,")
            words = [w.lower() for w in re.findall(r"[A-Za-z]{3,}", prefix)]
            if any(w not in self.label_words for w in words):
                if prefix.lower() not in (n.lower() for n in names):
                    names.append(prefix)

        return names

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def _extract_time(self, lines: List[str]) -> Optional[str]:
        for line in lines:
            match = _TIME_KEYWORD.match(line)
            if match:
                value = self._find_time(match.group("value"))
                if value:
                    return value

        for line in lines:
            match = _TIME_MERIDIEM.search(line)
            if match:
                return _format_time(match)

        for line in lines:
            match = _TIME_24H.search(line)
            if match:
                return _format_time(match)

        return None

    @staticmethod
    def _find_time(text: str) -> Optional[str]:
        match = _TIME_MERIDIEM.search(text) or _TIME_24H.search(text)
        return _format_time(match) if match else None

    # ------------------------------------------------------------------
    # Informational fields
    # ------------------------------------------------------------------

    @staticmethod
    def _first_line_matching(lines: List[str], pattern: Pattern) -> Optional[str]:
        for line in lines:
            if pattern.search(line):
                return line
        return None

    @staticmethod
    def _extract_prescriber(lines: List[str]) -> Optional[str]:
        for line in lines:
            match = _PRESCRIBER.match(line)
            if match and re.search(r"[A-Za-z]{2,}", match.group("value")):
                return swap_name_order(match.group("value"))
        return None


def _word_index(haystack: str, needle: str) -> int:
    """Index of ``needle`` in ``haystack`` on word boundaries, or -1."""
    match = re.search(rf"(?<!\w){re.escape(needle)}(?!\w)", haystack)
    return match.start() if match else -1


def _format_time(match: "re.Match") -> str:
    hour = int(match.group("hour"))
    minute = match.group("minute")
    groups = match.groupdict()
    meridiem = groups.get("meridiem")
    if meridiem:
        return f"{hour}:{minute} {meridiem.upper()}M"
    return f"{hour}:{minute}"
