"""Scored comparison of one expected field against extracted label text.

Both sides are normalized (see normalizer.py) and then run down a fixed
ladder. The first rung that succeeds decides the result:

1. Exact equality                                   → score 1.0, pass
2. Expected words appear, in order, in extracted    → score 0.9, pass
3. Token-set overlap (Jaccard) >= 0.6               → score = overlap, pass
4. Dosage/time only: numeric values agree           → score 0.8, pass
   (both sides numeric but different               → fail)
5. Levenshtein similarity (1 - distance / max_len)  → pass if >= 0.75

Rung 5 always produces a score, so a failed match still reports how close it
was. An empty expected or extracted value is an automatic failure.

Substrings are matched on whole words, so "1:00 PM" is not found in
"11:00 PM" and "Lee, Ann" is not found in "JOANN LEEDS".

Numeric agreement means the leading amount for dosages ("10 mg" == "10MG"
== "10"), and the clock time for times. Times carrying an am/pm marker are
converted to minutes after midnight; unmarked times are read as 24-hour, so
"21:00" agrees with "9:00 PM". A dosage or time whose numbers disagree fails
right after rung 1, before the word rungs can accept it, so "9:00 PM"
never passes against "9:00" on shared tokens.

Schedule drift and lateness are not decided here; only the printed time
token is compared.

Example:
    >>> matcher = FieldMatcher()
    >>> matcher.match("Doe, John", "JOHN DOE", FieldKind.PATIENT_NAME).score
    1.0
    >>> matcher.match("10mg", "LISINOPRIL 10 MG TABLET", FieldKind.DOSAGE).method
    <MatchMethod.NUMERIC: 'numeric'>
"""

import logging
import re
from typing import Iterable, List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from .config_loader import MatcherConfig
from .normalizer import TextNormalizer, swap_name_order
from .types import FieldKind, FieldMatchResult, MatchMethod

logger = logging.getLogger(__name__)

_AMOUNT = re.compile(r"\d+(?:[.,]\d+)?")
_CLOCK = re.compile(
    r"(?<!\d)(?P<hour>\d{1,2})(?:\s*[:.]\s*(?P<minute>\d{2}))?"
    r"(?:\s*(?P<meridiem>[ap])\.?\s*m\b)?",
    re.IGNORECASE,
)


class FieldMatcher:
    """Compares expected field values against extracted label text.

    Stateless after construction; safe to share across sessions.

    Args:
        config: Matching ladder scores and thresholds.
        normalizer: Text normalizer applied to both sides.
    """

    def __init__(
        self,
        config: Optional[MatcherConfig] = None,
        normalizer: Optional[TextNormalizer] = None,
    ):
        self.config = config or MatcherConfig()
        self.normalizer = normalizer or TextNormalizer()

    def match(
        self, expected: Optional[str], extracted_text: Optional[str], field: FieldKind
    ) -> FieldMatchResult:
        """Score one expected value against extracted text.

        Args:
            expected: Value from the expected record.
            extracted_text: Extracted field value or any label text.
            field: Kind of field being compared.

        Returns:
            FieldMatchResult with pass/fail, score and deciding rung.
        """
        if field == FieldKind.PATIENT_NAME and expected and "," in expected:
            # Expected names arrive "Last, First"; labels print either order
            variants = [expected, swap_name_order(expected)]
            return _best(
                self._match_one(variant, extracted_text, field) for variant in variants
            )
        return self._match_one(expected, extracted_text, field)

    def match_any(
        self, expected: Optional[str], candidates: List[str], field: FieldKind
    ) -> FieldMatchResult:
        """Score an expected value against several candidates and keep the best.

        Args:
            expected: Value from the expected record.
            candidates: Extracted candidate values (may be empty).
            field: Kind of field being compared.

        Returns:
            Best FieldMatchResult; a MISSING failure when there are no candidates.
        """
        if not candidates:
            return FieldMatchResult(
                field=field, passed=False, score=0.0, method=MatchMethod.MISSING
            )
        return _best(self.match(expected, candidate, field) for candidate in candidates)

    def _match_one(
        self, expected: Optional[str], extracted_text: Optional[str], field: FieldKind
    ) -> FieldMatchResult:
        expected_norm = self.normalizer.normalize(expected)
        extracted_norm = self.normalizer.normalize(extracted_text)

        if not expected_norm or not extracted_norm:
            return FieldMatchResult(
                field=field, passed=False, score=0.0, method=MatchMethod.MISSING
            )

        # 1. Exact
        if expected_norm == extracted_norm:
            return FieldMatchResult(
                field=field, passed=True, score=1.0, method=MatchMethod.EXACT
            )

        has_numbers = False
        if field.is_short:
            expected_value, extracted_value = _numeric_values(expected, extracted_text, field)
            has_numbers = expected_value is not None and extracted_value is not None
            if has_numbers and expected_value != extracted_value:
                logger.debug(f"{field.value}: numeric values disagree")
                return FieldMatchResult(
                    field=field,
                    passed=False,
                    score=float(
                        Levenshtein.normalized_similarity(expected_norm, extracted_norm)
                    ),
                    method=MatchMethod.NUMERIC,
                )

        # 2. Substring on word boundaries (labels print extra words around the field)
        if contains_words(expected_norm, extracted_norm):
            return FieldMatchResult(
                field=field,
                passed=True,
                score=self.config.substring_score,
                method=MatchMethod.SUBSTRING,
            )

        # 3. Token-set overlap
        overlap = token_overlap(expected_norm, extracted_norm)
        if overlap >= self.config.token_overlap_threshold:
            return FieldMatchResult(
                field=field,
                passed=True,
                score=overlap,
                method=MatchMethod.TOKEN_OVERLAP,
            )

        similarity = float(Levenshtein.normalized_similarity(expected_norm, extracted_norm))

        # 4. Numeric token for short fields (values already known to agree)
        if field.is_short and has_numbers:
            return FieldMatchResult(
                field=field,
                passed=True,
                score=self.config.numeric_score,
                method=MatchMethod.NUMERIC,
            )

        # 5. Edit distance
        passed = similarity >= self.config.edit_distance_threshold
        logger.debug(
            f"{field.value}: edit-distance similarity {similarity:.2f} "
            f"({'pass' if passed else 'fail'})"
        )
        return FieldMatchResult(
            field=field,
            passed=passed,
            score=similarity,
            method=MatchMethod.EDIT_DISTANCE,
        )


def contains_words(needle: str, haystack: str) -> bool:
    """Check if the words of ``needle`` occur contiguously in ``haystack``.

    Example:
        >>> contains_words("1 00 pm", "11 00 pm")
        False
    """
    words = needle.split()
    text = haystack.split()
    if not words:
        return False
    return any(text[i : i + len(words)] == words for i in range(len(text) - len(words) + 1))


def token_overlap(a: str, b: str) -> float:
    """Jaccard overlap (intersection over union) of two word sets."""
    tokens_a = set(a.split())
    tokens_b = set(b.split())
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def leading_amount(text: Optional[str]) -> Optional[float]:
    """First numeric value in a string with units stripped ("10mg" → 10.0)."""
    if not text:
        return None
    match = _AMOUNT.search(text)
    if not match:
        return None
    return float(match.group(0).replace(",", "."))


def minutes_after_midnight(text: Optional[str]) -> Optional[int]:
    """Clock time in minutes after midnight, or None if no time is present.

    "9:00 AM" → 540, "9:00 PM" → 1260, "21:00" → 1260, "12:15 AM" → 15.
    """
    if not text:
        return None
    for match in _CLOCK.finditer(text):
        hour = int(match.group("hour"))
        minute = int(match.group("minute") or 0)
        meridiem = (match.group("meridiem") or "").lower()
        if match.group("minute") is None and not meridiem:
            continue  # A bare number is not a time
        if minute > 59:
            continue
        if meridiem:
            if not 1 <= hour <= 12:
                continue
            hour = hour % 12 + (12 if meridiem == "p" else 0)
        elif hour > 23:
            continue
        return hour * 60 + minute
    return None


def _numeric_values(
    expected: Optional[str], extracted: Optional[str], field: FieldKind
) -> Tuple[Optional[float], Optional[float]]:
    if field == FieldKind.TIME:
        return minutes_after_midnight(expected), minutes_after_midnight(extracted)
    return leading_amount(expected), leading_amount(extracted)


def _best(results: Iterable[FieldMatchResult]) -> FieldMatchResult:
    return max(results, key=lambda r: (r.passed, r.score))
