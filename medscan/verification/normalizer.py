"""Text canonicalization for label comparison.

Raw OCR text and expected field values are both normalized before they are
compared, so that case, spacing, punctuation and common OCR misreads do not
decide a match:

1. **Case folding**: everything is lower-cased
2. **Punctuation**: every character that is neither alphanumeric nor
   whitespace becomes a space ("Doe, John" → "doe john", "9:00" → "9 00")
3. **Whitespace**: runs collapse to a single space, ends are trimmed
4. **OCR confusion**: digit/letter look-alikes are corrected per token,
   depending on whether the token reads as a number or a word:

   - Numeric context (a digit plus only look-alike letters): O→0, I/L→1,
     S→5, B→8. Example: "1o" → "10".
   - Alphabetic context (a real letter present, only look-alike digits, and a
     digit following a letter): 0→O, 1→I, 5→S, 8→B. Example: "j0hn" → "john".
     Tokens that start with digits ("10mg") are left alone.

The transformation is idempotent: after one pass a numeric-context token is
all digits and an alphabetic-context token has no digits left, so neither
rule can fire again.

Example:
    >>> normalizer = TextNormalizer()
    >>> normalizer.normalize("  D0E,  J0HN ")
    'doe john'
    >>> normalizer.normalize("9:0O AM")
    '9 00 am'
"""

import re
from functools import lru_cache
from typing import List, Optional

from .config_loader import NormalizerConfig

_NON_ALNUM = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")
_WORD_RUN = re.compile(r"[^\W_]+")


class TextNormalizer:
    """Canonicalizes OCR text and field values for comparison.

    Pure and stateless after construction; one instance can be shared across
    sessions and threads.

    Args:
        config: Normalizer configuration with confusion tables.
    """

    def __init__(self, config: Optional[NormalizerConfig] = None):
        self.config = config or NormalizerConfig()
        self.to_letter = self.config.to_letter
        self.to_digit = self.config.to_digit

    def normalize(self, raw: Optional[str]) -> str:
        """Normalize a string for comparison. Never raises.

        Args:
            raw: Any text (None is treated as empty).

        Returns:
            Lower-case, punctuation-free, single-spaced text with OCR
            confusions corrected. Empty string for empty input.
        """
        if not raw:
            return ""

        text = _NON_ALNUM.sub(" ", str(raw).lower())
        text = _WHITESPACE.sub(" ", text).strip()
        if not text:
            return ""

        if not self.config.enabled:
            return text

        return " ".join(self._correct_token(token) for token in text.split(" "))

    def correct_line(self, line: Optional[str]) -> str:
        """Correct OCR confusions in a label line, keeping case and punctuation.

        Each alphanumeric run is corrected like a normalized token. Letters
        replacing digits are upper-cased when the run is otherwise upper case.

        Example:
            >>> TextNormalizer().correct_line("J0HN D0E, 9:0O AM")
            'JOHN DOE, 9:00 AM'
        """
        if not line:
            return ""
        if not self.config.enabled:
            return line
        return _WORD_RUN.sub(lambda m: self._correct_run(m.group(0)), line)

    def tokens(self, raw: Optional[str]) -> List[str]:
        """Split normalized text into word tokens."""
        normalized = self.normalize(raw)
        return normalized.split(" ") if normalized else []

    def _correct_run(self, run: str) -> str:
        corrected = self._correct_token(run.lower())
        if len(corrected) != len(run):
            return run
        letters = [ch for ch in run if ch.isalpha()]
        upper = bool(letters) and all(ch.isupper() for ch in letters)
        return "".join(
            new.upper() if (old.isupper() or (old.isdigit() and upper)) else new
            for old, new in zip(run, corrected)
        )

    def _correct_token(self, token: str) -> str:
        """Apply context-dependent confusion correction to one token."""
        has_digit = any(ch.isdigit() for ch in token)
        if not has_digit:
            return token

        strong_letters = [
            ch for ch in token if ch.isalpha() and ch not in self.to_digit
        ]

        # Numeric context: digits plus look-alike letters only
        if not strong_letters:
            return "".join(self.to_digit.get(ch, ch) for ch in token)

        # Alphabetic context: every digit is a look-alike and one follows a letter
        digits = [ch for ch in token if ch.isdigit()]
        if all(ch in self.to_letter for ch in digits) and _digit_follows_letter(token):
            return "".join(self.to_letter.get(ch, ch) for ch in token)

        return token


def _digit_follows_letter(token: str) -> bool:
    return any(
        token[i].isdigit() and token[i - 1].isalpha() for i in range(1, len(token))
    )


def swap_name_order(name: Optional[str]) -> str:
    """Rewrite a "Last, First" name as "First Last".

    Names without a comma are returned stripped but otherwise unchanged.

    Example:
        >>> swap_name_order("Doe, John")
        'John Doe'
    """
    if not name:
        return ""
    if "," not in name:
        return name.strip()
    last, _, first = name.partition(",")
    return f"{first.strip()} {last.strip()}".strip()


@lru_cache(maxsize=1)
def _default_normalizer() -> TextNormalizer:
    return TextNormalizer()


def normalize(raw: Optional[str]) -> str:
    """Normalize text with the default confusion tables."""
    return _default_normalizer().normalize(raw)
