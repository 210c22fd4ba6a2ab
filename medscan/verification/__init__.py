"""Label verification: does the photographed label match the expected record?

This module turns an OCR reading into structured fields and compares them
with the expected patient, medication and scheduled time.

Core Components:
    - types: Data structures (ExtractedLabel, ExpectedLabel, ValidationVerdict, etc.)
    - config_loader: Configuration loading with Pydantic validation
    - normalizer: Case, punctuation and OCR-confusion canonicalization
    - extractor: Rule-based field extraction from label text
    - matcher: Scored field comparison ladder
    - validator: Required-field policy and verdict aggregation
    - processor: Staged verifier producing a LabelCheckResult

Example:
    >>> from medscan.verification import ExpectedLabel, LabelVerifier
    >>> verifier = LabelVerifier()
    >>> result = verifier.verify(reading, ExpectedLabel("Lisinopril", "10mg", "Doe, John", "9:00 AM"))
    >>> if result.is_pass():
    ...     print(f"Verified ({result.verdict.score}/4 fields)")
"""

from .config_loader import (
    Config,
    ExtractorConfig,
    MatcherConfig,
    NormalizerConfig,
    ValidatorConfig,
    VerificationModuleConfig,
    get_default_config,
    load_config,
)
from .extractor import FieldExtractor
from .matcher import (
    FieldMatcher,
    contains_words,
    leading_amount,
    minutes_after_midnight,
    token_overlap,
)
from .normalizer import TextNormalizer, normalize, swap_name_order
from .processor import LabelVerifier
from .types import (
    DecisionStatus,
    ExpectedLabel,
    ExtractedLabel,
    FieldKind,
    FieldMatchResult,
    LabelCheckResult,
    MatchMethod,
    RejectionReason,
    ValidationVerdict,
)
from .validator import LabelValidator

__all__ = [
    # Types
    "FieldKind",
    "MatchMethod",
    "DecisionStatus",
    "RejectionReason",
    "ExtractedLabel",
    "ExpectedLabel",
    "FieldMatchResult",
    "ValidationVerdict",
    "LabelCheckResult",
    # Configuration
    "Config",
    "VerificationModuleConfig",
    "NormalizerConfig",
    "ExtractorConfig",
    "MatcherConfig",
    "ValidatorConfig",
    "load_config",
    "get_default_config",
    # Pipeline
    "TextNormalizer",
    "normalize",
    "swap_name_order",
    "FieldExtractor",
    "FieldMatcher",
    "contains_words",
    "token_overlap",
    "leading_amount",
    "minutes_after_midnight",
    "LabelValidator",
    "LabelVerifier",
]
