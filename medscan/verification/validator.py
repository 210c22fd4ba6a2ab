"""Required-field policy over per-field match results.

Every comparable field is matched, but only the required ones decide the
verdict. By default those are the patient name and the scheduled time, the
two mismatches with safety consequences (wrong person, wrong moment). The
medication name and dosage still count towards the displayed score and the
confidence, since stylized packaging fonts make them the most frequently
misread fields.
"""

import logging
from typing import List, Optional

import numpy as np

from .config_loader import VerificationModuleConfig
from .matcher import FieldMatcher
from .normalizer import TextNormalizer
from .types import ExpectedLabel, ExtractedLabel, FieldKind, FieldMatchResult, ValidationVerdict

logger = logging.getLogger(__name__)


class LabelValidator:
    """Aggregates field matches into a pass/fail verdict.

    Args:
        config: Verification module configuration (matcher thresholds and
            required fields).
        matcher: Optional pre-built matcher; built from ``config`` if None.

    Example:
        >>> validator = LabelValidator()
        >>> verdict = validator.validate(extracted, expected)
        >>> verdict.is_valid, verdict.passed_checks, verdict.required_checks
        (True, 2, 2)
    """

    def __init__(
        self,
        config: Optional[VerificationModuleConfig] = None,
        matcher: Optional[FieldMatcher] = None,
    ):
        self.config = config or VerificationModuleConfig()
        self.required_fields: List[FieldKind] = list(self.config.validator.required_fields)
        self.matcher = matcher or FieldMatcher(
            config=self.config.matcher,
            normalizer=TextNormalizer(self.config.normalizer),
        )

    def validate(self, extracted: ExtractedLabel, expected: ExpectedLabel) -> ValidationVerdict:
        """Validate extracted fields against the expected record.

        Args:
            extracted: Fields parsed from the label
            expected: What the label should say

        Returns:
            ValidationVerdict; ``is_valid`` only when every required field passed
        """
        results: List[FieldMatchResult] = [
            self.matcher.match_any(expected.value_for(kind), extracted.candidates_for(kind), kind)
            for kind in FieldKind
        ]

        matches = {result.field: result.passed for result in results}
        passed_checks = sum(1 for kind in self.required_fields if matches[kind])
        required_checks = len(self.required_fields)
        is_valid = passed_checks == required_checks

        verdict = ValidationVerdict(
            is_valid=is_valid,
            matches=matches,
            score=sum(1 for passed in matches.values() if passed),
            confidence=float(np.mean([result.score for result in results])),
            required_checks=required_checks,
            passed_checks=passed_checks,
            results=results,
        )

        failed = [kind.value for kind in verdict.failed_fields()]
        if is_valid:
            logger.debug(f"Label valid ({verdict.score}/{len(results)} fields matched)")
        else:
            # Field names only; values may identify the patient
            logger.info(
                f"Label invalid: {passed_checks}/{required_checks} required fields passed, "
                f"mismatched fields: {failed}"
            )
        return verdict
