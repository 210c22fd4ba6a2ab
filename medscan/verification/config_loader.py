"""Configuration loader with Pydantic validation for label verification.

This module provides type-safe configuration loading from YAML files using
Pydantic models for validation and default values.
"""

from pathlib import Path
from typing import Dict, List

import yaml
from pydantic import BaseModel, Field, field_validator

from .types import FieldKind


class NormalizerConfig(BaseModel):
    """OCR-confusion correction tables.

    Attributes:
        enabled: Enable context-aware confusion correction
        to_letter: Digit → letter substitutions used in alphabetic context
        to_digit: Letter → digit substitutions used in numeric context
    """

    enabled: bool = True
    to_letter: Dict[str, str] = {"0": "o", "1": "i", "5": "s", "8": "b"}
    to_digit: Dict[str, str] = {"o": "0", "i": "1", "l": "1", "s": "5", "b": "8"}

    @field_validator("to_letter")
    @classmethod
    def _validate_to_letter(cls, v: Dict[str, str]) -> Dict[str, str]:
        for digit, letter in v.items():
            if len(digit) != 1 or not digit.isdigit():
                raise ValueError(f"to_letter keys must be single digits, got '{digit}'")
            if len(letter) != 1 or not (letter.isalpha() and letter.islower()):
                raise ValueError(
                    f"to_letter values must be single lowercase letters, got '{letter}'"
                )
        return v

    @field_validator("to_digit")
    @classmethod
    def _validate_to_digit(cls, v: Dict[str, str]) -> Dict[str, str]:
        for letter, digit in v.items():
            if len(letter) != 1 or not (letter.isalpha() and letter.islower()):
                raise ValueError(
                    f"to_digit keys must be single lowercase letters, got '{letter}'"
                )
            if len(digit) != 1 or not digit.isdigit():
                raise ValueError(f"to_digit values must be single digits, got '{digit}'")
        return v


class ExtractorConfig(BaseModel):
    """Field extraction rules.

    Attributes:
        known_medications: Drug names recognized anywhere in the label text
        dosage_units: Units that mark a number as a dosage
        extra_stopwords: Words that never form part of a patient name
        max_name_tokens: Maximum tokens in a name-shaped line
    """

    known_medications: List[str] = [
        "aspirin",
        "lisinopril",
        "metformin",
        "atorvastatin",
        "amlodipine",
        "levothyroxine",
        "valacyclovir",
        "venlafaxine",
    ]
    dosage_units: List[str] = ["mcg", "mg", "ml", "g", "units", "unit", "iu", "%"]
    extra_stopwords: List[str] = []
    max_name_tokens: int = Field(default=3, ge=2)


class MatcherConfig(BaseModel):
    """Scores and cutoffs of the matching ladder.

    Attributes:
        substring_score: Score for expected-within-extracted matches
        token_overlap_threshold: Minimum Jaccard overlap to pass
        numeric_score: Score for numeric-token matches on short fields
        edit_distance_threshold: Minimum Levenshtein similarity to pass
    """

    substring_score: float = Field(default=0.9, ge=0.0, le=1.0)
    token_overlap_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    numeric_score: float = Field(default=0.8, ge=0.0, le=1.0)
    edit_distance_threshold: float = Field(default=0.75, ge=0.0, le=1.0)


class ValidatorConfig(BaseModel):
    """Required-field policy.

    Attributes:
        required_fields: Fields that must all match for a valid label
        min_ocr_confidence: Readings below this confidence are logged as
            low quality (informational only)
    """

    required_fields: List[FieldKind] = [FieldKind.PATIENT_NAME, FieldKind.TIME]
    min_ocr_confidence: float = Field(default=0.3, ge=0.0, le=1.0)

    @field_validator("required_fields")
    @classmethod
    def _validate_required(cls, v: List[FieldKind]) -> List[FieldKind]:
        if not v:
            raise ValueError("At least one required field must be configured")
        if len(set(v)) != len(v):
            raise ValueError("required_fields contains duplicates")
        return v


class VerificationModuleConfig(BaseModel):
    """Complete verification module configuration.

    Attributes:
        normalizer: OCR-confusion correction configuration
        extractor: Field extraction configuration
        matcher: Matching ladder configuration
        validator: Required-field policy
    """

    normalizer: NormalizerConfig = NormalizerConfig()
    extractor: ExtractorConfig = ExtractorConfig()
    matcher: MatcherConfig = MatcherConfig()
    validator: ValidatorConfig = ValidatorConfig()


class Config(BaseModel):
    """Root configuration container.

    Attributes:
        verification: Verification module configuration
    """

    verification: VerificationModuleConfig = VerificationModuleConfig()


def load_config(config_path: Path) -> Config:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated Config object with all settings

    Raises:
        FileNotFoundError: If config file does not exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If configuration validation fails

    Example:
        >>> config = load_config(Path("medscan/verification/config.yaml"))
        >>> print(config.verification.matcher.edit_distance_threshold)
        0.75
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_dict = yaml.safe_load(f) or {}

    if "verification" in config_dict:
        config_dict = config_dict["verification"] or {}

    return Config(verification=VerificationModuleConfig(**config_dict))


def get_default_config() -> Config:
    """Get default configuration from bundled config.yaml file.

    Returns:
        Config object loaded from medscan/verification/config.yaml
    """
    default_config_path = Path(__file__).parent / "config.yaml"
    if default_config_path.exists():
        return load_config(default_config_path)
    else:
        return Config()
