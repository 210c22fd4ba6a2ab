"""Configuration loader with Pydantic validation for the recognition module.

This module provides type-safe configuration loading from YAML files using
Pydantic models for validation and default values.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class OCREngineConfig(BaseModel):
    """OCR engine configuration.

    Attributes:
        type: Engine type (currently only "rapidocr" supported)
        use_angle_cls: Enable angle classification for rotated text
        use_gpu: Use GPU acceleration if available
        text_score: Minimum text detection confidence (0.0-1.0)
        lang: Language code for OCR model
        det_db_box_thresh: Detection box filtering threshold (0.0-1.0)
        det_db_thresh: Detection threshold (0.0-1.0)
        det_limit_side_len: Maximum side length for detection image
    """

    type: str = "rapidocr"
    use_angle_cls: bool = True
    use_gpu: bool = False
    text_score: float = Field(default=0.5, ge=0.0, le=1.0)
    lang: str = "en"
    det_db_box_thresh: float = Field(default=0.5, ge=0.0, le=1.0)
    det_db_thresh: float = Field(default=0.3, ge=0.0, le=1.0)
    det_limit_side_len: int = Field(default=1280, gt=0)


class PreprocessingConfig(BaseModel):
    """Preprocessing configuration.

    Label photos come from phone cameras, so they are usually large, color,
    and unevenly lit. Preprocessing converts to grayscale and optionally
    upscales small crops and boosts local contrast.

    Attributes:
        grayscale: Convert color frames to grayscale before OCR
        min_height: Minimum height for OCR (resize smaller images)
        auto_resize: Enable automatic resize for small images
        enable_clahe: Enable CLAHE contrast enhancement
        clahe_clip_limit: CLAHE clip limit parameter
        clahe_tile_size: CLAHE tile grid size
    """

    grayscale: bool = True
    min_height: int = Field(default=480, gt=0)
    auto_resize: bool = True
    enable_clahe: bool = False
    clahe_clip_limit: float = Field(default=2.0, gt=0.0)
    clahe_tile_size: int = Field(default=8, gt=0)


class OCRModuleConfig(BaseModel):
    """Complete recognition module configuration.

    Attributes:
        engine: OCR engine configuration
        preprocessing: Image preprocessing configuration
    """

    engine: OCREngineConfig = OCREngineConfig()
    preprocessing: PreprocessingConfig = PreprocessingConfig()


class Config(BaseModel):
    """Root configuration container.

    Attributes:
        ocr: Recognition module configuration
    """

    ocr: OCRModuleConfig = OCRModuleConfig()


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
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_dict = yaml.safe_load(f) or {}

    # Accept both the flat layout and one nested under an 'ocr' key
    if "ocr" in config_dict:
        config_dict = config_dict["ocr"] or {}

    return Config(ocr=OCRModuleConfig(**config_dict))


def get_default_config() -> Config:
    """Get default configuration from bundled config.yaml file.

    Returns:
        Config object loaded from medscan/ocr/config.yaml
    """
    default_config_path = Path(__file__).parent / "config.yaml"
    if default_config_path.exists():
        return load_config(default_config_path)
    else:
        return Config()
