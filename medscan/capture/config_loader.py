"""Configuration loader with Pydantic validation for the capture controller.

This module provides type-safe configuration loading from YAML files using
Pydantic models for validation and default values.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator


class RetryConfig(BaseModel):
    """Retry budgets of the capture loop.

    Attributes:
        max_validation_attempts: Validation failures before manual confirmation
        max_no_label_attempts: No-label timeouts before manual confirmation
    """

    max_validation_attempts: int = Field(default=3, ge=1)
    max_no_label_attempts: int = Field(default=3, ge=1)


class TimingConfig(BaseModel):
    """Timers of the capture loop, in seconds.

    Attributes:
        no_label_window_s: Auto-capture window without readable text before
            the attempt counts as "no label detected"
        recognition_timeout_s: Hard cap on a single recognition call
        min_attempt_interval_s: Minimum spacing of auto-capture attempts
    """

    no_label_window_s: float = Field(default=30.0, gt=0.0)
    recognition_timeout_s: float = Field(default=10.0, gt=0.0)
    min_attempt_interval_s: float = Field(default=2.0, ge=0.0)


class TimelinessConfig(BaseModel):
    """Dose timeliness windows, in minutes after the scheduled time.

    Attributes:
        on_time_minutes: Verified within this many minutes → on time
        late_minutes: Verified within this many minutes → late, else missed
    """

    on_time_minutes: int = Field(default=60, ge=0)
    late_minutes: int = Field(default=120, ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "TimelinessConfig":
        if self.late_minutes < self.on_time_minutes:
            raise ValueError(
                f"late_minutes ({self.late_minutes}) must be >= "
                f"on_time_minutes ({self.on_time_minutes})"
            )
        return self


class CaptureModuleConfig(BaseModel):
    """Complete capture module configuration.

    Attributes:
        retry: Retry budgets
        timing: Loop timers
        timeliness: Dose timeliness windows
    """

    retry: RetryConfig = RetryConfig()
    timing: TimingConfig = TimingConfig()
    timeliness: TimelinessConfig = TimelinessConfig()


class Config(BaseModel):
    """Root configuration container.

    Attributes:
        capture: Capture module configuration
    """

    capture: CaptureModuleConfig = CaptureModuleConfig()


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

    if "capture" in config_dict:
        config_dict = config_dict["capture"] or {}

    return Config(capture=CaptureModuleConfig(**config_dict))


def get_default_config() -> Config:
    """Get default configuration from bundled config.yaml file.

    Returns:
        Config object loaded from medscan/capture/config.yaml
    """
    default_config_path = Path(__file__).parent / "config.yaml"
    if default_config_path.exists():
        return load_config(default_config_path)
    else:
        return Config()
