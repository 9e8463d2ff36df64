"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Haven CAT Engine"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CAT test length. NCLEX-RN administers between 60 and 145 scored items;
    # both bounds are per-session defaults and may be overridden at start.
    CAT_MIN_QUESTIONS: int = Field(
        default=60,
        ge=1,
        description="Minimum items before any precision-based stop (>= 1)",
    )
    CAT_MAX_QUESTIONS: int = Field(
        default=145,
        ge=1,
        description="Maximum items; reaching it always stops the test (>= 1)",
    )
    CAT_TIME_LIMIT_SECONDS: int = Field(
        default=18000,
        gt=0,
        description="Total answering time allowed per session (5 hours)",
    )

    # Passing standard and precision targets (logit scale)
    CAT_PASSING_THETA: float = Field(
        default=0.0,
        ge=-4.0,
        le=4.0,
        description="Calibrated cut score separating pass from fail",
    )
    CAT_SE_THRESHOLD: float = Field(
        default=0.30,
        gt=0.0,
        le=1.0,
        description="Stop once SE(theta) falls below this value (0, 1]",
    )
    CAT_CONFIDENCE_Z: float = Field(
        default=1.96,
        gt=0.0,
        description="z multiplier for the confidence interval stopping rule",
    )

    # Ability estimation
    CAT_ESTIMATION_METHOD: Literal["eap", "mle"] = "eap"
    CAT_PRIOR_MEAN: float = Field(default=0.0, ge=-4.0, le=4.0)
    CAT_PRIOR_SD: float = Field(default=1.0, gt=0.0)

    # Item selection: randomesque exposure control and content balancing
    CAT_RANDOMESQUE_K: int = Field(
        default=5,
        ge=1,
        description="Select uniformly among the top-K most informative items",
    )
    CAT_CONTENT_BOOST_FLOOR: float = Field(
        default=0.5,
        ge=0.0,
        description="Smallest information multiplier for over-represented categories",
    )
    CAT_CONTENT_BOOST_CEILING: float = Field(
        default=1.5,
        ge=1.0,
        le=3.0,
        description="Information multiplier for a category with no items yet",
    )
    CAT_CONTENT_BOOST_SLOPE: float = Field(
        default=2.0,
        ge=0.0,
        description="Boost reduction per unit of category share",
    )
    CAT_EXPOSURE_ALERT_THRESHOLD: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Exposure rate above which an item is logged as overexposed",
    )

    # Item bank: optional JSON file of calibrated items loaded at startup
    CAT_ITEM_BANK_PATH: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_question_bounds(self) -> Self:
        """Validate that the minimum test length does not exceed the maximum."""
        if self.CAT_MIN_QUESTIONS > self.CAT_MAX_QUESTIONS:
            raise ValueError(
                f"CAT_MIN_QUESTIONS ({self.CAT_MIN_QUESTIONS}) must not exceed "
                f"CAT_MAX_QUESTIONS ({self.CAT_MAX_QUESTIONS})"
            )
        return self

    @model_validator(mode="after")
    def validate_content_boost(self) -> Self:
        """Validate that the content balancing floor is below the ceiling."""
        if self.CAT_CONTENT_BOOST_FLOOR > self.CAT_CONTENT_BOOST_CEILING:
            raise ValueError(
                f"CAT_CONTENT_BOOST_FLOOR ({self.CAT_CONTENT_BOOST_FLOOR}) must not "
                f"exceed CAT_CONTENT_BOOST_CEILING ({self.CAT_CONTENT_BOOST_CEILING})"
            )
        return self


settings = Settings()
