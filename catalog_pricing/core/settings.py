# catalog_pricing/core/settings.py
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupplierSuggestionSettings(BaseModel):
    """Weights and thresholds for supplier scoring. Weights must sum to 1."""

    price_weight: Decimal = Decimal("0.40")
    lead_time_weight: Decimal = Decimal("0.25")
    reliability_weight: Decimal = Decimal("0.20")
    trend_weight: Decimal = Decimal("0.15")

    low_confidence_threshold: Decimal = Field(default=Decimal("60"), ge=0, le=100)
    high_confidence_threshold: Decimal = Field(default=Decimal("80"), ge=0, le=100)

    min_data_points_for_trend: int = Field(default=3, ge=2)
    trend_analysis_period_days: int = Field(default=180, gt=0)
    cache_scores_duration_minutes: int = Field(default=5, ge=0)
    alert_score_difference_threshold: Decimal = Field(default=Decimal("10"), ge=0)

    @model_validator(mode="after")
    def _check_consistency(self) -> "SupplierSuggestionSettings":
        weights = (
            self.price_weight,
            self.lead_time_weight,
            self.reliability_weight,
            self.trend_weight,
        )
        if any(w < 0 for w in weights):
            raise ValueError("scoring weights must be non-negative")
        if abs(sum(weights) - Decimal("1")) > Decimal("0.001"):
            raise ValueError(f"scoring weights must sum to 1, got {sum(weights)}")
        if self.low_confidence_threshold > self.high_confidence_threshold:
            raise ValueError("low_confidence_threshold must not exceed high_confidence_threshold")
        return self


class Settings(BaseSettings):
    # --- Database ---
    DATABASE_URL: str = "sqlite:///./catalog_pricing.db"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # --- Prices ---
    MAX_PRICE: Decimal = Decimal("999999.99")
    DEFAULT_CURRENCY: str = "EUR"
    SUPPORTED_CURRENCIES: list[str] = ["EUR", "USD", "GBP", "CHF"]
    UPDATE_FROM_PURCHASES_DEFAULT_DAYS: int = 90

    # --- Supplier suggestions ---
    SUPPLIER_SUGGESTION: SupplierSuggestionSettings = SupplierSuggestionSettings()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Re-read environment/.env; services built afterwards pick up the new values."""
    global _settings
    _settings = Settings()
    return _settings
