"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding
(``COUNCIL_RISK__COOLDOWN_HOURS=12`` and so on).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

from .enums import SizingMethod, StopMethod


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class RiskConfig(BaseModel):
    """Risk gate limits. Fractions are of account equity."""

    model_config = {"frozen": True}

    max_risk_per_trade_pct: float = Field(default=0.01, gt=0.0, le=1.0)  # 1R
    max_portfolio_risk_r: float = Field(default=6.0, gt=0.0)
    max_sector_exposure_pct: float = Field(default=0.30, gt=0.0, le=1.0)
    cooldown_hours: float = Field(default=24.0, ge=0.0)
    sizing_method: SizingMethod = SizingMethod.FIXED_R
    stop_method: StopMethod = StopMethod.ATR
    stop_loss_pct: float = Field(default=0.05, gt=0.0, le=1.0)
    atr_multiplier: float = Field(default=2.0, gt=0.0)
    take_profit_r_multiple: float = Field(default=2.0, gt=0.0)
    kelly_cap: float = Field(default=0.25, gt=0.0, le=0.25)
    default_position_risk_pct: float = Field(default=0.10, gt=0.0, le=1.0)  # no stop
    low_consensus_threshold: float = Field(default=70.0, ge=0.0, le=100.0)
    low_consensus_scale: float = Field(default=0.7, gt=0.0, le=1.0)
    assumed_daily_volatility: float = Field(default=0.02, gt=0.0, le=1.0)
    history_size: int = Field(default=500, gt=0)


class PerformanceConfig(BaseModel):
    window_size: int = Field(default=30, gt=0)
    min_samples: int = Field(default=5, ge=0)
    min_multiplier: float = 0.5
    max_multiplier: float = 1.5
    hot_accuracy: float = 0.65
    cold_accuracy: float = 0.40

    @model_validator(mode="after")
    def _check_bounds(self) -> PerformanceConfig:
        if self.min_multiplier > self.max_multiplier:
            raise ValueError("min_multiplier must not exceed max_multiplier")
        if self.cold_accuracy >= self.hot_accuracy:
            raise ValueError("cold_accuracy must be below hot_accuracy")
        return self


class ConflictConfig(BaseModel):
    low_threshold: int = 25
    medium_threshold: int = 40
    high_threshold: int = 55
    critical_threshold: int = 70
    bubble_buy_ratio: float = Field(default=0.6, gt=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_monotonic(self) -> ConflictConfig:
        steps = [
            self.low_threshold,
            self.medium_threshold,
            self.high_threshold,
            self.critical_threshold,
        ]
        if any(b <= a for a, b in zip(steps, steps[1:])):
            raise ValueError(f"Severity thresholds must increase: {steps}")
        return self


class ScoringConfig(BaseModel):
    core_weights: dict[str, float] = Field(
        default_factory=lambda: {
            "atlas": 20.0,
            "orion": 25.0,
            "aether": 20.0,
            "hermes": 10.0,
            "cronos": 10.0,
            "athena": 15.0,
        }
    )
    pulse_weights: dict[str, float] = Field(
        default_factory=lambda: {
            "orion": 40.0,
            "cronos": 25.0,
            "aether": 20.0,
            "hermes": 15.0,
        }
    )


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "json"  # "json" or "console"


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level settings.

    Loaded from TOML config files, overridden by environment variables.
    """

    risk: RiskConfig = Field(default_factory=RiskConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)
    conflict: ConflictConfig = Field(default_factory=ConflictConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    # Module id -> role name overrides for the conflict detector
    module_roles: dict[str, str] = Field(default_factory=dict)

    model_config = {"env_prefix": "COUNCIL_", "env_nested_delimiter": "__"}


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top.

    Raises:
        InvalidConfig: If the resulting settings fail validation.
    """
    from pydantic import ValidationError

    from .errors import InvalidConfig

    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            import tomli

            with open(path, "rb") as f:
                data = tomli.load(f)

    if overrides:
        data.update(overrides)

    try:
        return Settings(**data)
    except ValidationError as exc:
        raise InvalidConfig(str(exc)) from exc
