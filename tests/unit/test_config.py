"""Test Settings loading, TOML files and environment overrides."""

import pytest

from trading_council.core.config import (
    ConflictConfig,
    PerformanceConfig,
    RiskConfig,
    Settings,
    load_settings,
)
from trading_council.core.enums import SizingMethod
from trading_council.core.errors import InvalidConfig


class TestDefaults:
    def test_default_risk_limits(self):
        settings = Settings()
        assert settings.risk.max_risk_per_trade_pct == 0.01
        assert settings.risk.max_portfolio_risk_r == 6.0
        assert settings.risk.max_sector_exposure_pct == 0.30
        assert settings.risk.cooldown_hours == 24
        assert settings.risk.sizing_method == SizingMethod.FIXED_R

    def test_default_performance(self):
        perf = Settings().performance
        assert perf.window_size == 30
        assert perf.min_samples == 5
        assert (perf.min_multiplier, perf.max_multiplier) == (0.5, 1.5)

    def test_default_conflict_thresholds(self):
        conflict = Settings().conflict
        assert [conflict.low_threshold, conflict.medium_threshold,
                conflict.high_threshold, conflict.critical_threshold] == [25, 40, 55, 70]


class TestValidation:
    def test_risk_fraction_bounds(self):
        with pytest.raises(ValueError):
            RiskConfig(max_risk_per_trade_pct=1.5)

    def test_kelly_cap_never_above_quarter(self):
        with pytest.raises(ValueError):
            RiskConfig(kelly_cap=0.5)

    def test_thresholds_must_increase(self):
        with pytest.raises(ValueError):
            ConflictConfig(medium_threshold=20)

    def test_multiplier_bounds_ordered(self):
        with pytest.raises(ValueError):
            PerformanceConfig(min_multiplier=2.0, max_multiplier=1.0)

    def test_risk_config_is_frozen(self):
        cfg = RiskConfig()
        with pytest.raises(ValueError):
            cfg.cooldown_hours = 1


class TestLoadSettings:
    def test_no_file(self):
        settings = load_settings()
        assert settings.risk == RiskConfig()

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "absent.toml")
        assert settings.risk.cooldown_hours == 24

    def test_toml_file(self, tmp_path):
        path = tmp_path / "council.toml"
        path.write_text(
            "[risk]\n"
            "cooldown_hours = 12\n"
            'sizing_method = "kelly"\n'
            "\n"
            "[performance]\n"
            "window_size = 50\n"
            "\n"
            "[module_roles]\n"
            'zeus = "risk"\n'
        )
        settings = load_settings(path)
        assert settings.risk.cooldown_hours == 12
        assert settings.risk.sizing_method == SizingMethod.KELLY
        assert settings.performance.window_size == 50
        assert settings.module_roles == {"zeus": "risk"}

    def test_overrides_win(self, tmp_path):
        path = tmp_path / "council.toml"
        path.write_text("[risk]\ncooldown_hours = 12\n")
        settings = load_settings(path, overrides={"risk": {"cooldown_hours": 2}})
        assert settings.risk.cooldown_hours == 2

    def test_invalid_file_raises_config_error(self, tmp_path):
        path = tmp_path / "council.toml"
        path.write_text("[risk]\nmax_sector_exposure_pct = 3.0\n")
        with pytest.raises(InvalidConfig):
            load_settings(path)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("COUNCIL_RISK__COOLDOWN_HOURS", "6")
        assert load_settings().risk.cooldown_hours == 6
