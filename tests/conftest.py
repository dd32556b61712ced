"""Shared fixtures for the trading-council test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from trading_council.core.clock import SimClock
from trading_council.core.config import RiskConfig
from trading_council.core.enums import TradeAction, Vote
from trading_council.core.models import ModuleOpinion, PortfolioPosition, TradeSignal
from trading_council.performance.tracker import PerformanceTracker
from trading_council.risk.gate import RiskGate


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

@pytest.fixture
def sim_clock() -> SimClock:
    """Return a SimClock starting at 2024-06-01 00:00 UTC."""
    return SimClock(start=datetime(2024, 6, 1, tzinfo=timezone.utc))


# ---------------------------------------------------------------------------
# Opinions
# ---------------------------------------------------------------------------

def op(module: str, vote: Vote | str, confidence: float, rationale: str = "") -> ModuleOpinion:
    return ModuleOpinion(module=module, vote=Vote(vote), confidence=confidence, rationale=rationale)


@pytest.fixture
def make_opinion():
    """Factory: make_opinion("orion", "buy", 80)."""
    return op


@pytest.fixture
def bullish_opinions() -> list[ModuleOpinion]:
    """Six modules, all BUY with high confidence."""
    return [
        op("atlas", Vote.BUY, 90, "cheap on earnings"),
        op("orion", Vote.BUY, 85, "breakout above resistance"),
        op("aether", Vote.BUY, 80, "easing cycle"),
        op("hermes", Vote.BUY, 95, "positive news flow"),
        op("cronos", Vote.BUY, 88, "seasonally strong"),
        op("athena", Vote.BUY, 92, "quality factor tailwind"),
    ]


@pytest.fixture
def split_opinions() -> list[ModuleOpinion]:
    """Fundamentals bullish, technicals and sentiment bearish."""
    return [
        op("atlas", Vote.BUY, 90, "deep value"),
        op("orion", Vote.SELL, 20, "downtrend intact"),
        op("hermes", Vote.SELL, 15, "panic headlines"),
        op("aether", Vote.HOLD, 50, "mixed macro"),
    ]


# ---------------------------------------------------------------------------
# Risk gate
# ---------------------------------------------------------------------------

@pytest.fixture
def risk_config() -> RiskConfig:
    return RiskConfig(
        max_risk_per_trade_pct=0.01,
        max_portfolio_risk_r=6.0,
        max_sector_exposure_pct=0.30,
        cooldown_hours=24,
        stop_loss_pct=0.05,
    )


@pytest.fixture
def gate(risk_config, sim_clock) -> RiskGate:
    return RiskGate(config=risk_config, clock=sim_clock)


@pytest.fixture
def tracker(sim_clock) -> PerformanceTracker:
    return PerformanceTracker(clock=sim_clock)


@pytest.fixture
def buy_signal() -> TradeSignal:
    return TradeSignal(
        instrument="AAPL",
        action=TradeAction.BUY,
        price=100.0,
        confidence=75,
        sector="tech",
        atr=2.0,
    )


@pytest.fixture
def sample_portfolio() -> list[PortfolioPosition]:
    return [
        PortfolioPosition(symbol="XOM", entry_price=50.0, quantity=100, sector="energy", stop_loss=45.0),
        PortfolioPosition(symbol="JPM", entry_price=150.0, quantity=50, sector="financials"),
    ]
