"""Test condition detection, condition weights and vetoes."""

import pytest

from trading_council.core.enums import MarketCondition, Regime, Vote
from trading_council.council.context_voting import (
    DEFAULT_PROFILES,
    ContextAwareVoting,
    detect_condition,
)
from trading_council.core.models import ModuleOpinion
from trading_council.council.roles import RoleMap


def op(module, vote, confidence):
    return ModuleOpinion(module=module, vote=vote, confidence=confidence)


@pytest.fixture
def voting() -> ContextAwareVoting:
    return ContextAwareVoting()


class TestDetectCondition:
    @pytest.mark.parametrize(
        "regime, kwargs, expected",
        [
            (Regime.SIDEWAYS, {"explicit": MarketCondition.EARNINGS}, MarketCondition.EARNINGS),
            (Regime.BULL, {"vix": 40}, MarketCondition.CRISIS),
            (Regime.BULL, {"vix": 30}, MarketCondition.VOLATILE),
            (Regime.BULL, {"vix": 15, "relative_change": 3.0}, MarketCondition.RALLY),
            (Regime.BULL, {"relative_change": 1.0}, MarketCondition.SIDEWAYS),
            (Regime.BEAR, {"relative_change": -3.0}, MarketCondition.SELLOFF),
            (Regime.BEAR, {}, MarketCondition.SIDEWAYS),
            (Regime.VOLATILE, {}, MarketCondition.VOLATILE),
            (Regime.SIDEWAYS, {"explicit": MarketCondition.SIDEWAYS, "vix": 40}, MarketCondition.CRISIS),
        ],
    )
    def test_detection(self, regime, kwargs, expected):
        assert detect_condition(regime, **kwargs) == expected


class TestWeights:
    def test_earnings_favours_fundamentals(self, voting):
        opinions = [op("atlas", Vote.BUY, 60), op("orion", Vote.BUY, 60), op("zeus", Vote.BUY, 60)]
        weights = voting.weights_for(opinions, MarketCondition.EARNINGS)
        assert weights == {"atlas": 2.0, "orion": 0.6, "zeus": 1.0}

    def test_base_weights_multiply(self, voting):
        opinions = [op("atlas", Vote.BUY, 60)]
        weights = voting.weights_for(opinions, MarketCondition.EARNINGS, {"atlas": 1.5})
        assert weights["atlas"] == pytest.approx(3.0)

    def test_sideways_is_neutral(self, voting, bullish_opinions):
        weights = voting.weights_for(bullish_opinions, MarketCondition.SIDEWAYS)
        assert set(weights.values()) == {1.0}

    def test_condition_can_flip_verdict(self, voting):
        opinions = [op("orion", Vote.BUY, 60), op("atlas", Vote.SELL, 70)]
        assert voting.evaluate("AAPL", opinions, MarketCondition.RALLY).verdict == Vote.BUY
        assert voting.evaluate("AAPL", opinions, MarketCondition.SIDEWAYS).verdict == Vote.SELL


class TestVeto:
    def test_sell_from_veto_holder_forces_hold(self, voting):
        opinions = [op("orion", Vote.BUY, 90), op("hermes", Vote.BUY, 80), op("atlas", Vote.SELL, 60)]
        result = voting.evaluate("AAPL", opinions, MarketCondition.CRISIS)
        assert result.decision.verdict == Vote.BUY
        assert result.verdict == Vote.HOLD
        assert result.vetoed
        assert result.veto_module == "atlas"
        assert "Veto by atlas" in result.narrative

    def test_weighted_sell_still_vetoed_to_hold(self, voting):
        opinions = [op("orion", Vote.BUY, 60), op("atlas", Vote.SELL, 70)]
        result = voting.evaluate("AAPL", opinions, MarketCondition.EARNINGS)
        assert result.decision.verdict == Vote.SELL
        assert result.verdict == Vote.HOLD

    def test_buy_from_veto_holder_is_not_a_veto(self, voting):
        opinions = [op("atlas", Vote.BUY, 60)]
        assert voting.find_veto(opinions, MarketCondition.CRISIS) is None

    def test_risk_role_vetoes_whatever_it_votes(self, voting):
        opinions = [op("orion", Vote.BUY, 90), op("chiron", Vote.BUY, 50)]
        assert voting.find_veto(opinions, MarketCondition.SELLOFF).module == "chiron"
        assert voting.find_veto(opinions, MarketCondition.RALLY) is None

    def test_no_veto_in_quiet_market(self, voting, bullish_opinions):
        result = voting.evaluate("AAPL", bullish_opinions, MarketCondition.RALLY)
        assert not result.vetoed
        assert result.verdict == Vote.BUY
        assert "rally" in result.narrative
        assert "Verdict: BUY" in result.narrative

    def test_role_overrides_apply(self):
        voting = ContextAwareVoting(roles=RoleMap({"zeus": "risk"}))
        result = voting.evaluate("AAPL", [op("zeus", Vote.HOLD, 50)], MarketCondition.CRISIS)
        assert result.veto_module == "zeus"

    def test_profiles_cover_every_condition(self):
        for profile in DEFAULT_PROFILES.values():
            assert all(profile.multiplier(c) > 0 for c in MarketCondition)
