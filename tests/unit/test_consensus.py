"""Test ConsensusEngine weighted voting."""

import pytest

from trading_council.core.enums import Vote
from trading_council.core.errors import InsufficientInput, InvalidInput
from trading_council.council.consensus import ConsensusEngine, weigh


@pytest.fixture
def engine() -> ConsensusEngine:
    return ConsensusEngine()


class TestVerdict:
    def test_unanimous_buy(self, engine, bullish_opinions):
        decision = engine.evaluate("AAPL", bullish_opinions)
        assert decision.verdict == Vote.BUY
        assert decision.consensus_pct == 100
        assert decision.tally.buy == 6
        assert decision.tally.total == len(bullish_opinions)

    def test_weighted_majority(self, engine, make_opinion):
        opinions = [
            make_opinion("atlas", "buy", 60),
            make_opinion("orion", "sell", 80),
            make_opinion("hermes", "buy", 50),
        ]
        decision = engine.evaluate("AAPL", opinions)
        # buy 110 vs sell 80
        assert decision.verdict == Vote.BUY
        assert decision.consensus_pct == round(100 * 110 / 190)

    def test_weights_change_outcome(self, engine, make_opinion):
        opinions = [
            make_opinion("atlas", "buy", 60),
            make_opinion("orion", "sell", 50),
        ]
        assert engine.evaluate("AAPL", opinions).verdict == Vote.BUY
        weighted = engine.evaluate("AAPL", opinions, weights={"orion": 1.5, "atlas": 0.5})
        assert weighted.verdict == Vote.SELL
        assert weighted.weights == {"atlas": 0.5, "orion": 1.5}

    def test_missing_weight_defaults_to_one(self, engine, make_opinion):
        opinions = [make_opinion("atlas", "buy", 60), make_opinion("orion", "sell", 50)]
        decision = engine.evaluate("AAPL", opinions, weights={"atlas": 0.8})
        assert decision.weights["orion"] == 1.0

    def test_single_opinion(self, engine, make_opinion):
        decision = engine.evaluate("AAPL", [make_opinion("orion", "sell", 40)])
        assert decision.verdict == Vote.SELL
        assert decision.consensus_pct == 100


class TestTieBreak:
    def test_buy_sell_tie_resolves_to_hold(self, engine, make_opinion):
        opinions = [make_opinion("atlas", "buy", 80), make_opinion("orion", "sell", 80)]
        decision = engine.evaluate("AAPL", opinions)
        assert decision.verdict == Vote.HOLD

    def test_score_tie_broken_by_vote_count(self, engine, make_opinion):
        opinions = [
            make_opinion("atlas", "buy", 40),
            make_opinion("orion", "buy", 40),
            make_opinion("hermes", "sell", 80),
        ]
        decision = engine.evaluate("AAPL", opinions)
        assert decision.verdict == Vote.BUY
        assert decision.consensus_pct == 50

    def test_all_zero_confidence(self, engine, make_opinion):
        opinions = [make_opinion("atlas", "buy", 0), make_opinion("orion", "sell", 0)]
        decision = engine.evaluate("AAPL", opinions)
        assert decision.verdict == Vote.HOLD
        assert decision.consensus_pct == 0

    def test_zero_weights_keep_count_majority(self, engine, make_opinion):
        opinions = [
            make_opinion("atlas", "sell", 70),
            make_opinion("orion", "sell", 60),
            make_opinion("hermes", "buy", 90),
        ]
        decision = engine.evaluate("AAPL", opinions, weights={"atlas": 0, "orion": 0, "hermes": 0})
        assert decision.verdict == Vote.SELL
        assert decision.consensus_pct == 0


class TestDeterminism:
    def test_repeated_evaluation_identical(self, engine, split_opinions):
        a = engine.evaluate("AAPL", split_opinions, weights={"atlas": 1.2})
        b = engine.evaluate("AAPL", split_opinions, weights={"atlas": 1.2})
        assert a.model_dump(exclude={"produced_at"}) == b.model_dump(exclude={"produced_at"})
        assert a.fingerprint() == b.fingerprint()

    def test_fingerprint_changes_with_weights(self, engine, split_opinions):
        a = engine.evaluate("AAPL", split_opinions)
        b = engine.evaluate("AAPL", split_opinions, weights={"atlas": 1.5})
        assert a.fingerprint() != b.fingerprint()


class TestNarrative:
    def test_rationales_ordered_by_weighted_confidence(self, engine, make_opinion):
        opinions = [
            make_opinion("atlas", "buy", 40, "value"),
            make_opinion("orion", "buy", 90, "momentum"),
            make_opinion("hermes", "sell", 60, "headlines"),
        ]
        narrative = engine.evaluate("AAPL", opinions).narrative
        lines = narrative.splitlines()
        assert lines[0].startswith("AAPL: BUY")
        assert [line.split()[1] for line in lines[1:]] == ["orion", "hermes", "atlas"]
        assert "momentum" in lines[1]


class TestInputValidation:
    def test_empty_opinions_raise(self, engine):
        with pytest.raises(InsufficientInput):
            engine.evaluate("AAPL", [])

    def test_negative_weight_rejected(self, engine, make_opinion):
        with pytest.raises(InvalidInput, match="atlas"):
            engine.evaluate("AAPL", [make_opinion("atlas", "buy", 50)], weights={"atlas": -1})

    def test_duplicate_module_rejected(self, engine, make_opinion):
        opinions = [make_opinion("orion", "buy", 80), make_opinion("orion", "sell", 30)]
        with pytest.raises(InvalidInput, match="orion"):
            engine.evaluate("AAPL", opinions)

    def test_weigh_attaches_weights(self, make_opinion):
        weighted = weigh([make_opinion("atlas", "buy", 50)], {"atlas": 1.4})
        assert weighted[0].weight == 1.4
        assert weighted[0].weighted_confidence == pytest.approx(70.0)
