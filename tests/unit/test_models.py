"""Test record validation at construction."""

import pytest
from pydantic import ValidationError

from trading_council.core.enums import Vote
from trading_council.core.models import ModuleOpinion, PortfolioPosition, TradeSignal, VoteTally


class TestModuleOpinion:
    def test_valid_opinion(self):
        op = ModuleOpinion(module="orion", vote="buy", confidence=72.5)
        assert op.vote is Vote.BUY

    @pytest.mark.parametrize("confidence", [-1, 100.1, float("nan")])
    def test_confidence_out_of_range_rejected(self, confidence):
        with pytest.raises(ValidationError):
            ModuleOpinion(module="orion", vote=Vote.BUY, confidence=confidence)

    def test_unknown_vote_rejected(self):
        with pytest.raises(ValidationError):
            ModuleOpinion(module="orion", vote="maybe", confidence=50)

    def test_empty_module_rejected(self):
        with pytest.raises(ValidationError):
            ModuleOpinion(module="", vote=Vote.HOLD, confidence=50)

    def test_opinion_is_immutable(self):
        op = ModuleOpinion(module="orion", vote=Vote.BUY, confidence=50)
        with pytest.raises(ValidationError):
            op.confidence = 60


class TestVoteTally:
    def test_of_counts_votes(self, split_opinions):
        tally = VoteTally.of(split_opinions)
        assert (tally.buy, tally.sell, tally.hold) == (1, 2, 1)
        assert tally.total == 4


class TestSignalAndPosition:
    def test_signal_price_must_be_positive(self):
        with pytest.raises(ValidationError):
            TradeSignal(instrument="AAPL", price=0)

    def test_position_notional(self):
        pos = PortfolioPosition(symbol="AAPL", entry_price=10.0, quantity=30)
        assert pos.notional == 300.0
        assert pos.is_open
