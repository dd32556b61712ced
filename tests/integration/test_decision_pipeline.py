"""End-to-end council rounds: tracker weights -> consensus -> conflict -> risk gate."""

import pytest

from trading_council.core.config import Settings
from trading_council.core.enums import ConflictSeverity, RejectionReason, Regime, TradeAction, Vote
from trading_council.core.models import ModuleOpinion, TradeSignal
from trading_council.pipeline import DecisionPipeline

EQUITY = 100_000.0


@pytest.fixture
def pipeline(sim_clock) -> DecisionPipeline:
    return DecisionPipeline.from_settings(Settings(), clock=sim_clock)


class TestPipeline:
    def test_unanimous_buy_is_approved(self, pipeline, bullish_opinions, buy_signal):
        result = pipeline.evaluate(
            "AAPL", bullish_opinions, signal=buy_signal, equity=EQUITY, regime=Regime.BULL
        )
        assert result.trace_id
        assert result.decision.verdict == Vote.BUY
        assert result.decision.consensus_pct == 100
        assert result.conflict.severity == ConflictSeverity.NONE
        assert result.risk is not None and result.risk.approved
        assert result.risk.adjusted_quantity == 250

    def test_divided_council_sizes_down(self, pipeline, split_opinions, buy_signal):
        result = pipeline.evaluate("AAPL", split_opinions, signal=buy_signal, equity=EQUITY)
        assert result.decision.verdict == Vote.BUY
        assert result.decision.consensus_pct == 51
        assert result.conflict.severity.rank >= ConflictSeverity.HIGH.rank
        assert result.risk.approved
        assert result.risk.adjusted_quantity == 175

    def test_gate_skipped_when_verdict_disagrees(self, pipeline, bullish_opinions):
        sell = TradeSignal(instrument="AAPL", action=TradeAction.SELL, price=100.0)
        result = pipeline.evaluate("AAPL", bullish_opinions, signal=sell, equity=EQUITY)
        assert result.risk is None

    def test_no_signal_no_risk_review(self, pipeline, bullish_opinions):
        assert pipeline.evaluate("AAPL", bullish_opinions).risk is None

    def test_cooldown_across_rounds(self, pipeline, bullish_opinions, buy_signal, sim_clock):
        first = pipeline.evaluate("AAPL", bullish_opinions, signal=buy_signal, equity=EQUITY)
        sim_clock.advance(hours=2)
        second = pipeline.evaluate("AAPL", bullish_opinions, signal=buy_signal, equity=EQUITY)
        assert first.risk.approved
        assert second.risk.rejection == RejectionReason.COOLDOWN_ACTIVE
        assert first.trace_id != second.trace_id


class TestLearningLoop:
    def _train(self, pipeline, module, correct, n=10):
        for _ in range(n):
            rec = pipeline.tracker.record_prediction(module, "AAPL", Vote.BUY, 70, Regime.BULL)
            pipeline.tracker.resolve_prediction(rec.record_id, was_correct=correct)

    def test_track_record_shifts_verdict(self, pipeline):
        opinions = [
            ModuleOpinion(module="atlas", vote=Vote.SELL, confidence=60),
            ModuleOpinion(module="orion", vote=Vote.BUY, confidence=80),
        ]
        assert pipeline.evaluate("AAPL", opinions).decision.verdict == Vote.BUY

        self._train(pipeline, "atlas", correct=True)
        self._train(pipeline, "orion", correct=False)

        decision = pipeline.evaluate("AAPL", opinions).decision
        assert decision.weights == {"atlas": 1.5, "orion": 0.5}
        assert decision.verdict == Vote.SELL

    def test_record_round_then_resolve(self, pipeline, bullish_opinions):
        result = pipeline.evaluate("AAPL", bullish_opinions)
        records = pipeline.record_round(result.decision, Regime.BULL)
        assert len(records) == len(bullish_opinions)
        for rec in records:
            pipeline.tracker.resolve_prediction(rec.record_id, was_correct=True)
        perf = pipeline.tracker.performance("orion")
        assert perf.resolved_predictions == 1
        assert perf.weight_multiplier == 1.0
