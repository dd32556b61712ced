"""Decision pipeline: one round from module opinions to a risk-checked order.

Data flows one way::

    opinions -> ConflictDetector (informational)
             -> ConsensusEngine (weighted by PerformanceTracker)
             -> RiskGate (final gate, may veto)
             -> caller

The pipeline owns one instance of each stateful service; build it with
:meth:`DecisionPipeline.from_settings` or pass the services in.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import BaseModel

from trading_council.core.clock import IClock
from trading_council.core.config import Settings
from trading_council.core.enums import Regime, TradeAction, Vote
from trading_council.core.models import (
    ConflictAnalysis,
    CouncilDecision,
    ModuleOpinion,
    PortfolioPosition,
    PredictionRecord,
    RiskDecision,
    TradeSignal,
)
from trading_council.council.conflict import ConflictDetector
from trading_council.council.consensus import ConsensusEngine
from trading_council.observability.logger import new_trace_id
from trading_council.performance.tracker import PerformanceTracker
from trading_council.risk.gate import RiskGate

logger = logging.getLogger(__name__)

_ACTION_VOTE = {TradeAction.BUY: Vote.BUY, TradeAction.SELL: Vote.SELL}


class PipelineResult(BaseModel):
    model_config = {"frozen": True}

    trace_id: str
    decision: CouncilDecision
    conflict: ConflictAnalysis
    risk: RiskDecision | None = None


class DecisionPipeline:
    def __init__(
        self,
        *,
        engine: ConsensusEngine | None = None,
        detector: ConflictDetector | None = None,
        tracker: PerformanceTracker | None = None,
        gate: RiskGate | None = None,
    ) -> None:
        self.engine = engine or ConsensusEngine()
        self.detector = detector or ConflictDetector()
        self.tracker = tracker or PerformanceTracker()
        self.gate = gate or RiskGate()

    @classmethod
    def from_settings(cls, settings: Settings, clock: IClock | None = None) -> DecisionPipeline:
        return cls(
            detector=ConflictDetector.from_settings(settings),
            tracker=PerformanceTracker.from_settings(settings, clock=clock),
            gate=RiskGate.from_settings(settings, clock=clock),
        )

    def evaluate(
        self,
        instrument: str,
        opinions: Sequence[ModuleOpinion],
        *,
        signal: TradeSignal | None = None,
        portfolio: Sequence[PortfolioPosition] = (),
        equity: float | None = None,
        regime: Regime | None = None,
    ) -> PipelineResult:
        """Run one council round.

        The risk gate is consulted only when a signal and equity are
        given and the council verdict agrees with the signal's action.
        """
        trace_id = new_trace_id()
        weights = self.tracker.weights_for({op.module for op in opinions}, regime)
        decision = self.engine.evaluate(instrument, opinions, weights)
        conflict = self.detector.analyze(opinions, prior_regime=regime)

        risk: RiskDecision | None = None
        if signal is not None and equity is not None:
            if _ACTION_VOTE[signal.action] is decision.verdict:
                risk = self.gate.review(signal, portfolio, decision.consensus_pct, equity)
            else:
                logger.info(
                    "Skipping risk review for %s: verdict %s does not match %s signal",
                    instrument,
                    decision.verdict.value,
                    signal.action.value,
                )

        return PipelineResult(
            trace_id=trace_id, decision=decision, conflict=conflict, risk=risk
        )

    def record_round(
        self, decision: CouncilDecision, regime: Regime
    ) -> list[PredictionRecord]:
        return self.tracker.record_round(decision, regime)
