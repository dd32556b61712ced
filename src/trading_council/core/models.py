"""Core records exchanged between the council, the tracker and the risk gate.

Everything produced by the subsystem is a frozen pydantic model so it can
be shared between threads and serialized with ``model_dump_json()``.
Confidences are on a 0..100 scale; out-of-range values are rejected at
construction, never clamped.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .config import RiskConfig
from .enums import (
    ConflictSeverity,
    ConflictType,
    CoreVerdict,
    Form,
    MarketCondition,
    ModuleRole,
    OpportunityType,
    Outcome,
    PairConflictKind,
    PulseVerdict,
    Regime,
    RejectionReason,
    SizingMethod,
    StopMethod,
    TradeAction,
    Vote,
)
from .ids import payload_hash, utc_now

_FROZEN = {"frozen": True}


# ---------------------------------------------------------------------------
# Opinions and council decisions
# ---------------------------------------------------------------------------

class ModuleOpinion(BaseModel):
    """One scoring module's view on one instrument."""

    model_config = _FROZEN

    module: str = Field(min_length=1)
    vote: Vote
    confidence: float = Field(ge=0.0, le=100.0, allow_inf_nan=False)
    rationale: str = ""


class WeightedOpinion(ModuleOpinion):
    """An opinion together with the voting weight applied to it."""

    weight: float = Field(default=1.0, ge=0.0, allow_inf_nan=False)

    @property
    def weighted_confidence(self) -> float:
        return self.confidence * self.weight


class VoteTally(BaseModel):
    model_config = _FROZEN

    buy: int = Field(default=0, ge=0)
    sell: int = Field(default=0, ge=0)
    hold: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.buy + self.sell + self.hold

    def count(self, vote: Vote) -> int:
        return getattr(self, vote.value)

    @classmethod
    def of(cls, opinions: list[ModuleOpinion]) -> VoteTally:
        counts = {v.value: 0 for v in Vote}
        for op in opinions:
            counts[op.vote.value] += 1
        return cls(**counts)


class CouncilDecision(BaseModel):
    """Verdict of a weighted council round for one instrument."""

    model_config = _FROZEN

    instrument: str
    verdict: Vote
    consensus_pct: int = Field(ge=0, le=100)
    tally: VoteTally
    opinions: list[ModuleOpinion]
    weights: dict[str, float] = Field(default_factory=dict)
    bucket_scores: dict[Vote, float] = Field(default_factory=dict)
    narrative: str = ""
    produced_at: datetime = Field(default_factory=utc_now)

    def fingerprint(self) -> str:
        """Stable hash of everything except the production timestamp."""
        return payload_hash(self.model_dump(mode="json", exclude={"produced_at"}))


# ---------------------------------------------------------------------------
# Prediction history
# ---------------------------------------------------------------------------

class PredictionRecord(BaseModel):
    model_config = _FROZEN

    record_id: str
    module: str
    instrument: str
    vote: Vote
    confidence: float = Field(ge=0.0, le=100.0, allow_inf_nan=False)
    regime: Regime
    predicted_at: datetime
    outcome: Outcome = Outcome.UNRESOLVED
    resolved_at: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.outcome is not Outcome.UNRESOLVED

    @property
    def days_to_resolve(self) -> float | None:
        if self.resolved_at is None:
            return None
        return (self.resolved_at - self.predicted_at).total_seconds() / 86400.0


class ModulePerformance(BaseModel):
    """Accuracy summary for one module, optionally within one regime."""

    model_config = _FROZEN

    module: str
    regime: Regime | None = None
    total_predictions: int = 0
    resolved_predictions: int = 0
    correct_predictions: int = 0
    window_total: int = 0
    window_correct: int = 0
    accuracy: float = 0.0  # over the rolling window
    weight_multiplier: float = 1.0
    form: Form = Form.WARM


class TrackerSnapshot(BaseModel):
    records: list[PredictionRecord] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Conflict analysis
# ---------------------------------------------------------------------------

class InvolvedModule(BaseModel):
    model_config = _FROZEN

    module: str
    vote: Vote
    confidence: float
    role: ModuleRole | None = None


class ConflictAnalysis(BaseModel):
    model_config = _FROZEN

    severity: ConflictSeverity = ConflictSeverity.NONE
    conflict_type: ConflictType | None = None
    variance_score: int = Field(default=0, ge=0, le=100)
    opportunity: OpportunityType | None = None
    involved_modules: list[InvolvedModule] = Field(default_factory=list)
    action_hint: str = ""
    summary: str = ""
    description: str = ""


class ModulePairConflict(BaseModel):
    model_config = _FROZEN

    module_a: str
    module_b: str
    kind: PairConflictKind
    confidence_gap: float
    description: str = ""


# ---------------------------------------------------------------------------
# Portfolio and signals
# ---------------------------------------------------------------------------

class PortfolioPosition(BaseModel):
    """An existing position, as seen by the risk gate (read-only)."""

    model_config = _FROZEN

    symbol: str
    entry_price: float = Field(gt=0.0, allow_inf_nan=False)
    quantity: float = Field(ge=0.0, allow_inf_nan=False)
    sector: str = "unknown"
    is_open: bool = True
    stop_loss: float | None = Field(default=None, gt=0.0)

    @property
    def notional(self) -> float:
        return self.entry_price * self.quantity


class TradeSignal(BaseModel):
    """A proposed trade submitted to the risk gate."""

    model_config = _FROZEN

    instrument: str = Field(min_length=1)
    action: TradeAction = TradeAction.BUY
    price: float = Field(gt=0.0, allow_inf_nan=False)
    confidence: float = Field(default=50.0, ge=0.0, le=100.0, allow_inf_nan=False)
    sector: str = "unknown"
    atr: float | None = Field(default=None, gt=0.0)
    support_levels: list[float] = Field(default_factory=list)
    resistance_levels: list[float] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Risk gate outputs
# ---------------------------------------------------------------------------

class StopLevels(BaseModel):
    model_config = _FROZEN

    stop_loss: float
    take_profit: float
    stop_distance: float
    method: StopMethod
    warnings: list[str] = Field(default_factory=list)


class PositionSize(BaseModel):
    model_config = _FROZEN

    quantity: int = Field(ge=0)
    method: SizingMethod
    risk_amount: float = 0.0
    stop_distance: float | None = None
    kelly_fraction: float | None = None
    warnings: list[str] = Field(default_factory=list)


class RiskDecision(BaseModel):
    model_config = _FROZEN

    approved: bool
    instrument: str
    action: TradeAction
    adjusted_quantity: int = Field(default=0, ge=0)
    suggested_stop_loss: float | None = None
    suggested_take_profit: float | None = None
    risk_r: float = 0.0
    reason: str = ""
    rejection: RejectionReason | None = None
    warnings: list[str] = Field(default_factory=list)
    sizing_method: SizingMethod | None = None
    decided_at: datetime = Field(default_factory=utc_now)


class PortfolioRiskMetrics(BaseModel):
    model_config = _FROZEN

    total_risk_r: float = 0.0
    sector_exposure: dict[str, float] = Field(default_factory=dict)  # % of equity
    max_drawdown_pct: float = 0.0
    var95_pct: float = 0.0
    var95_amount: float = 0.0
    concentration_index: float = 0.0
    gross_exposure_pct: float = 0.0
    open_positions: int = 0


class RiskGateSnapshot(BaseModel):
    config: RiskConfig
    cooldowns: dict[str, datetime] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Composite scoring and context-aware voting
# ---------------------------------------------------------------------------

class CompositeScore(BaseModel):
    model_config = _FROZEN

    instrument: str
    core_score: float
    pulse_score: float
    core_verdict: CoreVerdict
    pulse_verdict: PulseVerdict
    confidence: float
    module_scores: dict[str, float] = Field(default_factory=dict)
    summary: str = ""


class ContextVote(BaseModel):
    model_config = _FROZEN

    condition: MarketCondition
    decision: CouncilDecision
    verdict: Vote
    vetoed: bool = False
    veto_module: str | None = None
    narrative: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
