"""Module performance tracker: accuracy-driven voting weights.

Every council round can be recorded as one prediction per module; once
the market has spoken the prediction is resolved as correct or not.  A
module's voting weight multiplier follows its accuracy over the last
``window_size`` resolved predictions::

    multiplier = clamp(0.5 + accuracy, 0.5, 1.5)

Until a module has ``min_samples`` resolved predictions the multiplier
is exactly 1.0, so a newcomer is neither rewarded nor punished.

Metrics are computed on read from the stored records.  State is guarded
per module, so recording for one module never blocks another.

Example::

    tracker = PerformanceTracker()
    rec = tracker.record_prediction("orion", "AAPL", Vote.BUY, 80, Regime.BULL)
    tracker.resolve_prediction(rec.record_id, was_correct=True)
    tracker.current_multiplier("orion")
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from trading_council.core.clock import IClock, WallClock
from trading_council.core.config import PerformanceConfig, Settings
from trading_council.core.enums import Form, Outcome, Regime, Vote
from trading_council.core.errors import RecordAlreadyResolved, UnknownRecord
from trading_council.core.ids import ensure_utc, new_id
from trading_council.core.locks import KeyedLocks
from trading_council.core.models import (
    CouncilDecision,
    ModuleOpinion,
    ModulePerformance,
    PredictionRecord,
    TrackerSnapshot,
    WeightedOpinion,
)

logger = logging.getLogger(__name__)


@dataclass
class _ModuleHistory:
    """All predictions of one module plus the order they were resolved in."""

    records: dict[str, PredictionRecord] = field(default_factory=dict)
    resolved_order: list[str] = field(default_factory=list)

    def window(self, size: int, regime: Regime | None) -> list[PredictionRecord]:
        picked: list[PredictionRecord] = []
        for record_id in reversed(self.resolved_order):
            rec = self.records[record_id]
            if regime is None or rec.regime is regime:
                picked.append(rec)
                if len(picked) >= size:
                    break
        return picked


class PerformanceTracker:
    """Tracks prediction outcomes per module and derives weight multipliers.

    Parameters
    ----------
    config : PerformanceConfig
        Window size, minimum sample size, clamp bounds and form thresholds.
    clock : IClock
        Source of timestamps when callers do not supply one.
    """

    def __init__(
        self,
        *,
        config: PerformanceConfig | None = None,
        clock: IClock | None = None,
    ) -> None:
        self._config = config or PerformanceConfig()
        self._clock = clock or WallClock()
        self._registry = threading.Lock()
        self._locks = KeyedLocks()
        self._modules: dict[str, _ModuleHistory] = {}
        self._index: dict[str, str] = {}  # record_id -> module

    @classmethod
    def from_settings(cls, settings: Settings, clock: IClock | None = None) -> PerformanceTracker:
        return cls(config=settings.performance, clock=clock)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_prediction(
        self,
        module: str,
        instrument: str,
        vote: Vote,
        confidence: float,
        regime: Regime,
        timestamp: datetime | None = None,
    ) -> PredictionRecord:
        """Store an unresolved prediction and return it."""
        record = PredictionRecord(
            record_id=new_id(),
            module=module,
            instrument=instrument,
            vote=vote,
            confidence=confidence,
            regime=regime,
            predicted_at=ensure_utc(timestamp) if timestamp else self._clock.now(),
        )
        while True:
            history = self._history(module)
            with self._locks.lock_for(module), self._registry:
                # reset() or load() may have swapped the history since lookup
                if self._modules.get(module) is not history:
                    continue
                history.records[record.record_id] = record
                self._index[record.record_id] = module
                break
        logger.debug(
            "Recorded prediction %s: %s %s %s@%.0f",
            record.record_id,
            module,
            instrument,
            vote.value,
            confidence,
        )
        return record

    def record_round(
        self, decision: CouncilDecision, regime: Regime
    ) -> list[PredictionRecord]:
        """Record every opinion of a council decision as a prediction."""
        return [
            self.record_prediction(
                op.module,
                decision.instrument,
                op.vote,
                op.confidence,
                regime,
                timestamp=decision.produced_at,
            )
            for op in decision.opinions
        ]

    def resolve_prediction(
        self,
        record_id: str,
        was_correct: bool,
        resolved_at: datetime | None = None,
    ) -> PredictionRecord:
        """Set the outcome of a stored prediction.

        Raises:
            UnknownRecord: No record with *record_id*.
            RecordAlreadyResolved: The record already has an outcome.
        """
        with self._registry:
            module = self._index.get(record_id)
            history = self._modules.get(module) if module is not None else None
        if module is None or history is None:
            raise UnknownRecord(record_id)

        with self._locks.lock_for(module):
            record = history.records.get(record_id)
            if record is None:
                raise UnknownRecord(record_id)
            if record.is_resolved:
                raise RecordAlreadyResolved(record_id)
            resolved = record.model_copy(
                update={
                    "outcome": Outcome.CORRECT if was_correct else Outcome.INCORRECT,
                    "resolved_at": ensure_utc(resolved_at) if resolved_at else self._clock.now(),
                }
            )
            history.records[record_id] = resolved
            history.resolved_order.append(record_id)

        logger.debug("Resolved %s for %s: correct=%s", record_id, module, was_correct)
        return resolved

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def current_multiplier(self, module: str, regime: Regime | None = None) -> float:
        """Voting weight multiplier in ``[min_multiplier, max_multiplier]``."""
        return self.performance(module, regime).weight_multiplier

    def performance(self, module: str, regime: Regime | None = None) -> ModulePerformance:
        cfg = self._config
        with self._registry:
            history = self._modules.get(module)
        if history is None:
            return ModulePerformance(module=module, regime=regime)

        with self._locks.lock_for(module):
            records = [
                r for r in history.records.values()
                if regime is None or r.regime is regime
            ]
            window = history.window(cfg.window_size, regime)

        resolved = [r for r in records if r.is_resolved]
        correct = sum(1 for r in resolved if r.outcome is Outcome.CORRECT)
        window_correct = sum(1 for r in window if r.outcome is Outcome.CORRECT)
        accuracy = window_correct / len(window) if window else 0.0

        if len(window) < cfg.min_samples:
            multiplier, form = 1.0, Form.WARM
        else:
            multiplier = min(cfg.max_multiplier, max(cfg.min_multiplier, 0.5 + accuracy))
            if accuracy >= cfg.hot_accuracy:
                form = Form.HOT
            elif accuracy <= cfg.cold_accuracy:
                form = Form.COLD
            else:
                form = Form.WARM

        return ModulePerformance(
            module=module,
            regime=regime,
            total_predictions=len(records),
            resolved_predictions=len(resolved),
            correct_predictions=correct,
            window_total=len(window),
            window_correct=window_correct,
            accuracy=accuracy,
            weight_multiplier=multiplier,
            form=form,
        )

    def modules(self) -> list[str]:
        with self._registry:
            return sorted(self._modules)

    def all_performances(self, regime: Regime | None = None) -> list[ModulePerformance]:
        return [self.performance(m, regime) for m in self.modules()]

    def weights_for(
        self, modules: Iterable[str], regime: Regime | None = None
    ) -> dict[str, float]:
        """``module -> multiplier`` table for the consensus engine."""
        return {m: self.current_multiplier(m, regime) for m in modules}

    def weigh(
        self, opinions: Sequence[ModuleOpinion], regime: Regime | None = None
    ) -> list[WeightedOpinion]:
        from trading_council.council.consensus import weigh

        return weigh(opinions, self.weights_for({op.module for op in opinions}, regime))

    def top_form(self, limit: int = 3) -> list[ModulePerformance]:
        """Best recent accuracy first, among modules with enough evidence."""
        return self._rank(self.all_performances(), limit)

    def regime_specialists(self, regime: Regime, limit: int = 3) -> list[ModulePerformance]:
        """Modules with the best accuracy within *regime*."""
        return self._rank(self.all_performances(regime), limit)

    def _rank(self, perfs: list[ModulePerformance], limit: int) -> list[ModulePerformance]:
        eligible = [p for p in perfs if p.window_total >= self._config.min_samples]
        eligible.sort(key=lambda p: (-p.accuracy, p.module))
        return eligible[:limit]

    def history(self, module: str) -> list[PredictionRecord]:
        """Stored predictions of *module*, oldest first."""
        with self._registry:
            history = self._modules.get(module)
        if history is None:
            return []
        with self._locks.lock_for(module):
            records = list(history.records.values())
        return sorted(records, key=lambda r: r.predicted_at)

    # ------------------------------------------------------------------
    # Persistence hooks
    # ------------------------------------------------------------------

    def snapshot(self) -> TrackerSnapshot:
        records: list[PredictionRecord] = []
        for module in self.modules():
            with self._registry:
                history = self._modules.get(module)
            if history is None:
                continue
            with self._locks.lock_for(module):
                unresolved = [r for r in history.records.values() if not r.is_resolved]
                ordered = [history.records[rid] for rid in history.resolved_order]
            records.extend(ordered)
            records.extend(unresolved)
        return TrackerSnapshot(records=records)

    def load(self, snapshot: TrackerSnapshot) -> None:
        """Replace all history with *snapshot* (resolved records keep their order)."""
        modules: dict[str, _ModuleHistory] = {}
        index: dict[str, str] = {}
        for rec in snapshot.records:
            history = modules.setdefault(rec.module, _ModuleHistory())
            history.records[rec.record_id] = rec
            if rec.is_resolved:
                history.resolved_order.append(rec.record_id)
            index[rec.record_id] = rec.module
        with self._registry:
            self._modules = modules
            self._index = index
        logger.info("Loaded %d prediction records for %d modules", len(index), len(modules))

    def reset(self) -> None:
        with self._registry:
            self._modules = {}
            self._index = {}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _history(self, module: str) -> _ModuleHistory:
        with self._registry:
            history = self._modules.get(module)
            if history is None:
                history = _ModuleHistory()
                self._modules[module] = history
            return history
