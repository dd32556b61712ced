"""Composite module scoring.

Two weighting profiles over the same raw 0..100 module scores:

* **core**: long-horizon view across every module, fundamentals included.
* **pulse**: short-horizon view dominated by technical and timing modules.

The same inputs can therefore produce materially different verdicts,
e.g. strong technicals with weak fundamentals give a high pulse score and
a mediocre core score.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping

import numpy as np

from trading_council.core.config import ScoringConfig, Settings
from trading_council.core.enums import CoreVerdict, PulseVerdict, Vote
from trading_council.core.errors import InvalidConfig, InvalidInput
from trading_council.core.models import CompositeScore, ModuleOpinion

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0


def _normalize(weights: Mapping[str, float]) -> dict[str, float]:
    if any(not math.isfinite(w) or w < 0 for w in weights.values()):
        raise InvalidConfig(f"Weights must be finite and non-negative: {dict(weights)}")
    total = sum(weights.values())
    if total <= 0:
        raise InvalidConfig("Weights must not all be zero")
    return {k: v / total * 100.0 for k, v in weights.items()}


def weighted_score(scores: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """Weighted mean over modules present in both maps; 50 when none are."""
    total = 0.0
    total_weight = 0.0
    for module, weight in weights.items():
        if module in scores and weight > 0:
            total += scores[module] * weight
            total_weight += weight
    return total / total_weight if total_weight > 0 else NEUTRAL_SCORE


def core_verdict(score: float) -> CoreVerdict:
    if score >= 75:
        return CoreVerdict.STRONG_BUY
    if score >= 55:
        return CoreVerdict.BUY
    if score >= 45:
        return CoreVerdict.HOLD
    if score >= 25:
        return CoreVerdict.SELL
    return CoreVerdict.STRONG_SELL


def pulse_verdict(score: float) -> PulseVerdict:
    if score >= 60:
        return PulseVerdict.LONG
    if score <= 40:
        return PulseVerdict.SHORT
    return PulseVerdict.WAIT


def agreement_confidence(scores: Mapping[str, float]) -> float:
    """100 minus twice the population std-dev of the scores, clamped."""
    values = list(scores.values())
    if len(values) < 2:
        return NEUTRAL_SCORE
    std = float(np.std(np.asarray(values, dtype=np.float64)))
    return max(0.0, min(100.0, 100.0 - 2.0 * std))


class CompositeScorer:
    """Core and pulse composite scores over raw module scores.

    Core weights are normalized to sum to 100 whenever they change.
    """

    def __init__(
        self,
        *,
        core_weights: Mapping[str, float] | None = None,
        pulse_weights: Mapping[str, float] | None = None,
    ) -> None:
        defaults = ScoringConfig()
        self._core = _normalize(core_weights or defaults.core_weights)
        self._pulse = _normalize(pulse_weights or defaults.pulse_weights)

    @classmethod
    def from_settings(cls, settings: Settings) -> CompositeScorer:
        return cls(
            core_weights=settings.scoring.core_weights,
            pulse_weights=settings.scoring.pulse_weights,
        )

    @property
    def core_weights(self) -> dict[str, float]:
        return dict(self._core)

    @property
    def pulse_weights(self) -> dict[str, float]:
        return dict(self._pulse)

    def set_weights(self, weights: Mapping[str, float]) -> dict[str, float]:
        """Merge *weights* into the core profile and renormalize."""
        merged = {**self._core, **weights}
        self._core = _normalize(merged)
        logger.info("Core weights updated: %s", self._core)
        return dict(self._core)

    def score(self, instrument: str, scores: Mapping[str, float]) -> CompositeScore:
        """Compute core/pulse scores, verdicts and agreement confidence.

        Raises:
            InvalidInput: If any module score is outside [0, 100].
        """
        for module, value in scores.items():
            if not math.isfinite(value) or not 0.0 <= value <= 100.0:
                raise InvalidInput(f"Score for {module!r} out of range: {value}")

        core = weighted_score(scores, self._core)
        pulse = weighted_score(scores, self._pulse)
        cv = core_verdict(core)
        pv = pulse_verdict(pulse)
        confidence = agreement_confidence(scores)

        return CompositeScore(
            instrument=instrument,
            core_score=core,
            pulse_score=pulse,
            core_verdict=cv,
            pulse_verdict=pv,
            confidence=confidence,
            module_scores=dict(scores),
            summary=(
                f"Long term {cv.value.replace('_', ' ')} ({core:.0f}), "
                f"short term {pv.value} ({pulse:.0f}), agreement {confidence:.0f}%"
            ),
        )


def opinion_from_score(
    module: str,
    score: float,
    *,
    quality: float = 1.0,
    rationale: str = "",
    buy_threshold: float = 55.0,
    sell_threshold: float = 45.0,
) -> ModuleOpinion:
    """Turn a raw 0..100 module score into a :class:`ModuleOpinion`.

    Confidence is distance into the winning side, scaled by *quality*
    (0..1, how much the module's data can be trusted).
    """
    if not 0.0 <= score <= 100.0:
        raise InvalidInput(f"Score for {module!r} out of range: {score}")
    if not 0.0 <= quality <= 1.0:
        raise InvalidInput(f"Quality for {module!r} out of range: {quality}")

    if score >= buy_threshold:
        vote, confidence = Vote.BUY, score
    elif score <= sell_threshold:
        vote, confidence = Vote.SELL, 100.0 - score
    else:
        vote, confidence = Vote.HOLD, 100.0 - 2.0 * abs(score - 50.0)

    return ModuleOpinion(
        module=module,
        vote=vote,
        confidence=max(0.0, min(100.0, confidence * quality)),
        rationale=rationale or f"{module} score {score:.0f}",
    )
