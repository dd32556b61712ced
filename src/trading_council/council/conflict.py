"""Conflict detection between scoring modules.

Disagreement is information.  When a fundamental module says BUY while
sentiment panics, that is a classic contrarian set-up; when everything
is bullish except fundamentals, that smells like a bubble.  The detector
measures how far apart the modules are (variance of confidences),
classifies *who* disagrees with *whom* and maps the pattern to an
opportunity or a warning.

The analysis is a pure function of the opinions.  Modules are matched to
roles (fundamental, technical, ...) through a role table that callers
may override.

Usage::

    detector = ConflictDetector()
    analysis = detector.analyze(opinions, prior_regime=Regime.BULL)
    if analysis.severity.rank >= ConflictSeverity.HIGH.rank:
        ...
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence

import numpy as np
from pydantic import ValidationError

from trading_council.core.config import ConflictConfig, Settings
from trading_council.core.enums import (
    ConflictSeverity,
    ConflictType,
    ModuleRole,
    OpportunityType,
    PairConflictKind,
    Regime,
    Vote,
)
from trading_council.core.errors import InvalidConfig
from trading_council.core.models import (
    ConflictAnalysis,
    InvolvedModule,
    ModuleOpinion,
    ModulePairConflict,
)

from .consensus import round_half_up
from .roles import RoleMap

logger = logging.getLogger(__name__)


_REGIME_DIRECTION: dict[Regime, Vote] = {
    Regime.BULL: Vote.BUY,
    Regime.BEAR: Vote.SELL,
}


# ---------------------------------------------------------------------------
# Text tables
# ---------------------------------------------------------------------------

_SEVERITY_HINTS: dict[ConflictSeverity, str] = {
    ConflictSeverity.NONE: "Modules agree; act on the council verdict",
    ConflictSeverity.LOW: "Minor disagreement; proceed with normal sizing",
    ConflictSeverity.MEDIUM: "Consider other factors before acting",
    ConflictSeverity.HIGH: "Council divided; waiting is best",
    ConflictSeverity.CRITICAL: "Council divided; waiting is best",
}

_OPPORTUNITY_HINTS: dict[OpportunityType, str] = {
    OpportunityType.PANIC_SELL_OPPORTUNITY: (
        "Fundamentals intact while sentiment panics; consider scaling in gradually"
    ),
    OpportunityType.BOTTOM_FISHING: (
        "Price weak but fundamentals strong; wait for technical confirmation before buying"
    ),
    OpportunityType.BUBBLE_WARNING: (
        "Crowd is bullish without fundamental support; tighten stops and avoid new longs"
    ),
    OpportunityType.TOP_EXHAUSTION: (
        "Momentum without fundamental follow-through; consider taking profits"
    ),
    OpportunityType.TREND_REVERSAL: (
        "Timing turns against the trend; reduce exposure and wait for confirmation"
    ),
}

_TYPE_TEXT: dict[ConflictType, str] = {
    ConflictType.FUNDAMENTAL_VS_TECHNICAL: "fundamentals and technicals point in opposite directions",
    ConflictType.SENTIMENT_VS_PRICE: "news sentiment disagrees with the rest of the council",
    ConflictType.MACRO_VS_MICRO: "the macro picture contradicts the instrument-level view",
    ConflictType.TIMING_VS_REGIME: "timing signals run against the prevailing regime",
    ConflictType.SECTOR_VS_MARKET: "the sector view diverges from the broader council",
}

_SEVERITY_TEXT: dict[ConflictSeverity, str] = {
    ConflictSeverity.NONE: "No meaningful conflict",
    ConflictSeverity.LOW: "Low conflict",
    ConflictSeverity.MEDIUM: "Moderate conflict",
    ConflictSeverity.HIGH: "High conflict",
    ConflictSeverity.CRITICAL: "Critical conflict",
}


def action_hint(
    severity: ConflictSeverity, opportunity: OpportunityType | None
) -> str:
    """Fixed hint for a ``(severity, opportunity)`` pair."""
    if opportunity is not None:
        return _OPPORTUNITY_HINTS[opportunity]
    return _SEVERITY_HINTS[severity]


def _summary(
    severity: ConflictSeverity, opportunity: OpportunityType | None
) -> str:
    text = _SEVERITY_TEXT[severity]
    if opportunity is not None:
        text += f"; possible {opportunity.value.replace('_', ' ')}"
    return text


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

class ConflictDetector:
    """Classifies disagreement between module opinions."""

    def __init__(
        self,
        *,
        config: ConflictConfig | None = None,
        roles: Mapping[str, ModuleRole | str] | None = None,
        thresholds: tuple[int, int, int, int] | None = None,
    ) -> None:
        self._config = config or ConflictConfig()
        if thresholds is not None:
            low, medium, high, critical = thresholds
            try:
                self._config = ConflictConfig(
                    low_threshold=low,
                    medium_threshold=medium,
                    high_threshold=high,
                    critical_threshold=critical,
                    bubble_buy_ratio=self._config.bubble_buy_ratio,
                )
            except ValidationError as exc:
                raise InvalidConfig(f"Invalid severity thresholds {thresholds}") from exc
        self._roles = RoleMap(roles)

    @classmethod
    def from_settings(cls, settings: Settings) -> ConflictDetector:
        return cls(config=settings.conflict, roles=settings.module_roles)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def role_of(self, module: str) -> ModuleRole | None:
        return self._roles.role_of(module)

    def analyze(
        self,
        opinions: Sequence[ModuleOpinion],
        prior_regime: Regime | None = None,
    ) -> ConflictAnalysis:
        """Measure and classify disagreement among *opinions*.

        An empty input yields a "no data" analysis rather than an error.
        """
        if not opinions:
            return ConflictAnalysis(
                action_hint="Insufficient data; no module opinions available",
                summary="No data",
                description="No module opinions were supplied.",
            )

        variance_score = self.variance_score(opinions)
        votes = Counter(op.vote for op in opinions)
        polar = votes[Vote.BUY] > 0 and votes[Vote.SELL] > 0
        severity = self.severity_for(variance_score, polar=polar)

        by_role = self._by_role(opinions)
        conflict_type = self._conflict_type(opinions, by_role, votes, prior_regime)
        opportunity = self._opportunity(opinions, by_role, votes, conflict_type)

        involved = [
            InvolvedModule(
                module=op.module,
                vote=op.vote,
                confidence=op.confidence,
                role=self.role_of(op.module),
            )
            for op in opinions
        ]

        parts = [_SEVERITY_TEXT[severity] + f" (variance score {variance_score})"]
        if conflict_type is not None:
            parts.append(_TYPE_TEXT[conflict_type])
        if opportunity is not None:
            parts.append(_OPPORTUNITY_HINTS[opportunity])

        analysis = ConflictAnalysis(
            severity=severity,
            conflict_type=conflict_type,
            variance_score=variance_score,
            opportunity=opportunity,
            involved_modules=involved,
            action_hint=action_hint(severity, opportunity),
            summary=_summary(severity, opportunity),
            description="; ".join(parts) + ".",
        )
        logger.debug(
            "Conflict analysis: severity=%s type=%s opportunity=%s variance=%d",
            severity.value,
            conflict_type.value if conflict_type else None,
            opportunity.value if opportunity else None,
            variance_score,
        )
        return analysis

    @staticmethod
    def variance_score(opinions: Sequence[ModuleOpinion]) -> int:
        """Population variance of confidences, rounded and capped at 100."""
        if not opinions:
            return 0
        arr = np.asarray([op.confidence for op in opinions], dtype=np.float64)
        return min(100, round_half_up(float(np.var(arr))))

    def severity_for(self, variance_score: int, *, polar: bool = False) -> ConflictSeverity:
        """Map a variance score to a severity level.

        When BUY and SELL votes coexist the floor is HIGH once the
        variance reaches the high threshold.
        """
        cfg = self._config
        if variance_score < cfg.low_threshold:
            severity = ConflictSeverity.NONE
        elif variance_score < cfg.medium_threshold:
            severity = ConflictSeverity.LOW
        elif variance_score < cfg.high_threshold:
            severity = ConflictSeverity.MEDIUM
        elif variance_score < cfg.critical_threshold:
            severity = ConflictSeverity.HIGH
        else:
            severity = ConflictSeverity.CRITICAL

        if polar and variance_score >= cfg.high_threshold and severity.rank < ConflictSeverity.HIGH.rank:
            severity = ConflictSeverity.HIGH
        return severity

    # ------------------------------------------------------------------
    # Classification rules (first match wins)
    # ------------------------------------------------------------------

    def _by_role(self, opinions: Sequence[ModuleOpinion]) -> dict[ModuleRole, ModuleOpinion]:
        found: dict[ModuleRole, ModuleOpinion] = {}
        for op in opinions:
            role = self.role_of(op.module)
            if role is not None and role not in found:
                found[role] = op
        return found

    @staticmethod
    def _against_majority(vote: Vote, votes: Counter) -> bool:
        if vote is Vote.BUY:
            return votes[Vote.SELL] > votes[Vote.BUY]
        if vote is Vote.SELL:
            return votes[Vote.BUY] > votes[Vote.SELL]
        return False

    def _conflict_type(
        self,
        opinions: Sequence[ModuleOpinion],
        by_role: dict[ModuleRole, ModuleOpinion],
        votes: Counter,
        prior_regime: Regime | None,
    ) -> ConflictType | None:
        fundamental = by_role.get(ModuleRole.FUNDAMENTAL)
        technical = by_role.get(ModuleRole.TECHNICAL)
        if (
            fundamental is not None
            and technical is not None
            and fundamental.vote is not Vote.HOLD
            and technical.vote is fundamental.vote.opposite
        ):
            return ConflictType.FUNDAMENTAL_VS_TECHNICAL

        sentiment = by_role.get(ModuleRole.SENTIMENT)
        if sentiment is not None and self._against_majority(sentiment.vote, votes):
            return ConflictType.SENTIMENT_VS_PRICE

        macro = by_role.get(ModuleRole.MACRO)
        if macro is not None and macro.vote is not Vote.HOLD:
            others = Counter(op.vote for op in opinions if op is not macro)
            ranked = others.most_common()
            if ranked:
                top_vote, top_count = ranked[0]
                plurality = len(ranked) == 1 or ranked[1][1] < top_count
                if plurality and top_vote is macro.vote.opposite:
                    return ConflictType.MACRO_VS_MICRO

        timing = by_role.get(ModuleRole.TIMING)
        if timing is not None:
            others = [op for op in opinions if op is not timing]
            if timing.vote is Vote.SELL and any(op.vote is Vote.BUY for op in others):
                return ConflictType.TIMING_VS_REGIME
            expected = _REGIME_DIRECTION.get(prior_regime) if prior_regime else None
            if expected is not None and timing.vote is expected.opposite:
                return ConflictType.TIMING_VS_REGIME

        sector = by_role.get(ModuleRole.SECTOR)
        if sector is not None and self._against_majority(sector.vote, votes):
            return ConflictType.SECTOR_VS_MARKET

        return None

    def _opportunity(
        self,
        opinions: Sequence[ModuleOpinion],
        by_role: dict[ModuleRole, ModuleOpinion],
        votes: Counter,
        conflict_type: ConflictType | None,
    ) -> OpportunityType | None:
        fundamental = by_role.get(ModuleRole.FUNDAMENTAL)
        technical = by_role.get(ModuleRole.TECHNICAL)
        sentiment = by_role.get(ModuleRole.SENTIMENT)

        fund_buy = fundamental is not None and fundamental.vote is Vote.BUY
        if fund_buy and sentiment is not None and sentiment.vote is Vote.SELL:
            return OpportunityType.PANIC_SELL_OPPORTUNITY
        if fund_buy and technical is not None and technical.vote is Vote.SELL:
            return OpportunityType.BOTTOM_FISHING

        buy_ratio = votes[Vote.BUY] / len(opinions)
        if (
            fundamental is not None
            and fundamental.vote is not Vote.BUY
            and buy_ratio >= self._config.bubble_buy_ratio
        ):
            return OpportunityType.BUBBLE_WARNING

        if (
            technical is not None
            and technical.vote is Vote.BUY
            and fundamental is not None
            and fundamental.vote is Vote.HOLD
        ):
            return OpportunityType.TOP_EXHAUSTION

        if conflict_type is ConflictType.TIMING_VS_REGIME:
            return OpportunityType.TREND_REVERSAL
        return None


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------

def compare_modules(opinions: Sequence[ModuleOpinion]) -> list[ModulePairConflict]:
    """Every pair of modules that disagree, largest confidence gap first."""
    pairs: list[ModulePairConflict] = []
    for i, a in enumerate(opinions):
        for b in opinions[i + 1:]:
            if a.vote is b.vote:
                continue
            kind = (
                PairConflictKind.OPPOSED
                if a.vote is b.vote.opposite and a.vote is not Vote.HOLD
                else PairConflictKind.DIFFERENT
            )
            gap = abs(a.confidence - b.confidence)
            pairs.append(
                ModulePairConflict(
                    module_a=a.module,
                    module_b=b.module,
                    kind=kind,
                    confidence_gap=gap,
                    description=(
                        f"{a.module} says {a.vote.value} ({a.confidence:.0f}), "
                        f"{b.module} says {b.vote.value} ({b.confidence:.0f})"
                    ),
                )
            )
    pairs.sort(key=lambda p: p.confidence_gap, reverse=True)
    return pairs


def has_conflict(
    opinions: Sequence[ModuleOpinion],
    threshold: ConflictSeverity = ConflictSeverity.MEDIUM,
    *,
    detector: ConflictDetector | None = None,
) -> bool:
    """True if the analysed severity reaches *threshold*."""
    analysis = (detector or ConflictDetector()).analyze(opinions)
    return analysis.severity.rank >= threshold.rank
