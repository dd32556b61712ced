"""Context-aware voting.

The same module deserves a different say depending on the market: in a
rally technicals and timing lead, in earnings season fundamentals lead,
in a crisis macro and risk lead.  Each role carries a weight multiplier
per :class:`MarketCondition` and, for some conditions, a veto: a SELL
from a veto-holding module forces the council to HOLD regardless of the
weighted tally.  The risk module's veto applies whatever it votes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from trading_council.core.enums import MarketCondition, ModuleRole, Regime, Vote
from trading_council.core.models import ContextVote, ModuleOpinion

from .consensus import ConsensusEngine
from .roles import RoleMap

logger = logging.getLogger(__name__)

C = MarketCondition


@dataclass(frozen=True)
class RoleProfile:
    """Per-condition weight multipliers and veto rights for one role."""

    multipliers: dict[MarketCondition, float]
    veto: frozenset[MarketCondition] = field(default_factory=frozenset)

    def multiplier(self, condition: MarketCondition) -> float:
        return self.multipliers.get(condition, 1.0)


def _profile(
    rally: float,
    selloff: float,
    volatile: float,
    earnings: float,
    rate: float,
    crisis: float,
    veto: tuple[MarketCondition, ...] = (),
) -> RoleProfile:
    return RoleProfile(
        multipliers={
            C.RALLY: rally,
            C.SELLOFF: selloff,
            C.SIDEWAYS: 1.0,
            C.VOLATILE: volatile,
            C.EARNINGS: earnings,
            C.RATE_DECISION: rate,
            C.CRISIS: crisis,
        },
        veto=frozenset(veto),
    )


DEFAULT_PROFILES: dict[ModuleRole, RoleProfile] = {
    ModuleRole.FUNDAMENTAL: _profile(0.8, 1.3, 1.2, 2.0, 1.0, 1.5, (C.EARNINGS, C.CRISIS)),
    ModuleRole.TECHNICAL: _profile(1.5, 1.3, 1.2, 0.6, 1.0, 0.8, (C.RALLY, C.VOLATILE)),
    ModuleRole.FACTOR: _profile(1.2, 0.8, 1.0, 1.3, 1.0, 1.2),
    ModuleRole.SENTIMENT: _profile(1.1, 1.4, 1.3, 0.7, 1.5, 1.8, (C.SELLOFF, C.CRISIS, C.RATE_DECISION)),
    ModuleRole.MACRO: _profile(0.8, 1.2, 1.0, 0.8, 2.0, 2.0, (C.SELLOFF, C.CRISIS, C.RATE_DECISION)),
    ModuleRole.STRATEGY: _profile(1.3, 0.7, 1.0, 1.0, 1.0, 0.5, (C.RALLY,)),
    ModuleRole.TIMING: _profile(1.4, 1.3, 1.2, 0.8, 1.0, 1.5, (C.RALLY, C.SELLOFF, C.VOLATILE)),
    ModuleRole.SECTOR: _profile(1.2, 1.0, 1.0, 1.0, 1.0, 1.0),
    ModuleRole.RISK: _profile(0.5, 2.0, 1.5, 0.8, 1.5, 2.0, (C.SELLOFF, C.VOLATILE, C.CRISIS)),
}

_CONDITION_TEXT: dict[MarketCondition, str] = {
    C.RALLY: "Rising trend: technicals and momentum lead.",
    C.SELLOFF: "Falling market: risk management and fundamentals lead.",
    C.SIDEWAYS: "Neutral market: balanced weights.",
    C.VOLATILE: "High volatility: risk and timing are critical.",
    C.EARNINGS: "Earnings season: fundamentals are key.",
    C.RATE_DECISION: "Ahead of a rate decision: macro and news are critical.",
    C.CRISIS: "Crisis mode: risk management above everything.",
}


def detect_condition(
    regime: Regime,
    *,
    vix: float | None = None,
    relative_change: float | None = None,
    explicit: MarketCondition | None = None,
) -> MarketCondition:
    """Infer the market condition.

    An explicit non-sideways condition wins, then the VIX level, then the
    regime combined with the market's percentage move.
    """
    if explicit is not None and explicit is not C.SIDEWAYS:
        return explicit
    if vix is not None:
        if vix > 35:
            return C.CRISIS
        if vix > 25:
            return C.VOLATILE
    if regime is Regime.BULL:
        return C.RALLY if relative_change is not None and relative_change > 2 else C.SIDEWAYS
    if regime is Regime.BEAR:
        return C.SELLOFF if relative_change is not None and relative_change < -2 else C.SIDEWAYS
    if regime is Regime.VOLATILE:
        return C.VOLATILE
    return C.SIDEWAYS


class ContextAwareVoting:
    """Runs the consensus engine with condition-dependent weights and vetoes."""

    def __init__(
        self,
        *,
        engine: ConsensusEngine | None = None,
        roles: RoleMap | None = None,
        profiles: Mapping[ModuleRole, RoleProfile] | None = None,
    ) -> None:
        self._engine = engine or ConsensusEngine()
        self._roles = roles or RoleMap()
        self._profiles = dict(profiles or DEFAULT_PROFILES)

    def weights_for(
        self,
        opinions: Sequence[ModuleOpinion],
        condition: MarketCondition,
        base_weights: Mapping[str, float] | None = None,
    ) -> dict[str, float]:
        base_weights = base_weights or {}
        weights: dict[str, float] = {}
        for op in opinions:
            weight = base_weights.get(op.module, 1.0)
            profile = self._profile_for(op.module)
            if profile is not None:
                weight *= profile.multiplier(condition)
            weights[op.module] = weight
        return weights

    def find_veto(
        self, opinions: Sequence[ModuleOpinion], condition: MarketCondition
    ) -> ModuleOpinion | None:
        for op in opinions:
            profile = self._profile_for(op.module)
            if profile is None or condition not in profile.veto:
                continue
            if op.vote is Vote.SELL or self._roles.role_of(op.module) is ModuleRole.RISK:
                return op
        return None

    def evaluate(
        self,
        instrument: str,
        opinions: Sequence[ModuleOpinion],
        condition: MarketCondition,
        base_weights: Mapping[str, float] | None = None,
    ) -> ContextVote:
        """Weighted council round under *condition*, honouring vetoes."""
        weights = self.weights_for(opinions, condition, base_weights)
        decision = self._engine.evaluate(instrument, opinions, weights)
        veto = self.find_veto(opinions, condition)

        verdict = Vote.HOLD if veto is not None else decision.verdict
        narrative = f"Market condition: {condition.value}. "
        if veto is not None:
            narrative += f"Veto by {veto.module}; risk takes priority. "
            logger.warning(
                "Veto on %s by %s under %s", instrument, veto.module, condition.value
            )
        narrative += _CONDITION_TEXT[condition]
        narrative += f" Verdict: {verdict.value.upper()} ({decision.consensus_pct}%)."

        return ContextVote(
            condition=condition,
            decision=decision,
            verdict=verdict,
            vetoed=veto is not None,
            veto_module=veto.module if veto is not None else None,
            narrative=narrative,
            details={"weights": weights},
        )

    def _profile_for(self, module: str) -> RoleProfile | None:
        role = self._roles.role_of(module)
        return self._profiles.get(role) if role is not None else None
