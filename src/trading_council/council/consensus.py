"""Consensus engine: weighted voting over module opinions.

Each opinion contributes ``confidence * weight`` to the bucket of its
vote.  The heaviest bucket wins; the consensus percentage is that
bucket's share of the total weighted confidence.

Ties never resolve to a directional trade by accident: an equal score is
broken by the raw vote count, and a remaining tie goes to HOLD.

Usage::

    engine = ConsensusEngine()
    decision = engine.evaluate("AAPL", opinions, weights=tracker.weights_for(modules))
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Mapping, Sequence

from trading_council.core.enums import Vote
from trading_council.core.errors import InsufficientInput, InvalidInput
from trading_council.core.models import (
    CouncilDecision,
    ModuleOpinion,
    VoteTally,
    WeightedOpinion,
)

logger = logging.getLogger(__name__)

# Bucket evaluation order; also the narrative order for equal scores.
_VOTE_ORDER = (Vote.BUY, Vote.SELL, Vote.HOLD)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def weigh(
    opinions: Sequence[ModuleOpinion],
    weights: Mapping[str, float] | None = None,
) -> list[WeightedOpinion]:
    """Attach a weight to every opinion (missing modules weigh 1.0).

    Raises:
        InvalidInput: On a negative or non-finite weight.
    """
    weights = weights or {}
    weighted: list[WeightedOpinion] = []
    for op in opinions:
        w = float(weights.get(op.module, 1.0))
        if not math.isfinite(w) or w < 0.0:
            raise InvalidInput(f"Invalid weight for module {op.module!r}: {w}")
        weighted.append(WeightedOpinion(**op.model_dump(), weight=w))
    return weighted


class ConsensusEngine:
    """Stateless weighted-vote aggregator.

    The weight table is an argument to every call, never stored, so one
    engine can serve any number of threads.
    """

    def evaluate(
        self,
        instrument: str,
        opinions: Sequence[ModuleOpinion],
        weights: Mapping[str, float] | None = None,
    ) -> CouncilDecision:
        """Aggregate *opinions* into a :class:`CouncilDecision`.

        Args:
            instrument: Instrument the opinions refer to.
            opinions: One or more module opinions.
            weights: Optional ``module -> weight``; missing modules use 1.0.

        Raises:
            InsufficientInput: If *opinions* is empty.
            InvalidInput: If a weight is negative or a module votes twice.
        """
        if not opinions:
            raise InsufficientInput(f"No opinions supplied for {instrument}")
        modules = Counter(op.module for op in opinions)
        repeated = sorted(m for m, n in modules.items() if n > 1)
        if repeated:
            raise InvalidInput(f"Duplicate opinions for {instrument} from modules: {repeated}")

        weighted = weigh(opinions, weights)
        scores = self.bucket_scores(weighted)
        tally = VoteTally.of(list(opinions))

        verdict = self._pick_verdict(scores, tally)
        total = sum(scores.values())
        consensus_pct = (
            round_half_up(100.0 * scores[verdict] / total) if total > 0 else 0
        )
        consensus_pct = max(0, min(100, consensus_pct))

        decision = CouncilDecision(
            instrument=instrument,
            verdict=verdict,
            consensus_pct=consensus_pct,
            tally=tally,
            opinions=list(opinions),
            weights={w.module: w.weight for w in weighted},
            bucket_scores=scores,
            narrative=self._narrative(instrument, verdict, consensus_pct, tally, weighted),
        )
        logger.info(
            "Council %s: %s at %d%% (buy=%d sell=%d hold=%d)",
            instrument,
            verdict.value,
            consensus_pct,
            tally.buy,
            tally.sell,
            tally.hold,
        )
        return decision

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def bucket_scores(weighted: Sequence[WeightedOpinion]) -> dict[Vote, float]:
        scores = {v: 0.0 for v in _VOTE_ORDER}
        for op in weighted:
            scores[op.vote] += op.weighted_confidence
        return scores

    @staticmethod
    def _pick_verdict(scores: dict[Vote, float], tally: VoteTally) -> Vote:
        best = max(scores.values())
        leaders = [v for v in _VOTE_ORDER if math.isclose(scores[v], best, rel_tol=1e-9, abs_tol=1e-9)]
        if len(leaders) > 1:
            most = max(tally.count(v) for v in leaders)
            leaders = [v for v in leaders if tally.count(v) == most]
        if len(leaders) > 1:
            return Vote.HOLD
        return leaders[0]

    @staticmethod
    def _narrative(
        instrument: str,
        verdict: Vote,
        consensus_pct: int,
        tally: VoteTally,
        weighted: Sequence[WeightedOpinion],
    ) -> str:
        header = (
            f"{instrument}: {verdict.value.upper()} with {consensus_pct}% weighted consensus "
            f"({tally.buy} buy / {tally.sell} sell / {tally.hold} hold)"
        )
        ranked = sorted(weighted, key=lambda w: w.weighted_confidence, reverse=True)
        lines = [header]
        for w in ranked:
            text = w.rationale or "no rationale given"
            lines.append(
                f"- {w.module} [{w.vote.value} {w.confidence:.0f} x {w.weight:.2f}]: {text}"
            )
        return "\n".join(lines)
