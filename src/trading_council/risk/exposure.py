"""Portfolio exposure and open risk.

Computes gross / per-sector / per-symbol notional and the open risk of
each position in R units, where 1R is the equity amount one trade may
lose.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from trading_council.core.models import PortfolioPosition

logger = logging.getLogger(__name__)


@dataclass
class ExposureSnapshot:
    """Point-in-time snapshot of portfolio exposure (notional)."""

    gross_exposure: float = 0.0
    per_sector: dict[str, float] = field(default_factory=dict)
    per_symbol: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_positions(cls, positions: Iterable[PortfolioPosition]) -> ExposureSnapshot:
        snap = cls()
        for pos in positions:
            if not pos.is_open:
                continue
            notional = pos.notional
            snap.gross_exposure += notional
            snap.per_sector[pos.sector] = snap.per_sector.get(pos.sector, 0.0) + notional
            snap.per_symbol[pos.symbol] = snap.per_symbol.get(pos.symbol, 0.0) + notional
        logger.debug(
            "Exposure: gross=%.2f sectors=%d symbols=%d",
            snap.gross_exposure,
            len(snap.per_sector),
            len(snap.per_symbol),
        )
        return snap

    def sector_pct(self, equity: float) -> dict[str, float]:
        """Sector notional as a percentage of equity."""
        if equity <= 0:
            return {}
        return {s: n / equity * 100.0 for s, n in self.per_sector.items()}

    def sector_headroom(self, sector: str, equity: float, max_sector_pct: float) -> float:
        """Notional still allowed in *sector* before hitting the cap."""
        return equity * max_sector_pct - self.per_sector.get(sector, 0.0)

    def concentration_index(self) -> float:
        """Herfindahl index of symbol weights (1.0 = single position)."""
        if self.gross_exposure <= 0:
            return 0.0
        return sum((n / self.gross_exposure) ** 2 for n in self.per_symbol.values())


def position_risk_amount(pos: PortfolioPosition, default_risk_pct: float) -> float:
    """Loss if the position is stopped out.

    Without a stop the position is assumed to risk *default_risk_pct* of
    its notional.
    """
    if pos.stop_loss is not None and pos.stop_loss < pos.entry_price:
        return (pos.entry_price - pos.stop_loss) * pos.quantity
    if pos.stop_loss is not None:
        return 0.0  # stop at or above entry: locked in
    return pos.notional * default_risk_pct


def total_risk_r(
    positions: Iterable[PortfolioPosition],
    one_r: float,
    default_risk_pct: float,
) -> float:
    if one_r <= 0:
        return 0.0
    return sum(
        position_risk_amount(p, default_risk_pct) for p in positions if p.is_open
    ) / one_r
