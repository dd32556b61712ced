"""Stop-loss and take-profit suggestions for long entries.

Take-profit is always placed ``r_multiple`` stop distances above entry.
When the requested method lacks its input (no ATR, no support below
entry) the percent stop is used and a warning says so.
"""

from __future__ import annotations

from collections.abc import Sequence

from trading_council.core.enums import StopMethod
from trading_council.core.models import StopLevels


def percent_stop(entry_price: float, stop_pct: float) -> float:
    return entry_price * (1.0 - stop_pct)


def atr_stop(entry_price: float, atr: float, multiplier: float) -> float:
    return entry_price - multiplier * atr


def support_stop(entry_price: float, support_levels: Sequence[float]) -> float | None:
    """Nearest support strictly below entry, or None."""
    below = [s for s in support_levels if 0 < s < entry_price]
    return max(below) if below else None


def take_profit(entry_price: float, stop_loss: float, r_multiple: float) -> float:
    return entry_price + r_multiple * (entry_price - stop_loss)


def suggest_stop(
    entry_price: float,
    *,
    method: StopMethod,
    stop_pct: float,
    atr: float | None = None,
    atr_multiplier: float = 2.0,
    support_levels: Sequence[float] = (),
    r_multiple: float = 2.0,
) -> StopLevels:
    warnings: list[str] = []
    stop: float | None = None
    used = method

    if method is StopMethod.ATR:
        if atr is None or atr <= 0:
            warnings.append("stop: no ATR supplied, using percent stop")
        else:
            stop = atr_stop(entry_price, atr, atr_multiplier)
            if stop <= 0:
                warnings.append("stop: ATR stop below zero, using percent stop")
                stop = None
    elif method is StopMethod.SUPPORT:
        stop = support_stop(entry_price, support_levels)
        if stop is None:
            warnings.append("stop: no support below entry, using percent stop")

    if stop is None:
        stop = percent_stop(entry_price, stop_pct)
        used = StopMethod.PERCENT

    return StopLevels(
        stop_loss=stop,
        take_profit=take_profit(entry_price, stop, r_multiple),
        stop_distance=entry_price - stop,
        method=used,
        warnings=warnings,
    )
