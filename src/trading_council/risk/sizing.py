"""Position sizing methods.

Supports: fixed-percent, fixed-R (stop based), Kelly criterion and
volatility (ATR) sizing.  Quantities are whole units, always rounded
down so a size never exceeds its risk allowance.
"""

from __future__ import annotations

import math

KELLY_MAX_FRACTION = 0.25

# Guards floor() against 99.99999... from float division.
_EPS = 1e-9


def _whole_units(qty: float) -> int:
    if not math.isfinite(qty) or qty <= 0:
        return 0
    return int(math.floor(qty + _EPS))


def fixed_percent_size(equity: float, fraction: float, price: float) -> int:
    """Allocate a fixed fraction of equity.

    Size = floor(equity * fraction / price)
    """
    if price <= 0 or equity <= 0 or fraction <= 0:
        return 0
    return _whole_units(equity * fraction / price)


def fixed_r_size(risk_amount: float, stop_distance: float) -> int:
    """Risk exactly one R between entry and stop.

    Size = floor(risk_amount / |entry - stop|)
    """
    if risk_amount <= 0 or stop_distance <= 0:
        return 0
    return _whole_units(risk_amount / stop_distance)


def volatility_size(risk_amount: float, atr: float, atr_multiplier: float = 2.0) -> int:
    """Volatility-adjusted sizing using ATR.

    Size = floor(risk_amount / (ATR * multiplier))
    """
    if atr <= 0 or atr_multiplier <= 0:
        return 0
    return fixed_r_size(risk_amount, atr * atr_multiplier)


def kelly_fraction(
    win_rate: float,
    payoff_ratio: float,
    cap: float = KELLY_MAX_FRACTION,
) -> float:
    """Kelly criterion fraction of equity, clamped to ``[0, cap]``.

    Kelly% = W - (1-W)/R
    where W = win rate, R = average win / average loss.

    *cap* itself never exceeds :data:`KELLY_MAX_FRACTION`.
    """
    cap = max(0.0, min(cap, KELLY_MAX_FRACTION))
    if payoff_ratio <= 0 or not math.isfinite(payoff_ratio):
        return 0.0
    w = max(0.0, min(1.0, win_rate))
    f = w - (1.0 - w) / payoff_ratio
    return max(0.0, min(cap, f))


def kelly_size(
    equity: float,
    win_rate: float,
    payoff_ratio: float,
    price: float,
    cap: float = KELLY_MAX_FRACTION,
) -> int:
    """Size = floor(equity * kelly_fraction / price)."""
    if price <= 0 or equity <= 0:
        return 0
    return _whole_units(equity * kelly_fraction(win_rate, payoff_ratio, cap) / price)
