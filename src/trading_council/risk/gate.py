"""Risk gate: the last word before a trade reaches the market.

Every proposed trade passes through :meth:`RiskGate.review`, which

1. blocks instruments still in their cooldown window,
2. treats SELL signals as risk reduction (close what is held),
3. refuses BUYs into a sector that has no exposure headroom left,
4. refuses BUYs once the open portfolio risk fills the R budget,
5. sizes the trade by the configured method,
6. shrinks it for weak consensus, sector headroom and remaining budget,
7. attaches a stop-loss and take-profit.

Only cooldowns and exhausted budgets (plus trades that size to zero)
reject; caps reduce the quantity and add a warning.  Rejections are
returned as data, never raised.

The gate holds the instrument's lock for the whole review, so two
concurrent signals for the same instrument are serialized and the second
one sees the first one's cooldown stamp.

Usage::

    gate = RiskGate(config=RiskConfig(cooldown_hours=24))
    decision = gate.review(signal, portfolio, consensus_pct=82, equity=100_000)
    if decision.approved:
        submit(decision.adjusted_quantity, decision.suggested_stop_loss)
"""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import Any

from numpy.typing import ArrayLike
from pydantic import ValidationError

from trading_council.core.clock import IClock, WallClock
from trading_council.core.config import RiskConfig, Settings
from trading_council.core.enums import (
    RejectionReason,
    SizingMethod,
    StopMethod,
    TradeAction,
)
from trading_council.core.errors import InvalidConfig, InvalidInput
from trading_council.core.models import (
    PortfolioPosition,
    PortfolioRiskMetrics,
    PositionSize,
    RiskDecision,
    RiskGateSnapshot,
    StopLevels,
    TradeSignal,
)

from .cooldown import CooldownBook
from .exposure import ExposureSnapshot, position_risk_amount, total_risk_r
from .sizing import (
    fixed_percent_size,
    fixed_r_size,
    kelly_fraction,
    kelly_size,
    volatility_size,
)
from .stops import suggest_stop
from .var_es import RiskMetrics

logger = logging.getLogger(__name__)

_EPS = 1e-9


class RiskGate:
    """Sizes, stops and vetoes proposed trades.

    Args:
        config: Initial limits. Replaced only through :meth:`set_config`.
        clock: Time source for cooldowns.
    """

    def __init__(
        self,
        *,
        config: RiskConfig | None = None,
        clock: IClock | None = None,
    ) -> None:
        self._config = config or RiskConfig()
        self._config_lock = threading.RLock()
        self._clock = clock or WallClock()
        self._cooldowns = CooldownBook(self._clock)
        self._history: deque[RiskDecision] = deque(maxlen=self._config.history_size)
        self._history_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, clock: IClock | None = None) -> RiskGate:
        return cls(config=settings.risk, clock=clock)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self) -> RiskConfig:
        with self._config_lock:
            return self._config

    def set_config(self, update: RiskConfig | Mapping[str, Any]) -> RiskConfig:
        """Replace (or partially update) the limits.

        Raises:
            InvalidConfig: If a value is out of range; the old config stays.
        """
        changes = update.model_dump() if isinstance(update, RiskConfig) else dict(update)
        with self._config_lock:
            unknown = set(changes) - set(RiskConfig.model_fields)
            if unknown:
                raise InvalidConfig(f"Unknown risk config fields: {sorted(unknown)}")
            try:
                new = RiskConfig.model_validate({**self._config.model_dump(), **changes})
            except ValidationError as exc:
                raise InvalidConfig(str(exc)) from exc
            self._config = new
            if new.history_size != self._history.maxlen:
                with self._history_lock:
                    self._history = deque(self._history, maxlen=new.history_size)
        logger.info("Risk config updated: %s", changes)
        return new

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def review(
        self,
        signal: TradeSignal,
        portfolio: Sequence[PortfolioPosition],
        consensus_pct: float,
        equity: float,
    ) -> RiskDecision:
        """Approve, resize or reject a proposed trade.

        Raises:
            InvalidInput: On non-positive equity or a consensus outside 0..100.
        """
        self._check_equity(equity)
        if not math.isfinite(consensus_pct) or not 0.0 <= consensus_pct <= 100.0:
            raise InvalidInput(f"consensus_pct must be within 0..100, got {consensus_pct}")

        cfg = self.get_config()
        positions = [p for p in portfolio if p.is_open and p.quantity > 0]

        with self._cooldowns.lock_for(signal.instrument):
            decision = self._review_locked(signal, positions, consensus_pct, equity, cfg)
            if decision.approved:
                self._cooldowns.stamp(signal.instrument, decision.decided_at)

        with self._history_lock:
            self._history.append(decision)

        if decision.approved:
            logger.info(
                "Approved %s %s x%d (risk %.2fR, stop %s)",
                decision.action.value,
                decision.instrument,
                decision.adjusted_quantity,
                decision.risk_r,
                decision.suggested_stop_loss,
            )
        else:
            logger.warning(
                "Rejected %s %s: %s",
                decision.action.value,
                decision.instrument,
                decision.reason,
            )
        return decision

    def _review_locked(
        self,
        signal: TradeSignal,
        positions: list[PortfolioPosition],
        consensus_pct: float,
        equity: float,
        cfg: RiskConfig,
    ) -> RiskDecision:
        symbol = signal.instrument

        remaining = self._cooldowns.remaining(symbol, cfg.cooldown_hours)
        if remaining > timedelta(0):
            hours = remaining.total_seconds() / 3600.0
            return self._reject(
                signal,
                RejectionReason.COOLDOWN_ACTIVE,
                f"cooldown active: {hours:.1f}h remaining",
            )

        if signal.action is TradeAction.SELL:
            return self._review_exit(signal, positions)

        exposure = ExposureSnapshot.from_positions(positions)
        headroom = exposure.sector_headroom(signal.sector, equity, cfg.max_sector_exposure_pct)
        if headroom <= _EPS:
            return self._reject(
                signal,
                RejectionReason.SECTOR_CAP_EXCEEDED,
                f"sector cap: {signal.sector} already at "
                f"{cfg.max_sector_exposure_pct:.0%} of equity",
            )

        one_r = equity * cfg.max_risk_per_trade_pct
        open_r = total_risk_r(positions, one_r, cfg.default_position_risk_pct)
        if open_r >= cfg.max_portfolio_risk_r - _EPS:
            return self._reject(
                signal,
                RejectionReason.PORTFOLIO_BUDGET_EXCEEDED,
                f"portfolio risk budget: {open_r:.2f}R open of "
                f"{cfg.max_portfolio_risk_r:.2f}R allowed",
            )

        stops = self._stops(cfg, signal.price, None, signal.atr, signal.support_levels)
        warnings = list(stops.warnings)
        size = self._size(
            cfg, cfg.sizing_method, equity, signal.price, signal.confidence,
            stops.stop_distance, signal.atr,
        )
        warnings.extend(size.warnings)
        qty = size.quantity

        if consensus_pct < cfg.low_consensus_threshold and qty > 0:
            scaled = int(math.floor(qty * cfg.low_consensus_scale + _EPS))
            warnings.append(
                f"consensus: {consensus_pct:.0f}% below {cfg.low_consensus_threshold:.0f}%, "
                f"size scaled {qty} -> {scaled}"
            )
            qty = scaled

        sector_max = int(math.floor(headroom / signal.price + _EPS))
        if qty > sector_max:
            warnings.append(
                f"sector cap: {signal.sector} headroom allows {sector_max}, size capped from {qty}"
            )
            qty = sector_max

        budget_left = cfg.max_portfolio_risk_r - open_r
        if qty * stops.stop_distance / one_r > budget_left + _EPS:
            budget_max = fixed_r_size(budget_left * one_r, stops.stop_distance)
            warnings.append(
                f"portfolio risk budget: {budget_left:.2f}R left, size capped {qty} -> {budget_max}"
            )
            qty = budget_max

        if qty <= 0:
            return self._reject(
                signal,
                RejectionReason.ZERO_QUANTITY,
                "zero quantity: position sizes to zero under current limits",
                warnings=warnings,
                sizing_method=size.method,
            )

        return RiskDecision(
            approved=True,
            instrument=symbol,
            action=signal.action,
            adjusted_quantity=qty,
            suggested_stop_loss=stops.stop_loss,
            suggested_take_profit=stops.take_profit,
            risk_r=qty * stops.stop_distance / one_r,
            reason="approved",
            warnings=warnings,
            sizing_method=size.method,
            decided_at=self._clock.now(),
        )

    def _review_exit(
        self, signal: TradeSignal, positions: list[PortfolioPosition]
    ) -> RiskDecision:
        held = sum(p.quantity for p in positions if p.symbol == signal.instrument)
        if held <= 0:
            return self._reject(
                signal,
                RejectionReason.NO_OPEN_POSITION,
                f"no open position in {signal.instrument} to reduce",
            )
        qty = int(math.floor(held + _EPS))
        if qty <= 0:
            return self._reject(
                signal,
                RejectionReason.ZERO_QUANTITY,
                f"zero quantity: open position in {signal.instrument} is below one unit",
            )
        return RiskDecision(
            approved=True,
            instrument=signal.instrument,
            action=signal.action,
            adjusted_quantity=qty,
            reason="risk-reducing exit approved",
            decided_at=self._clock.now(),
        )

    def _reject(
        self,
        signal: TradeSignal,
        rejection: RejectionReason,
        reason: str,
        *,
        warnings: list[str] | None = None,
        sizing_method: SizingMethod | None = None,
    ) -> RiskDecision:
        return RiskDecision(
            approved=False,
            instrument=signal.instrument,
            action=signal.action,
            reason=reason,
            rejection=rejection,
            warnings=[*(warnings or []), reason],
            sizing_method=sizing_method,
            decided_at=self._clock.now(),
        )

    # ------------------------------------------------------------------
    # Sizing and stops
    # ------------------------------------------------------------------

    def calculate_position_size(
        self,
        equity: float,
        price: float,
        confidence: float,
        method: SizingMethod | None = None,
        atr: float | None = None,
    ) -> PositionSize:
        """Size a long entry without touching cooldowns or the portfolio."""
        self._check_equity(equity)
        if price <= 0 or not math.isfinite(price):
            raise InvalidInput(f"price must be positive, got {price}")
        if not 0.0 <= confidence <= 100.0:
            raise InvalidInput(f"confidence must be within 0..100, got {confidence}")
        cfg = self.get_config()
        stops = self._stops(cfg, price, None, atr, ())
        size = self._size(cfg, method or cfg.sizing_method, equity, price, confidence,
                          stops.stop_distance, atr)
        if stops.warnings:
            size = size.model_copy(update={"warnings": [*stops.warnings, *size.warnings]})
        return size

    def suggest_stop_loss(
        self,
        entry_price: float,
        method: StopMethod | None = None,
        atr: float | None = None,
        support_levels: Sequence[float] | None = None,
    ) -> StopLevels:
        if entry_price <= 0 or not math.isfinite(entry_price):
            raise InvalidInput(f"entry_price must be positive, got {entry_price}")
        return self._stops(self.get_config(), entry_price, method, atr, support_levels or ())

    @staticmethod
    def _stops(
        cfg: RiskConfig,
        price: float,
        method: StopMethod | None,
        atr: float | None,
        support_levels: Sequence[float],
    ) -> StopLevels:
        return suggest_stop(
            price,
            method=method or cfg.stop_method,
            stop_pct=cfg.stop_loss_pct,
            atr=atr,
            atr_multiplier=cfg.atr_multiplier,
            support_levels=support_levels,
            r_multiple=cfg.take_profit_r_multiple,
        )

    @staticmethod
    def _size(
        cfg: RiskConfig,
        method: SizingMethod,
        equity: float,
        price: float,
        confidence: float,
        stop_distance: float,
        atr: float | None,
    ) -> PositionSize:
        one_r = equity * cfg.max_risk_per_trade_pct
        warnings: list[str] = []
        fraction: float | None = None

        if method is SizingMethod.FIXED_PERCENT:
            qty = fixed_percent_size(equity, cfg.max_risk_per_trade_pct, price)
        elif method is SizingMethod.KELLY:
            win_rate = confidence / 100.0
            fraction = kelly_fraction(win_rate, cfg.take_profit_r_multiple, cfg.kelly_cap)
            qty = kelly_size(equity, win_rate, cfg.take_profit_r_multiple, price, cfg.kelly_cap)
            if fraction <= 0:
                warnings.append("kelly: no edge at this confidence, size is zero")
        elif method is SizingMethod.VOLATILITY and atr is not None:
            qty = volatility_size(one_r, atr, cfg.atr_multiplier)
        else:
            if method is SizingMethod.VOLATILITY:
                warnings.append("sizing: no ATR supplied, volatility sizing fell back to fixed R")
                method = SizingMethod.FIXED_R
            qty = fixed_r_size(one_r, stop_distance)

        return PositionSize(
            quantity=qty,
            method=method,
            risk_amount=qty * stop_distance,
            stop_distance=stop_distance,
            kelly_fraction=fraction,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Portfolio analytics
    # ------------------------------------------------------------------

    def analyze_portfolio_risk(
        self,
        portfolio: Sequence[PortfolioPosition],
        equity: float,
        returns: ArrayLike | None = None,
        equity_curve: ArrayLike | None = None,
    ) -> PortfolioRiskMetrics:
        """Portfolio-wide risk summary.

        Volatility comes from *returns* when given, otherwise gross
        exposure times the assumed daily volatility (positions treated as
        perfectly correlated).  Drawdown comes from *equity_curve* when
        given, otherwise it is the loss if every stop is hit.
        """
        self._check_equity(equity)
        cfg = self.get_config()
        positions = [p for p in portfolio if p.is_open and p.quantity > 0]
        exposure = ExposureSnapshot.from_positions(positions)
        one_r = equity * cfg.max_risk_per_trade_pct
        gross_frac = exposure.gross_exposure / equity

        if equity_curve is not None:
            max_dd = RiskMetrics.max_drawdown(equity_curve)
        else:
            stop_loss_total = sum(
                position_risk_amount(p, cfg.default_position_risk_pct) for p in positions
            )
            max_dd = min(1.0, stop_loss_total / equity)

        if returns is not None:
            sigma = RiskMetrics.return_volatility(returns)
        else:
            sigma = gross_frac * cfg.assumed_daily_volatility
        var95 = RiskMetrics.compute_parametric_var(0.0, sigma, confidence=0.95)

        return PortfolioRiskMetrics(
            total_risk_r=total_risk_r(positions, one_r, cfg.default_position_risk_pct),
            sector_exposure=exposure.sector_pct(equity),
            max_drawdown_pct=max_dd * 100.0,
            var95_pct=var95 * 100.0,
            var95_amount=var95 * equity,
            concentration_index=exposure.concentration_index(),
            gross_exposure_pct=gross_frac * 100.0,
            open_positions=len(positions),
        )

    # ------------------------------------------------------------------
    # Cooldowns, history, persistence
    # ------------------------------------------------------------------

    def get_cooldown_remaining(self, instrument: str) -> timedelta:
        return self._cooldowns.remaining(instrument, self.get_config().cooldown_hours)

    def history(self) -> list[RiskDecision]:
        with self._history_lock:
            return list(self._history)

    def clear_history(self) -> None:
        """Forget all cooldowns and past decisions."""
        self._cooldowns.clear()
        with self._history_lock:
            self._history.clear()
        logger.info("Risk gate history cleared")

    def reset(self) -> None:
        """Back to default limits with empty history."""
        with self._config_lock:
            self._config = RiskConfig()
            with self._history_lock:
                self._history = deque(maxlen=self._config.history_size)
        self._cooldowns.clear()

    def snapshot(self) -> RiskGateSnapshot:
        return RiskGateSnapshot(config=self.get_config(), cooldowns=self._cooldowns.snapshot())

    def load(self, snapshot: RiskGateSnapshot) -> None:
        self.set_config(snapshot.config)
        self._cooldowns.load(snapshot.cooldowns)

    @staticmethod
    def _check_equity(equity: float) -> None:
        if not math.isfinite(equity) or equity <= 0:
            raise InvalidInput(f"equity must be positive, got {equity}")
