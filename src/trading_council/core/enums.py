"""Enumerations used across the council and risk gate."""

from enum import Enum


class Vote(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"

    @property
    def opposite(self) -> "Vote":
        if self is Vote.BUY:
            return Vote.SELL
        if self is Vote.SELL:
            return Vote.BUY
        return Vote.HOLD


class Regime(str, Enum):
    BULL = "bull"
    BEAR = "bear"
    SIDEWAYS = "sideways"
    VOLATILE = "volatile"


class Form(str, Enum):
    """Recent-accuracy label for a module."""

    HOT = "hot"
    WARM = "warm"
    COLD = "cold"


class Outcome(str, Enum):
    UNRESOLVED = "unresolved"
    CORRECT = "correct"
    INCORRECT = "incorrect"


class ModuleRole(str, Enum):
    """What kind of analysis a scoring module performs."""

    FUNDAMENTAL = "fundamental"
    TECHNICAL = "technical"
    SENTIMENT = "sentiment"
    MACRO = "macro"
    TIMING = "timing"
    SECTOR = "sector"
    FACTOR = "factor"
    STRATEGY = "strategy"
    RISK = "risk"
    ALLOCATION = "allocation"
    SECOND_ORDER = "second_order"


class ConflictSeverity(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    ConflictSeverity.NONE: 0,
    ConflictSeverity.LOW: 1,
    ConflictSeverity.MEDIUM: 2,
    ConflictSeverity.HIGH: 3,
    ConflictSeverity.CRITICAL: 4,
}


class ConflictType(str, Enum):
    FUNDAMENTAL_VS_TECHNICAL = "fundamental_vs_technical"
    SENTIMENT_VS_PRICE = "sentiment_vs_price"
    MACRO_VS_MICRO = "macro_vs_micro"
    TIMING_VS_REGIME = "timing_vs_regime"
    SECTOR_VS_MARKET = "sector_vs_market"


class OpportunityType(str, Enum):
    PANIC_SELL_OPPORTUNITY = "panic_sell_opportunity"
    BUBBLE_WARNING = "bubble_warning"
    TREND_REVERSAL = "trend_reversal"
    BOTTOM_FISHING = "bottom_fishing"
    TOP_EXHAUSTION = "top_exhaustion"


class PairConflictKind(str, Enum):
    OPPOSED = "opposed"  # BUY vs SELL
    DIFFERENT = "different"  # directional vs HOLD


class SizingMethod(str, Enum):
    FIXED_PERCENT = "fixed_percent"
    FIXED_R = "fixed_r"
    KELLY = "kelly"
    VOLATILITY = "volatility"


class StopMethod(str, Enum):
    ATR = "atr"
    PERCENT = "percent"
    SUPPORT = "support"


class TradeAction(str, Enum):
    BUY = "buy"
    SELL = "sell"


class RejectionReason(str, Enum):
    COOLDOWN_ACTIVE = "cooldown_active"
    SECTOR_CAP_EXCEEDED = "sector_cap_exceeded"
    PORTFOLIO_BUDGET_EXCEEDED = "portfolio_budget_exceeded"
    NO_OPEN_POSITION = "no_open_position"
    ZERO_QUANTITY = "zero_quantity"


class MarketCondition(str, Enum):
    RALLY = "rally"
    SELLOFF = "selloff"
    SIDEWAYS = "sideways"
    VOLATILE = "volatile"
    EARNINGS = "earnings"
    RATE_DECISION = "rate_decision"
    CRISIS = "crisis"


class CoreVerdict(str, Enum):
    STRONG_BUY = "strong_buy"
    BUY = "buy"
    HOLD = "hold"
    SELL = "sell"
    STRONG_SELL = "strong_sell"


class PulseVerdict(str, Enum):
    LONG = "long"
    WAIT = "wait"
    SHORT = "short"
