"""Value-at-Risk and drawdown computation.

Pure functions over numpy arrays; the risk gate feeds them either an
observed return series or an assumed volatility.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import ArrayLike

logger = logging.getLogger(__name__)


class RiskMetrics:
    """Stateless calculator for VaR and drawdown.

    Usage::

        var = RiskMetrics.compute_parametric_var(0.0, 0.02, confidence=0.95)
        dd = RiskMetrics.max_drawdown([100_000, 104_000, 97_000, 101_000])
    """

    # ------------------------------------------------------------------
    # Parametric (Gaussian) VaR
    # ------------------------------------------------------------------

    @staticmethod
    def compute_parametric_var(
        mean: float,
        std: float,
        confidence: float = 0.95,
    ) -> float:
        """Compute parametric (variance-covariance) VaR assuming normal returns.

        Uses the inverse-normal to map the confidence level to a z-score
        and then computes ``-(mean + z * std)``.

        Args:
            mean: Expected return (e.g. daily mean).
            std: Standard deviation of returns.
            confidence: Confidence level in [0, 1].  Default 0.95.

        Returns:
            VaR as a positive fraction.  Returns 0.0 when *std* <= 0.
        """
        if std <= 0.0:
            return 0.0

        from scipy.stats import norm  # lazy import -- only needed here

        z = float(norm.ppf(1.0 - confidence))
        var_value = max(0.0, -(mean + z * std))
        logger.debug(
            "Parametric VaR(%.1f%%): %.6f  (mean=%.6f, std=%.6f, z=%.4f)",
            confidence * 100,
            var_value,
            mean,
            std,
            z,
        )
        return var_value

    @staticmethod
    def return_volatility(returns: ArrayLike) -> float:
        """Sample standard deviation of a return series (0.0 if < 2 points)."""
        arr = np.asarray(returns, dtype=np.float64)
        arr = arr[~np.isnan(arr)]
        if arr.size < 2:
            logger.warning("return_volatility called with %d observations", arr.size)
            return 0.0
        return float(np.std(arr, ddof=1))

    # ------------------------------------------------------------------
    # Drawdown
    # ------------------------------------------------------------------

    @staticmethod
    def max_drawdown(equity_curve: ArrayLike) -> float:
        """Largest peak-to-trough decline as a positive fraction of the peak."""
        arr = np.asarray(equity_curve, dtype=np.float64)
        arr = arr[~np.isnan(arr)]
        if arr.size < 2:
            return 0.0
        peaks = np.maximum.accumulate(arr)
        with np.errstate(divide="ignore", invalid="ignore"):
            drawdowns = np.where(peaks > 0, (peaks - arr) / peaks, 0.0)
        return float(np.max(drawdowns))
