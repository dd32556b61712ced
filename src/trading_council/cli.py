"""CLI entry point for the trading council."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click


def _load_json(path: str) -> dict[str, Any]:
    try:
        return json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"{path} is not valid JSON: {exc}") from exc


def _settings(config: str | None, log_level: str | None, log_format: str | None):
    from .core.config import load_settings
    from .observability.logger import setup_logging

    settings = load_settings(config)
    setup_logging(
        level=log_level or settings.observability.log_level,
        format=log_format or settings.observability.log_format,
    )
    return settings


_common = [
    click.option("--input", "input_path", required=True, type=click.Path(exists=True),
                 help="JSON input file"),
    click.option("--config", default=None, help="TOML config file path"),
    click.option("--log-level", default=None, help="Override log level"),
    click.option("--log-format", type=click.Choice(["json", "console"]), default=None),
]


def _with_common(func):
    for option in reversed(_common):
        func = option(func)
    return func


@click.group()
def main() -> None:
    """Trading council: consensus, conflict analysis and risk gating."""


@main.command()
@_with_common
def decide(input_path: str, config: str | None, log_level: str | None, log_format: str | None) -> None:
    """Run one council round.

    Input keys: instrument, opinions, and optionally regime, signal,
    portfolio, equity.
    """
    from .core.enums import Regime
    from .core.errors import CouncilError
    from .core.models import ModuleOpinion, PortfolioPosition, TradeSignal
    from .observability.logger import get_logger
    from .pipeline import DecisionPipeline

    settings = _settings(config, log_level, log_format)
    data = _load_json(input_path)
    pipeline = DecisionPipeline.from_settings(settings)

    try:
        result = pipeline.evaluate(
            data["instrument"],
            [ModuleOpinion.model_validate(o) for o in data.get("opinions", [])],
            signal=TradeSignal.model_validate(data["signal"]) if data.get("signal") else None,
            portfolio=[PortfolioPosition.model_validate(p) for p in data.get("portfolio", [])],
            equity=float(data["equity"]) if data.get("equity") is not None else None,
            regime=Regime(data["regime"]) if data.get("regime") else None,
        )
    except (CouncilError, KeyError, TypeError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    get_logger(__name__).info(
        "council_round",
        instrument=result.decision.instrument,
        verdict=result.decision.verdict.value,
        consensus_pct=result.decision.consensus_pct,
        approved=result.risk.approved if result.risk else None,
    )

    click.echo(result.model_dump_json(indent=2))


@main.command("portfolio-risk")
@_with_common
def portfolio_risk(input_path: str, config: str | None, log_level: str | None, log_format: str | None) -> None:
    """Analyze portfolio risk.

    Input keys: equity, portfolio, and optionally returns, equity_curve.
    """
    from .core.errors import CouncilError
    from .core.models import PortfolioPosition
    from .risk.gate import RiskGate

    settings = _settings(config, log_level, log_format)
    data = _load_json(input_path)
    gate = RiskGate.from_settings(settings)

    try:
        metrics = gate.analyze_portfolio_risk(
            [PortfolioPosition.model_validate(p) for p in data.get("portfolio", [])],
            float(data["equity"]),
            returns=data.get("returns"),
            equity_curve=data.get("equity_curve"),
        )
    except (CouncilError, KeyError, TypeError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(metrics.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
