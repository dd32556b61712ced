from .gate import RiskGate

__all__ = ["RiskGate"]
