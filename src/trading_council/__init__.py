"""Trading council: weighted module consensus, conflict analysis and risk gating."""

__version__ = "0.1.0"
