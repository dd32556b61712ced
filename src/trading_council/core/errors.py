"""Custom exception hierarchy for the decision and risk subsystem.

Business-rule rejections (cooldown, budget, sector cap) are never raised;
they come back as ``RejectionReason`` values on a ``RiskDecision``.
"""


class CouncilError(Exception):
    """Base exception for all council errors."""


# --- Input ---
class InputError(CouncilError):
    """Caller supplied unusable input."""


class InsufficientInput(InputError):
    """Not enough data to produce a result (e.g. no opinions)."""


class InvalidInput(InputError):
    """Malformed signal, equity, consensus score or weight table."""


# --- Configuration ---
class ConfigError(CouncilError):
    """Invalid or missing configuration."""


class InvalidConfig(ConfigError):
    """Configuration value outside its permitted range."""


# --- Prediction history ---
class HistoryError(CouncilError):
    """Prediction history lookup or update failure."""


class UnknownRecord(HistoryError):
    """No prediction record with the given id."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Unknown prediction record: {record_id}")


class RecordAlreadyResolved(HistoryError):
    """The prediction record already has an outcome."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Prediction record already resolved: {record_id}")
