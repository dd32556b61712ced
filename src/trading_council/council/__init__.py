"""Council: turns module opinions into verdicts, scores and conflict reports."""

from .conflict import ConflictDetector, compare_modules, has_conflict
from .consensus import ConsensusEngine
from .context_voting import ContextAwareVoting, detect_condition
from .scoring import CompositeScorer, opinion_from_score

__all__ = [
    "CompositeScorer",
    "ConflictDetector",
    "ConsensusEngine",
    "ContextAwareVoting",
    "compare_modules",
    "detect_condition",
    "has_conflict",
    "opinion_from_score",
]
